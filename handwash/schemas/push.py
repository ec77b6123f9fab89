"""Push subscription and delivery schemas."""

from typing import Optional

from handwash.schemas.base import ApiModel, OkResponse


class PushKeys(ApiModel):
    p256dh: str = ""
    auth: str = ""


class PushSubscriptionInfo(ApiModel):
    endpoint: str = ""
    keys: Optional[PushKeys] = None


class PushSubscribeRequest(ApiModel):
    family_id: str = ""
    subscription: Optional[PushSubscriptionInfo] = None
    user_agent: Optional[str] = None


class PushSendRequest(ApiModel):
    family_id: str = ""
    target_sub: str = ""
    message: Optional[str] = None


class PushSendResponse(OkResponse):
    sent: int
    failed: int


class VapidPublicKeyResponse(OkResponse):
    public_key: str
