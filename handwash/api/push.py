"""Push subscription and owner-initiated push API endpoints."""

from fastapi import APIRouter, Depends, Request

from handwash.api.deps import Caller, get_caller, get_dispatcher, get_store
from handwash.schemas.base import OkResponse
from handwash.schemas.push import (
    PushSendRequest,
    PushSendResponse,
    PushSubscribeRequest,
    VapidPublicKeyResponse,
)
from handwash.services import push_service
from handwash.services.notification_service import NotificationDispatcher
from handwash.store import KeyValueStore

router = APIRouter(prefix="/push", tags=["push"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
def vapid_public_key(request: Request):
    """Application server key the browser needs to subscribe. No auth required."""
    return VapidPublicKeyResponse(public_key=request.app.state.vapid_credentials.public_key)


@router.post("/subscribe", response_model=OkResponse)
def subscribe(
    request: PushSubscribeRequest,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Register the caller's browser push subscription for a family."""
    subscription = request.subscription.model_dump() if request.subscription else {}
    push_service.subscribe(store, caller.sub, request.family_id, subscription, request.user_agent)
    return OkResponse()


@router.post("/send", response_model=PushSendResponse)
def send_to_user(
    request: PushSendRequest,
    caller: Caller = Depends(get_caller),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a reminder to one family member. Owner only."""
    result = dispatcher.send_to_user(caller.sub, request.family_id, request.target_sub, request.message)
    return PushSendResponse(sent=result["sent"], failed=result["failed"])
