"""Caller and profile schemas."""

from typing import Optional

from handwash.schemas.base import ApiModel, OkResponse
from handwash.schemas.family import FamilySummary


class MeResponse(OkResponse):
    sub: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    families: list[FamilySummary]


class ProfileUpdateRequest(ApiModel):
    display_name: str = ""


class ProfileUpdateResponse(OkResponse):
    display_name: str
