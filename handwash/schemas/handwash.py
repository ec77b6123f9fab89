"""Handwash event schemas."""

from typing import Optional

from pydantic import Field

from handwash.schemas.base import ApiModel, OkResponse


class HandwashEventCreateRequest(ApiModel):
    family_id: str = ""
    mode: Optional[str] = Field(default=None, max_length=32)
    duration_sec: Optional[int] = Field(default=None, ge=0)
    note: Optional[str] = None


class HandwashEvent(ApiModel):
    family_id: str
    event_id: str
    at_ms: int
    created_by: str
    mode: Optional[str] = None
    duration_sec: Optional[int] = None
    note: Optional[str] = None


class HandwashEventResponse(OkResponse):
    event: HandwashEvent


class HandwashEventListResponse(OkResponse):
    events: list[HandwashEvent]
