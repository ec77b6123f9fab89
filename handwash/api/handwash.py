"""Handwash event API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from handwash.api.deps import Caller, get_caller, get_store
from handwash.schemas.handwash import (
    HandwashEventCreateRequest,
    HandwashEventListResponse,
    HandwashEventResponse,
)
from handwash.services import event_service
from handwash.store import KeyValueStore

router = APIRouter(prefix="/handwash", tags=["handwash"])


@router.post("/events", response_model=HandwashEventResponse, response_model_exclude_none=True)
def create_event(
    request: HandwashEventCreateRequest,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Record a completed handwash for the caller."""
    event = event_service.append_event(
        store,
        caller.sub,
        request.family_id,
        mode=request.mode,
        duration_sec=request.duration_sec,
        note=request.note,
    )
    return HandwashEventResponse(event=event)


@router.get("/events", response_model=HandwashEventListResponse, response_model_exclude_none=True)
def list_events(
    family_id: str = Query(default="", alias="familyId"),
    from_ms: Optional[int] = Query(default=None, alias="from"),
    to_ms: Optional[int] = Query(default=None, alias="to"),
    limit: Optional[int] = Query(default=None),
    asc: Optional[str] = Query(default=None),
    created_by: Optional[str] = Query(default=None, alias="createdBy"),
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Events of a family in a time range (epoch ms). Newest first unless asc=1."""
    events = event_service.query_events(
        store,
        caller.sub,
        family_id,
        from_ms=from_ms,
        to_ms=to_ms,
        limit=limit,
        ascending=asc in ("1", "true"),
        created_by=created_by or None,
    )
    return HandwashEventListResponse(events=events)
