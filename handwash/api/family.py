"""Family & invite API endpoints."""

from fastapi import APIRouter, Depends, Query

from handwash.api.deps import Caller, get_caller, get_store
from handwash.schemas.base import MessageResponse
from handwash.schemas.family import (
    FamilyCreateRequest,
    FamilyCreateResponse,
    FamilyJoinRequest,
    FamilyJoinResponse,
    FamilyListResponse,
    FamilyMembersResponse,
    FamilyRef,
)
from handwash.services import family_service
from handwash.store import KeyValueStore

router = APIRouter(prefix="/families", tags=["family"])


@router.post("", response_model=FamilyCreateResponse)
def create_family(
    request: FamilyCreateRequest,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Create a family owned by the caller. The invite code is only returned here."""
    result = family_service.create_family(store, caller.sub, request.name)
    return FamilyCreateResponse(
        family_id=result["familyId"],
        name=result["name"],
        invite_code=result["inviteCode"],
    )


@router.get("", response_model=FamilyListResponse)
def list_families(
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Families the caller belongs to."""
    return FamilyListResponse(families=family_service.list_families(store, caller.sub))


@router.post("/join", response_model=FamilyJoinResponse)
def join_family(
    request: FamilyJoinRequest,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Join a family using an invite code."""
    family_id = family_service.join_family(store, caller.sub, request.invite_code)
    return FamilyJoinResponse(family_id=family_id)


@router.post("/leave", response_model=MessageResponse)
def leave_family(
    request: FamilyRef,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Leave a family. Not allowed for the owner."""
    family_service.leave_family(store, caller.sub, request.family_id)
    return MessageResponse(message="Left the family successfully")


@router.post("/delete", response_model=MessageResponse)
def delete_family(
    request: FamilyRef,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Delete a family and everything in it. Owner only."""
    family_service.delete_family(store, caller.sub, request.family_id)
    return MessageResponse(message="Family deleted successfully")


@router.get("/members", response_model=FamilyMembersResponse, response_model_exclude_none=True)
def list_members(
    family_id: str = Query(default="", alias="familyId"),
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Members of a family the caller belongs to."""
    result = family_service.list_members(store, caller.sub, family_id)
    return FamilyMembersResponse(
        is_owner=result["isOwner"],
        members=result["members"],
        invite_code=result["inviteCode"],
    )
