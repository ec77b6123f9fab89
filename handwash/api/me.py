"""Caller info and profile API endpoints."""

from fastapi import APIRouter, Depends

from handwash.api.deps import Caller, get_caller, get_store
from handwash.schemas.me import MeResponse, ProfileUpdateRequest, ProfileUpdateResponse
from handwash.services import family_service, profile_service
from handwash.store import KeyValueStore

router = APIRouter(tags=["me"])


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
def get_me(
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Verified identity, display name and families of the caller."""
    return MeResponse(
        sub=caller.sub,
        email=caller.email,
        display_name=profile_service.get_display_name(store, caller.sub),
        families=family_service.list_families(store, caller.sub),
    )


@router.put("/profile", response_model=ProfileUpdateResponse)
def update_profile(
    request: ProfileUpdateRequest,
    caller: Caller = Depends(get_caller),
    store: KeyValueStore = Depends(get_store),
):
    """Set the caller's display name across all their families."""
    display_name = profile_service.update_profile(store, caller.sub, request.display_name)
    return ProfileUpdateResponse(display_name=display_name)
