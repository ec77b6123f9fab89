"""Family, membership and invite schemas."""

from typing import Optional

from handwash.schemas.base import ApiModel, OkResponse


class FamilyCreateRequest(ApiModel):
    name: str = ""


class FamilyCreateResponse(OkResponse):
    family_id: str
    name: str
    invite_code: str


class FamilySummary(ApiModel):
    family_id: str
    name: str
    role: str
    joined_at: Optional[str] = None


class FamilyListResponse(OkResponse):
    families: list[FamilySummary]


class FamilyJoinRequest(ApiModel):
    invite_code: str = ""


class FamilyJoinResponse(OkResponse):
    family_id: str


class FamilyRef(ApiModel):
    family_id: str = ""


class FamilyMemberResponse(ApiModel):
    sub: str
    role: str
    joined_at: Optional[str] = None
    display_name: Optional[str] = None


class FamilyMembersResponse(OkResponse):
    is_owner: bool
    members: list[FamilyMemberResponse]
    invite_code: Optional[str] = None
