"""Family directory: families, memberships and invite codes.

Uniqueness (one family per id, one invite mapping per code, one membership
per user and family) is enforced with conditional inserts only. Deleting a
family is a sweep of independent, idempotent deletes, so a failed delete
can simply be retried.
"""

import logging
import uuid
from datetime import datetime, timezone

from handwash.config import settings
from handwash.errors import ConditionFailed, Conflict, Forbidden, InvalidArgument, NotFound
from handwash.services import profile_service
from handwash.store import KeyValueStore
from handwash.utils import keys
from handwash.utils.security import generate_invite_code, hash_invite_code, normalize_invite_code

logger = logging.getLogger(__name__)

ROLE_OWNER = "owner"
ROLE_MEMBER = "member"

FAMILY_NAME_MAX_LENGTH = 50


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def require_family_id(family_id: str | None) -> str:
    family_id = (family_id or "").strip()
    if not family_id:
        raise InvalidArgument("familyId is required")
    return family_id


def membership_item(
    user_id: str,
    family_id: str,
    role: str,
    joined_at: str,
    display_name: str | None = None,
) -> dict:
    """Membership record. Always carries the family index projection."""
    return {
        "pk": keys.user_pk(user_id),
        "sk": keys.membership_sk(family_id),
        "gsi1pk": keys.family_pk(family_id),
        "gsi1sk": keys.member_gsi_sk(user_id),
        "entity": keys.ENTITY_MEMBERSHIP,
        "familyId": family_id,
        "userSub": user_id,
        "role": role,
        "joinedAt": joined_at,
        "displayName": display_name,
    }


# --- Authorization helpers ---

def get_membership(store: KeyValueStore, user_id: str, family_id: str) -> dict | None:
    return store.get(keys.user_pk(user_id), keys.membership_sk(family_id))


def require_membership(store: KeyValueStore, user_id: str, family_id: str) -> dict:
    """Return the caller's membership or raise Forbidden."""
    membership = get_membership(store, user_id, family_id)
    if not membership:
        raise Forbidden("not a family member")
    return membership


# --- Lifecycle ---

def create_family(store: KeyValueStore, owner_id: str, name: str) -> dict:
    """Create a family with its invite mapping and the owner's membership."""
    name = (name or "").strip()
    if not name:
        raise InvalidArgument("name is required")
    if len(name) > FAMILY_NAME_MAX_LENGTH:
        raise InvalidArgument(f"name must be {FAMILY_NAME_MAX_LENGTH} characters or less")

    family_id = str(uuid.uuid4())
    invite_code = generate_invite_code()
    invite_hash = hash_invite_code(invite_code)
    now = utc_now_iso()

    family = {
        "pk": keys.family_pk(family_id),
        "sk": keys.META,
        "entity": keys.ENTITY_FAMILY,
        "familyId": family_id,
        "name": name,
        "createdAt": now,
        "createdBy": owner_id,
        "inviteHash": invite_hash,
    }
    if settings.retain_invite_code:
        family["inviteCode"] = invite_code

    invite = {
        "pk": keys.invite_pk(invite_hash),
        "sk": keys.META,
        "entity": keys.ENTITY_INVITE,
        "familyId": family_id,
        "createdAt": now,
    }
    owner = membership_item(
        owner_id,
        family_id,
        ROLE_OWNER,
        now,
        profile_service.get_display_name(store, owner_id),
    )

    try:
        store.put_if_absent(family)
        store.put_if_absent(invite)
        store.put_if_absent(owner)
    except ConditionFailed as e:
        # Random ids should never collide; surface it instead of retrying
        logger.error("Family create collided on existing key %s %s", e.pk, e.sk)
        raise Conflict("family could not be created")

    logger.info("Family %s created by %s", family_id, owner_id)
    return {"familyId": family_id, "name": name, "inviteCode": invite_code}


def join_family(store: KeyValueStore, user_id: str, invite_code: str) -> str:
    """Redeem an invite code. Returns the family id."""
    code = normalize_invite_code(invite_code or "")
    if not code:
        raise InvalidArgument("inviteCode is required")

    invite = store.get(keys.invite_pk(hash_invite_code(code)), keys.META)
    family_id = invite.get("familyId") if invite else None
    if not family_id:
        raise NotFound("invite code not found")

    membership = membership_item(
        user_id,
        family_id,
        ROLE_MEMBER,
        utc_now_iso(),
        profile_service.get_display_name(store, user_id),
    )
    try:
        store.put_if_absent(membership)
    except ConditionFailed:
        raise Conflict("already joined")

    logger.info("User %s joined family %s", user_id, family_id)
    return family_id


def leave_family(store: KeyValueStore, user_id: str, family_id: str) -> None:
    """Leave a family. Owners must delete the family instead."""
    from handwash.services import push_service

    family_id = require_family_id(family_id)
    membership = get_membership(store, user_id, family_id)
    if not membership:
        raise NotFound("You are not a member of this family")
    if membership.get("role") == ROLE_OWNER:
        raise InvalidArgument("Owner cannot leave. Delete the family first.")

    removed = push_service.remove_for_family(store, user_id, family_id)
    store.delete(keys.user_pk(user_id), keys.membership_sk(family_id))
    logger.info("User %s left family %s (%d push subscriptions removed)", user_id, family_id, removed)


def delete_family(store: KeyValueStore, owner_id: str, family_id: str) -> None:
    """Delete a family and every record scoped to it.

    Not transactional. The owner's membership is removed last so that a
    retry after a partial failure is still authorized.
    """
    family_id = require_family_id(family_id)
    membership = get_membership(store, owner_id, family_id)
    if not membership:
        raise NotFound("You are not a member of this family")
    if membership.get("role") != ROLE_OWNER:
        raise Forbidden("Only the owner can delete the family")

    family_pk = keys.family_pk(family_id)
    family = store.get(family_pk, keys.META)

    # 1) Handwash events
    events = store.query(family_pk, begins_with=keys.EVENT_PREFIX)
    for item in events:
        store.delete(item["pk"], item["sk"])

    # 2) Push subscriptions and other members, found through the family index
    indexed = store.query_index(family_pk)
    subscriptions = [i for i in indexed if i.get("entity") == keys.ENTITY_PUSH_SUB]
    for item in subscriptions:
        store.delete(item["pk"], item["sk"])
    members = [
        i for i in indexed
        if i.get("entity") == keys.ENTITY_MEMBERSHIP and i.get("userSub") != owner_id
    ]
    for item in members:
        store.delete(item["pk"], item["sk"])

    # 3) Invite mapping
    if family and family.get("inviteHash"):
        store.delete(keys.invite_pk(family["inviteHash"]), keys.META)

    # 4) Family meta, then the owner
    store.delete(family_pk, keys.META)
    store.delete(keys.user_pk(owner_id), keys.membership_sk(family_id))

    logger.info(
        "Family %s deleted by %s: events=%d subscriptions=%d members=%d",
        family_id, owner_id, len(events), len(subscriptions), len(members) + 1,
    )


# --- Listing ---

def list_families(store: KeyValueStore, user_id: str) -> list[dict]:
    """Families the user belongs to, with names from the family records."""
    memberships = store.query(keys.user_pk(user_id), begins_with=keys.FAMILY_PREFIX)
    if not memberships:
        return []

    metas = store.batch_get((keys.family_pk(m["familyId"]), keys.META) for m in memberships)
    names = {meta["familyId"]: meta.get("name") for meta in metas}

    return [
        {
            "familyId": m["familyId"],
            "name": names.get(m["familyId"]) or "(unknown)",
            "role": m.get("role") or ROLE_MEMBER,
            "joinedAt": m.get("joinedAt"),
        }
        for m in memberships
    ]


def list_members(store: KeyValueStore, requester_id: str, family_id: str) -> dict:
    """Members of a family. The invite code is only ever shown to the owner."""
    family_id = require_family_id(family_id)
    me = require_membership(store, requester_id, family_id)
    is_owner = me.get("role") == ROLE_OWNER

    members: dict[str, dict] = {}
    for item in store.query_index(keys.family_pk(family_id), begins_with=keys.MEMBER_PREFIX):
        sub = item.get("userSub")
        if not sub or sub in members:
            continue
        members[sub] = {
            "sub": sub,
            "role": item.get("role") or ROLE_MEMBER,
            "joinedAt": item.get("joinedAt"),
            "displayName": item.get("displayName") or profile_service.get_display_name(store, sub),
        }

    result = {"isOwner": is_owner, "members": list(members.values()), "inviteCode": None}
    if is_owner:
        family = store.get(keys.family_pk(family_id), keys.META)
        result["inviteCode"] = family.get("inviteCode") if family else None
    return result
