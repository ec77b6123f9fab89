"""User profile (display name) with write-through to memberships.

The profile record is the source of truth. Each membership keeps a copy of
the display name so member lists need no extra lookups; the copy may lag
behind after a partial failure and is repaired by the next update.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from handwash.errors import Internal, InvalidArgument
from handwash.store import KeyValueStore
from handwash.utils import keys

logger = logging.getLogger(__name__)

DISPLAY_NAME_MAX_LENGTH = 30


def get_profile(store: KeyValueStore, user_id: str) -> dict | None:
    return store.get(keys.user_pk(user_id), keys.PROFILE)


def get_display_name(store: KeyValueStore, user_id: str) -> str | None:
    profile = get_profile(store, user_id)
    return profile.get("displayName") if profile else None


def update_profile(store: KeyValueStore, user_id: str, display_name: str) -> str:
    """Save the display name and rewrite it into every membership of the user."""
    display_name = (display_name or "").strip()
    if not display_name:
        raise InvalidArgument("displayName is required")
    if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
        raise InvalidArgument(f"displayName must be {DISPLAY_NAME_MAX_LENGTH} characters or less")

    store.put({
        "pk": keys.user_pk(user_id),
        "sk": keys.PROFILE,
        "entity": keys.ENTITY_PROFILE,
        "userSub": user_id,
        "displayName": display_name,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    })

    memberships = store.query(keys.user_pk(user_id), begins_with=keys.FAMILY_PREFIX)
    updated = 0
    for membership in memberships:
        family_id = membership.get("familyId")
        if not family_id:
            continue
        try:
            store.put({
                **membership,
                "displayName": display_name,
                "gsi1pk": keys.family_pk(family_id),
                "gsi1sk": keys.member_gsi_sk(user_id),
                "entity": keys.ENTITY_MEMBERSHIP,
            })
        except SQLAlchemyError as e:
            logger.error(
                "Display name fan-out stopped for %s after %d/%d memberships",
                user_id, updated, len(memberships),
            )
            raise Internal("display name was saved but not applied to every family") from e
        updated += 1

    logger.info("Profile of %s updated (%d memberships)", user_id, updated)
    return display_name
