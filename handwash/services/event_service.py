"""Handwash event log: append-only, one partition per family.

Events are ordered by ``EVENT#<13-digit ms>#<eventId>`` sort keys; the
event id suffix keeps same-millisecond writes distinct.
"""

import logging
import uuid

from handwash.config import settings
from handwash.errors import InvalidArgument
from handwash.services.family_service import require_family_id, require_membership
from handwash.store import KeyValueStore
from handwash.utils import keys

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 200
DAY_MS = 24 * 60 * 60 * 1000

EVENT_FIELDS = ("familyId", "eventId", "atMs", "createdBy", "mode", "durationSec", "note")


def _public(item: dict) -> dict:
    return {field: item.get(field) for field in EVENT_FIELDS}


def append_event(
    store: KeyValueStore,
    actor_id: str,
    family_id: str,
    mode: str | None = None,
    duration_sec: int | None = None,
    note: str | None = None,
    now_ms: int | None = None,
) -> dict:
    """Record a completed wash for the actor. Repeats are not deduplicated."""
    family_id = require_family_id(family_id)
    if duration_sec is not None and duration_sec < 0:
        raise InvalidArgument("durationSec must not be negative")

    require_membership(store, actor_id, family_id)

    at_ms = now_ms if now_ms is not None else keys.now_ms()
    event_id = str(uuid.uuid4())
    item = {
        "pk": keys.family_pk(family_id),
        "sk": keys.event_sk(at_ms, event_id),
        "entity": keys.ENTITY_EVENT,
        "familyId": family_id,
        "eventId": event_id,
        "atMs": at_ms,
        "createdBy": actor_id,
        "mode": mode,
        "durationSec": duration_sec,
        "note": note[:NOTE_MAX_LENGTH] if note is not None else None,
    }
    store.put(item)

    logger.info("Handwash event %s recorded in family %s", event_id, family_id)
    return _public(item)


def query_events(
    store: KeyValueStore,
    requester_id: str,
    family_id: str,
    from_ms: int | None = None,
    to_ms: int | None = None,
    limit: int | None = None,
    ascending: bool = False,
    created_by: str | None = None,
    now_ms: int | None = None,
) -> list[dict]:
    """Events of a family in [from_ms, to_ms], both inclusive.

    Defaults to the last week. The result size never exceeds the
    configured ceiling, whatever ``limit`` asks for.
    """
    family_id = require_family_id(family_id)
    require_membership(store, requester_id, family_id)

    now = now_ms if now_ms is not None else keys.now_ms()
    if from_ms is None:
        from_ms = now - settings.event_default_window_days * DAY_MS
    if to_ms is None:
        to_ms = now
    if from_ms > to_ms:
        return []

    if limit is None:
        limit = settings.event_query_default_limit
    limit = min(settings.event_query_max, max(1, limit))

    items = store.query(
        keys.family_pk(family_id),
        between=keys.event_range(from_ms, to_ms),
        # Filter first, then cap
        limit=None if created_by else limit,
        ascending=ascending,
    )
    if created_by:
        items = [i for i in items if i.get("createdBy") == created_by]

    return [_public(i) for i in items[:limit]]


def actors_since(store: KeyValueStore, family_id: str, since_ms: int, until_ms: int) -> set[str]:
    """Users with at least one event in [since_ms, until_ms]. No authorization."""
    items = store.query(keys.family_pk(family_id), between=keys.event_range(since_ms, until_ms))
    return {i["createdBy"] for i in items if i.get("createdBy")}
