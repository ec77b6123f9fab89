"""Push subscription registry.

A subscription lives in its owner's partition (``USER#<sub>`` /
``PUSH#<endpointHash>``) and is projected into the family index so the
subscriptions of one family can be listed without a scan.
"""

import logging

from handwash.errors import InvalidArgument
from handwash.services.family_service import require_family_id, require_membership, utc_now_iso
from handwash.store import KeyValueStore
from handwash.utils import keys
from handwash.utils.security import hash_endpoint

logger = logging.getLogger(__name__)


def validate_subscription(subscription: dict | None) -> None:
    """Raise InvalidArgument unless endpoint and both keys are present."""
    subscription = subscription or {}
    sub_keys = subscription.get("keys") or {}
    if not subscription.get("endpoint") or not sub_keys.get("p256dh") or not sub_keys.get("auth"):
        raise InvalidArgument("subscription is invalid")


def subscribe(
    store: KeyValueStore,
    user_id: str,
    family_id: str,
    subscription: dict,
    user_agent: str | None = None,
) -> dict:
    """Register (or replace) the user's subscription for this endpoint."""
    family_id = require_family_id(family_id)
    validate_subscription(subscription)
    require_membership(store, user_id, family_id)

    endpoint = str(subscription["endpoint"])
    endpoint_hash = hash_endpoint(endpoint)
    item = {
        "pk": keys.user_pk(user_id),
        "sk": keys.push_sk(endpoint_hash),
        "gsi1pk": keys.family_pk(family_id),
        "gsi1sk": keys.push_gsi_sk(user_id, endpoint_hash),
        "entity": keys.ENTITY_PUSH_SUB,
        "userSub": user_id,
        "familyId": family_id,
        "endpoint": endpoint,
        "keys": {
            "p256dh": subscription["keys"]["p256dh"],
            "auth": subscription["keys"]["auth"],
        },
        "userAgent": user_agent,
        "createdAt": utc_now_iso(),
    }
    store.put(item)

    logger.info("Push subscription %s saved for %s in family %s", endpoint_hash, user_id, family_id)
    return item


def list_for_user(store: KeyValueStore, user_id: str) -> list[dict]:
    return store.query(keys.user_pk(user_id), begins_with=keys.PUSH_PREFIX)


def list_for_family(store: KeyValueStore, family_id: str) -> list[dict]:
    return store.query_index(keys.family_pk(family_id), begins_with=keys.USER_PREFIX)


def list_all(store: KeyValueStore) -> list[dict]:
    return store.scan(keys.ENTITY_PUSH_SUB)


def remove(store: KeyValueStore, user_id: str, endpoint_hash: str) -> None:
    store.delete(keys.user_pk(user_id), keys.push_sk(endpoint_hash))


def remove_for_family(store: KeyValueStore, user_id: str, family_id: str) -> int:
    """Remove the user's subscriptions scoped to one family. Returns the count."""
    removed = 0
    for item in list_for_user(store, user_id):
        if item.get("familyId") == family_id:
            store.delete(item["pk"], item["sk"])
            removed += 1
    return removed
