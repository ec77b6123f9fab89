"""Web Push delivery.

``send`` reports the outcome of one delivery as a value: delivery failures
never raise. Only a malformed subscription (a caller bug) raises
InvalidArgument. A push service answering 404 or 410 means the endpoint is
gone for good and its subscription must be pruned; anything else is
transient and the subscription is kept for the next attempt.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import requests
from pywebpush import WebPushException, webpush
from sqlalchemy.exc import SQLAlchemyError

from handwash.config import Settings
from handwash.errors import Forbidden, InvalidArgument, NotFound
from handwash.services import push_service
from handwash.services.family_service import ROLE_OWNER, get_membership, require_family_id
from handwash.store import KeyValueStore
from handwash.utils.security import hash_endpoint

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = {404, 410}
PUSH_TTL_SECONDS = 12 * 60 * 60

DEFAULT_TITLE = "🧼 Handwash reminder"
DEFAULT_MESSAGE = "Time to wash your hands!"
MESSAGE_MAX_LENGTH = 120


class DeliveryResult(str, Enum):
    DELIVERED = "delivered"
    GONE = "gone"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class VapidCredentials:
    """VAPID signing material, built once per process and passed around."""

    subject: str
    public_key: str
    private_key: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "VapidCredentials":
        return cls(
            subject=settings.vapid_subject,
            public_key=settings.vapid_public_key,
            private_key=settings.vapid_private_key,
        )

    @property
    def configured(self) -> bool:
        return bool(self.private_key and self.subject)


def build_payload(body: str, url: str = "/", title: str = DEFAULT_TITLE) -> str:
    """Payload understood by the client's service worker."""
    return json.dumps({"title": title, "body": body, "url": url}, ensure_ascii=False)


class NotificationDispatcher:
    """Sends push messages to stored subscriptions and prunes dead ones."""

    def __init__(
        self,
        store: KeyValueStore,
        credentials: VapidCredentials,
        sender: Callable = webpush,
    ):
        self.store = store
        self.credentials = credentials
        self._sender = sender

    def send(self, subscription: dict, payload: str) -> DeliveryResult:
        """Deliver one payload to one subscription."""
        push_service.validate_subscription(subscription)

        endpoint = subscription["endpoint"]
        if not self.credentials.configured:
            logger.warning("VAPID credentials not configured, push to %s skipped", hash_endpoint(endpoint))
            return DeliveryResult.TRANSIENT_FAILURE

        try:
            self._sender(
                subscription_info={"endpoint": endpoint, "keys": dict(subscription["keys"])},
                data=payload,
                vapid_private_key=self.credentials.private_key,
                vapid_claims={"sub": self.credentials.subject},
                ttl=PUSH_TTL_SECONDS,
            )
        except WebPushException as e:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                logger.info("Push endpoint %s is gone (%s)", hash_endpoint(endpoint), status_code)
                return DeliveryResult.GONE
            logger.warning("Push to %s failed (%s): %s", hash_endpoint(endpoint), status_code, e)
            return DeliveryResult.TRANSIENT_FAILURE
        except requests.RequestException as e:
            logger.warning("Push to %s failed: %s", hash_endpoint(endpoint), e)
            return DeliveryResult.TRANSIENT_FAILURE

        return DeliveryResult.DELIVERED

    def deliver(self, subscription: dict, payload: str) -> DeliveryResult:
        """Send, and remove the subscription when its endpoint is gone."""
        result = self.send(subscription, payload)
        if result is DeliveryResult.GONE:
            endpoint_hash = hash_endpoint(subscription["endpoint"])
            try:
                push_service.remove(self.store, subscription["userSub"], endpoint_hash)
            except SQLAlchemyError as e:
                # Kept for the next run, which will find it gone again
                logger.error("Failed to remove expired push subscription %s: %s", endpoint_hash, e)
                return DeliveryResult.TRANSIENT_FAILURE
            logger.info("Removed expired push subscription of %s", subscription["userSub"])
        return result

    def send_to_user(
        self,
        sender_id: str,
        family_id: str,
        target_id: str,
        message: str | None = None,
        url: str = "/wash/",
    ) -> dict:
        """Owner-initiated push to one member of the same family.

        ``sent == 0`` without failures means the target has no subscription.
        """
        family_id = require_family_id(family_id)
        target_id = (target_id or "").strip()
        if not target_id:
            raise InvalidArgument("targetSub is required")

        membership = get_membership(self.store, sender_id, family_id)
        if not membership or membership.get("role") != ROLE_OWNER:
            raise Forbidden("Only owner can send notifications")
        if not get_membership(self.store, target_id, family_id):
            raise NotFound("target is not a member of this family")

        subscriptions = push_service.list_for_user(self.store, target_id)
        if not subscriptions:
            return {"sent": 0, "failed": 0}

        message = (message or "").strip()[:MESSAGE_MAX_LENGTH] or DEFAULT_MESSAGE
        payload = build_payload(message, url)

        sent = 0
        failed = 0
        for subscription in subscriptions:
            if self.deliver(subscription, payload) is DeliveryResult.DELIVERED:
                sent += 1
            else:
                failed += 1

        logger.info("Push from %s to %s: sent=%d failed=%d", sender_id, target_id, sent, failed)
        return {"sent": sent, "failed": failed}
