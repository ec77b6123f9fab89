"""Daily reminder run.

One run reminds every subscribed user who has no handwash event since the
start of today in the reference timezone. Runs keep no state between
invocations: a subscription that failed transiently is simply tried again
on the next run, and a pruned one is gone for good.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from handwash.errors import InvalidArgument
from handwash.services import event_service, push_service
from handwash.services.alert_service import report_error
from handwash.services.notification_service import DeliveryResult, NotificationDispatcher, build_payload
from handwash.store import KeyValueStore
from handwash.utils import keys

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
REMINDER_MESSAGE = "Did you wash your hands today?"


def today_start_ms(now_ms: int, utc_offset_hours: int) -> int:
    """Epoch ms of 00:00 today in a fixed UTC offset."""
    offset_ms = utc_offset_hours * 60 * 60 * 1000
    return (now_ms + offset_ms) // DAY_MS * DAY_MS - offset_ms


def next_run_at(now: datetime, hour: int, minute: int, utc_offset_hours: int) -> datetime:
    """Next wall-clock hour:minute in the reference offset, strictly after ``now``."""
    local = now.astimezone(timezone(timedelta(hours=utc_offset_hours)))
    target = local.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= local:
        target += timedelta(days=1)
    return target


@dataclass
class ReminderRunResult:
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    pruned: int = 0
    families: int = 0
    family_errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class ReminderScheduler:
    """Runs one reminder pass over every family that has subscriptions."""

    def __init__(
        self,
        store: KeyValueStore,
        dispatcher: NotificationDispatcher,
        utc_offset_hours: int = 9,
        url: str = "/",
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.utc_offset_hours = utc_offset_hours
        self.url = url

    def run(self, now_ms: int | None = None) -> ReminderRunResult:
        now = now_ms if now_ms is not None else keys.now_ms()
        today_start = today_start_ms(now, self.utc_offset_hours)
        result = ReminderRunResult()
        logger.info(
            "Reminder run started (today starts %s)",
            datetime.fromtimestamp(today_start / 1000, tz=timezone.utc).isoformat(),
        )

        try:
            subscriptions = push_service.list_all(self.store)
        except Exception as exc:
            report_error("reminder", exc, {"stage": "list_subscriptions"})
            raise

        by_family: dict[str, list[dict]] = defaultdict(list)
        for subscription in subscriptions:
            if subscription.get("familyId"):
                by_family[subscription["familyId"]].append(subscription)
        logger.info("Push subscriptions: %d across %d families", len(subscriptions), len(by_family))

        payload = build_payload(REMINDER_MESSAGE, self.url)
        for family_id, family_subscriptions in by_family.items():
            result.families += 1
            try:
                self._remind_family(family_id, family_subscriptions, today_start, now, payload, result)
            except Exception as exc:
                # One family failing must not cost the others their reminders
                self.store.session.rollback()
                result.family_errors += 1
                report_error("reminder", exc, {"stage": "family", "familyId": family_id})

        logger.info("Reminder run completed: %s", result.as_dict())
        return result

    def _remind_family(
        self,
        family_id: str,
        subscriptions: list[dict],
        today_start: int,
        now: int,
        payload: str,
        result: ReminderRunResult,
    ) -> None:
        washed = event_service.actors_since(self.store, family_id, today_start, now)
        logger.info(
            "Family %s: %d washed today, %d subscriptions",
            family_id, len(washed), len(subscriptions),
        )

        for subscription in subscriptions:
            user_id = subscription.get("userSub")
            if user_id in washed:
                result.skipped += 1
                continue

            try:
                outcome = self.dispatcher.deliver(subscription, payload)
            except InvalidArgument:
                logger.warning("Malformed push subscription %s skipped", subscription.get("sk"))
                result.failed += 1
                continue

            if outcome is DeliveryResult.DELIVERED:
                result.sent += 1
            else:
                result.failed += 1
                if outcome is DeliveryResult.GONE:
                    result.pruned += 1
