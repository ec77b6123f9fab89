"""One-shot reminder run, for hosts that trigger the job from cron.

    handwash-send-reminders
"""

import logging
import sys

from handwash.config import settings
from handwash.database import init_db, store_scope
from handwash.services.notification_service import NotificationDispatcher, VapidCredentials
from handwash.services.reminder_service import ReminderRunResult, ReminderScheduler

logger = logging.getLogger(__name__)


def run_reminders(credentials: VapidCredentials, now_ms: int | None = None) -> ReminderRunResult:
    """Run one reminder pass with a fresh session."""
    with store_scope() as store:
        scheduler = ReminderScheduler(
            store,
            NotificationDispatcher(store, credentials),
            utc_offset_hours=settings.reminder_utc_offset_hours,
            url=settings.reminder_url,
        )
        return scheduler.run(now_ms)


def main() -> int:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    init_db()
    try:
        result = run_reminders(VapidCredentials.from_settings(settings))
    except Exception:
        # Already reported by the scheduler
        logger.error("Reminder run aborted")
        return 1
    if result.family_errors:
        logger.warning("Reminder run finished with %d failed families", result.family_errors)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
