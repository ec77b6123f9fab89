"""Background daily reminder trigger.

Runs as a daemon thread inside the API process and wakes once a day at the
configured wall-clock time in the reference timezone.
"""

import logging
import threading
from datetime import datetime, timezone

from handwash.config import settings
from handwash.jobs.send_reminders import run_reminders
from handwash.services.notification_service import VapidCredentials
from handwash.services.reminder_service import next_run_at

logger = logging.getLogger(__name__)


class ReminderWorker:
    """Daemon thread that performs one reminder run per day."""

    def __init__(self, credentials: VapidCredentials):
        self._credentials = credentials
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> bool:
        """Start the worker thread. Returns False when reminders are disabled."""
        if not settings.reminder_enabled:
            logger.info("Daily reminders disabled")
            return False
        if not self._credentials.configured:
            logger.warning("VAPID credentials not configured, reminders will not be delivered")

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="reminder-worker")
        self._thread.start()
        logger.info(
            "Reminder worker started, next run at %s",
            self.next_run().isoformat(),
        )
        return True

    def stop(self):
        """Stop waiting for the next run. A run in progress is not interrupted."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Reminder worker stopped")

    def next_run(self, after: datetime | None = None) -> datetime:
        return next_run_at(
            after or datetime.now(timezone.utc),
            settings.reminder_hour,
            settings.reminder_minute,
            settings.reminder_utc_offset_hours,
        )

    def _run(self):
        """Main worker loop."""
        target = self.next_run()
        while not self._stop.wait(timeout=_seconds_until(target)):
            try:
                run_reminders(self._credentials)
            except Exception as e:
                logger.error("Reminder run failed: %s", e)
            # Anchor on the slot that just fired so it cannot fire twice
            target = self.next_run(max(datetime.now(timezone.utc), target))


def _seconds_until(target: datetime) -> float:
    return max(0.0, (target - datetime.now(timezone.utc)).total_seconds())
