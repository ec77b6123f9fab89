"""Internal error reporting: structured log record plus an optional ops webhook."""

import json
import logging
from datetime import datetime, timezone

import httpx

from handwash.config import settings

logger = logging.getLogger(__name__)


def report_error(source: str, exc: BaseException, context: dict | None = None) -> None:
    """Log a structured diagnostic for an unexpected failure and notify the ops channel.

    Never raises: a failing notification must not mask the original error.
    """
    record = {
        "source": source,
        "error": f"{type(exc).__name__}: {exc}",
        "context": context or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    logger.error(
        "internal error %s",
        json.dumps(record, ensure_ascii=False, default=str),
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    _notify_channel(record)


def _notify_channel(record: dict) -> None:
    if not settings.alert_webhook_url:
        return
    try:
        response = httpx.post(
            settings.alert_webhook_url,
            json={"text": f"[{settings.server_name}] {record['source']}: {record['error']}", **record},
            timeout=settings.alert_timeout_seconds,
        )
        response.raise_for_status()
    except Exception as e:
        logger.warning("Failed to send ops alert for %s: %s", record.get("source"), e)
