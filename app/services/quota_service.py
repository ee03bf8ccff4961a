"""
app/services/quota_service.py

Purpose: SMS quota ledger

- Caps successful metered confirmation SMS per customer mobile
- Fixed window: the count restarts SMS_QUOTA_WINDOW_HOURS after the first
  send of the window
- Checked before an order is accepted, incremented only after a confirmed
  send; the gap between the two makes this a soft cap
- Metering is decided by the caller, never inferred here
"""

from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from app.db.mongo import get_quota_collection
from app.core.config import settings
from app.core.exceptions import QuotaExceededError
from app.core.logging import get_logger, mask_mobile

logger = get_logger(__name__)


def _window() -> timedelta:
    return timedelta(hours=settings.SMS_QUOTA_WINDOW_HOURS)


def _window_is_open(record: Optional[Dict[str, Any]], now: datetime) -> bool:
    if not record or not record.get("window_started_at"):
        return False
    return record["window_started_at"] + _window() > now


async def get_quota_status(identifier: str) -> Dict[str, Any]:
    """
    Current usage for one customer.

    Returns:
        {"identifier", "count", "limit", "remaining", "window_ends_at"}
    """
    identifier = str(identifier).strip()
    quota = get_quota_collection()
    now = datetime.utcnow()

    record = await quota.find_one({"identifier": identifier})

    if _window_is_open(record, now):
        count = record.get("count", 0)
        window_ends_at = record["window_started_at"] + _window()
    else:
        count = 0
        window_ends_at = None

    return {
        "identifier": identifier,
        "count": count,
        "limit": settings.SMS_QUOTA_LIMIT,
        "remaining": max(settings.SMS_QUOTA_LIMIT - count, 0),
        "window_ends_at": window_ends_at,
    }


async def ensure_quota_or_fail(identifier: str, counts_against_quota: bool) -> None:
    """
    Rejects a metered request when the customer is at or over the limit.

    Args:
        identifier: Customer mobile
        counts_against_quota: False for non-metered sends, which always pass

    Raises:
        QuotaExceededError: With seconds until the window resets
    """
    if not counts_against_quota:
        return

    status = await get_quota_status(identifier)
    if status["count"] < status["limit"]:
        return

    retry_after = None
    if status["window_ends_at"] is not None:
        remaining = status["window_ends_at"] - datetime.utcnow()
        retry_after = max(int(remaining.total_seconds()), 1)

    logger.warning(
        f"SMS quota exceeded ({status['count']}/{status['limit']})",
        extra={"mobile": mask_mobile(identifier)}
    )
    raise QuotaExceededError(retry_after=retry_after)


async def record_success(identifier: str, counts_against_quota: bool) -> None:
    """
    Counts one successful metered send. Never decrements.

    Both steps are single-document atomic updates, so concurrent sends for
    the same mobile each add exactly one.

    Args:
        identifier: Customer mobile
        counts_against_quota: False for non-metered sends, which are not counted
    """
    if not counts_against_quota:
        return

    identifier = str(identifier).strip()
    quota = get_quota_collection()
    now = datetime.utcnow()

    # Lapsed window: restart it at zero. Only one concurrent caller can match.
    await quota.update_one(
        {
            "identifier": identifier,
            "$or": [
                {"window_started_at": {"$lte": now - _window()}},
                {"window_started_at": None},
            ],
        },
        {"$set": {"count": 0, "window_started_at": now}},
    )

    increment = {
        "$inc": {"count": 1},
        "$set": {"last_sent_at": now},
        "$setOnInsert": {"window_started_at": now, "created_at": now},
    }
    try:
        await quota.update_one({"identifier": identifier}, increment, upsert=True)
    except DuplicateKeyError:
        # Lost the insert race; the record exists now
        await quota.update_one({"identifier": identifier}, increment)

    logger.debug("Quota usage recorded", extra={"mobile": mask_mobile(identifier)})
