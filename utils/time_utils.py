"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Verification / reset code expiry calculation and checks
"""

from datetime import datetime, timedelta
from typing import Optional


def expires_in(hours: int = 0, minutes: int = 0) -> datetime:
    """
    Returns the UTC timestamp `hours`/`minutes` from now.
    """
    return datetime.utcnow() + timedelta(hours=hours, minutes=minutes)


def is_expired(expiry: Optional[datetime]) -> bool:
    """
    Checks whether an expiry timestamp has passed. A missing expiry counts
    as expired.
    """
    if not expiry:
        return True
    return datetime.utcnow() > expiry
