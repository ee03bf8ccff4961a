"""
app/models/coupon.py

Purpose: Coupon document model

A coupon is a single-use discount code owned by one partner lab.
Lifecycle: Available -> Reserved -> Sent, or Reserved -> Available on release.
Sent is terminal.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any


class CouponState(str, Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SENT = "Sent"


def build_coupon_document(lab_id: str, coupon_number: str) -> Dict[str, Any]:
    return {
        "coupon_number": coupon_number,
        "lab_id": lab_id,
        "state": CouponState.AVAILABLE.value,
        "reserved_for": None,
        "reserved_at": None,
        "sent_at": None,
        "created_at": datetime.utcnow(),
    }
