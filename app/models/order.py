"""
app/models/order.py

Purpose: Order document model

- Customer contact block (mobile is the primary identifier)
- Ordered test items with unit and discounted prices
- Totals and lifecycle status
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, List


class OrderStatus(str, Enum):
    """Lifecycle of an order. Orders are created as PENDING."""

    RECEIVED = "Received"
    PENDING = "Pending"
    COMPLETED = "Completed"


ALLOWED_STATUSES = [status.value for status in OrderStatus]

REQUIRED_CUSTOMER_FIELDS = ["name", "mobile", "age", "city"]

DEFAULT_PREFERRED_TIME = "09:00"


def compute_totals(items: List[Dict[str, Any]]) -> Dict[str, float]:
    """
    Sums list and discounted prices over all items.

    coverage is the amount the customer saves: original - final.
    """
    original = sum(item["price"] * item["quantity"] for item in items)
    final = sum(item["discounted_price"] * item["quantity"] for item in items)
    return {
        "original": original,
        "final": final,
        "coverage": original - final,
    }


def build_order_document(
    customer: Dict[str, Any],
    items: List[Dict[str, Any]],
    totals: Dict[str, float],
    preferred_date: str,
    preferred_time: str,
) -> Dict[str, Any]:
    now = datetime.utcnow()
    return {
        "customer": customer,
        "preferred_date": preferred_date,
        "preferred_time": preferred_time,
        "items": items,
        "totals": totals,
        "status": OrderStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    }
