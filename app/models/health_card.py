"""
app/models/health_card.py

Purpose: Health card record

- One card per user, editable by its owner
- Card number and issue/validity dates are set once, on first save
- Valid for one year from the issue date
"""

import secrets
import time
from datetime import datetime
from typing import Dict, Any

CARD_NUMBER_PREFIX = "ZUNF"

# Required on every save, in the order the error message names them
REQUIRED_FIELDS = ["name", "id_card", "phone", "date_of_birth", "gender", "address"]

OPTIONAL_TEXT_FIELDS = [
    "email",
    "blood_group",
    "organization_name",
    "employee_id",
    "medical_conditions",
    "allergies",
]


def generate_card_number() -> str:
    """
    Example: "ZUNF-71234567-0042"
    """
    timestamp = str(int(time.time() * 1000))[-8:]
    return f"{CARD_NUMBER_PREFIX}-{timestamp}-{secrets.randbelow(10000):04d}"


def calculate_validity(issue_date: datetime) -> datetime:
    """Same date one year on; 29 Feb rolls over to 1 Mar."""
    try:
        return issue_date.replace(year=issue_date.year + 1)
    except ValueError:
        return issue_date.replace(year=issue_date.year + 1, month=3, day=1)


def build_issue_fields(now: datetime) -> Dict[str, Any]:
    """Fields written only when the card is first created."""
    return {
        "health_card_number": generate_card_number(),
        "issue_date": now,
        "validity": calculate_validity(now),
        "created_at": now,
    }
