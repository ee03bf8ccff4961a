"""
app/models/user.py

Purpose: Account document models

- Pending signup: unverified registration, deleted on verification or
  by TTL 24h after creation
- User: verified account keyed by mobile
- Passwords are only ever stored as bcrypt hashes
"""

from datetime import datetime
from typing import Dict, Any


def build_user_document(pending_user: Dict[str, Any]) -> Dict[str, Any]:
    """Promotes a verified pending signup into a permanent user record."""
    now = datetime.utcnow()
    return {
        "name": pending_user["name"],
        "mobile": pending_user["mobile"],
        "password_hash": pending_user["password_hash"],
        "is_mobile_verified": True,
        "reset_code": None,
        "reset_code_expiry": None,
        "created_at": now,
        "updated_at": now,
    }


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """Fields safe to return to the client."""
    return {
        "id": str(user["_id"]),
        "name": user["name"],
        "mobile": user["mobile"],
        "is_mobile_verified": user.get("is_mobile_verified", False),
    }
