"""
utils/validation_utils.py

Purpose: Input validation

- Blank-field checks for customer and signup payloads
- Mobile number normalization
- Verification code format checks
- Input sanitization
"""

import re
from typing import Any, Optional


def is_blank(value: Any) -> bool:
    """
    True for None and for values that are empty once stringified and stripped.
    """
    if value is None:
        return True
    return not str(value).strip()


def normalize_mobile(mobile: Optional[Any]) -> str:
    """
    Normalizes a mobile number for storage and lookups.

    Mobile numbers are identifiers (quota ledger, order history, accounts),
    so every entry point must apply the same rule: trim surrounding
    whitespace and keep the number otherwise as entered.
    """
    if mobile is None:
        return ""
    return str(mobile).strip()


def validate_pakistani_mobile(mobile: str) -> bool:
    """
    Validates Pakistani mobile formats: 03XXXXXXXXX, 923XXXXXXXXX, +923XXXXXXXXX.

    Args:
        mobile: Phone number string

    Returns:
        True if the number looks like a Pakistani mobile
    """
    if not mobile:
        return False

    mobile = re.sub(r"[\s\-\(\)]", "", mobile)
    return bool(re.match(r"^(?:\+?92|0)3\d{9}$", mobile))


def validate_code_format(code: Any, length: int = 6) -> bool:
    """
    Validates a numeric verification/reset code.
    """
    if code is None:
        return False
    return bool(re.match(rf"^\d{{{length}}}$", str(code).strip()))


def sanitize_input(text: Optional[str], max_length: int = 200) -> str:
    """
    Strips control characters and surrounding whitespace, and truncates.
    """
    if not text:
        return ""
    text = re.sub(r"[\x00-\x1f\x7f]", "", text)
    return text.strip()[:max_length]
