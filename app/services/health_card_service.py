"""
app/services/health_card_service.py

Purpose: Health card records

- Create-or-update of the signed-in user's card in one upsert
- Card number, issue date and validity are fixed at creation
- Lookup of the user's card
"""

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import Dict, Any

from app.db.mongo import get_health_cards_collection
from app.models.health_card import OPTIONAL_TEXT_FIELDS, REQUIRED_FIELDS, build_issue_fields
from app.schemas.health_card import HealthCardIn
from app.core.exceptions import ValidationError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from utils.validation_utils import is_blank, sanitize_input

logger = get_logger(__name__)

REQUIRED_FIELDS_MESSAGE = "Name, CNIC/B-Form, Phone, Date of Birth, Gender, and Address are required"


def serialize_health_card(card: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(card)
    data["_id"] = str(data["_id"])
    for key in ("issue_date", "validity", "created_at", "updated_at"):
        if isinstance(data.get(key), datetime):
            data[key] = data[key].isoformat()
    return data


def _card_fields(payload: HealthCardIn) -> Dict[str, Any]:
    for field in REQUIRED_FIELDS:
        if is_blank(getattr(payload, field)):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    fields = {field: sanitize_input(getattr(payload, field)) for field in REQUIRED_FIELDS}
    for field in OPTIONAL_TEXT_FIELDS:
        fields[field] = sanitize_input(getattr(payload, field))

    contact = payload.emergency_contact
    fields["emergency_contact"] = {
        "name": sanitize_input(contact.name) if contact else "",
        "phone": sanitize_input(contact.phone) if contact else "",
    }
    return fields


async def save_health_card(user_id: str, payload: HealthCardIn) -> Dict[str, Any]:
    """
    Creates the user's card, or overwrites its details if one exists.

    Returns:
        The stored card

    Raises:
        ValidationError: A required field is blank
    """
    fields = _card_fields(payload)
    now = datetime.utcnow()
    cards = get_health_cards_collection()

    update = {
        "$set": {**fields, "updated_at": now},
        "$setOnInsert": build_issue_fields(now),
    }

    with LogContext(user_id=user_id):
        try:
            card = await cards.find_one_and_update(
                {"user_id": user_id}, update,
                upsert=True, return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # A concurrent first save won the insert; apply ours as an update
            card = await cards.find_one_and_update(
                {"user_id": user_id}, {"$set": update["$set"]},
                return_document=ReturnDocument.AFTER,
            )

        logger.info(f"Health card saved: {card['health_card_number']}")

    return card


async def get_health_card(user_id: str) -> Dict[str, Any]:
    card = await get_health_cards_collection().find_one({"user_id": user_id})
    if card is None:
        raise ResourceNotFoundError("Health card not found")
    return card
