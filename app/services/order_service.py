"""
app/services/order_service.py

Purpose: Order store operations

- Validates and persists new orders (status Pending)
- Quota pre-check for metered orders happens before anything is written
- Queues the confirmation for every persisted order
- Lists, updates status of, and deletes orders
"""

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from datetime import datetime, date
from typing import Optional, Dict, Any, List

from app.db.mongo import get_orders_collection
from app.models.order import (
    ALLOWED_STATUSES,
    DEFAULT_PREFERRED_TIME,
    REQUIRED_CUSTOMER_FIELDS,
    build_order_document,
    compute_totals,
)
from app.schemas.order import OrderCreate
from app.services import quota_service, outbox_service
from app.services.confirmation_service import is_metered
from app.core.exceptions import ValidationError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext, mask_mobile
from utils.validation_utils import is_blank, normalize_mobile

logger = get_logger(__name__)


def _parse_order_id(order_id: str) -> ObjectId:
    try:
        return ObjectId(order_id)
    except (InvalidId, TypeError):
        raise ResourceNotFoundError("Order not found")


def serialize_order(order: Dict[str, Any]) -> Dict[str, Any]:
    """Converts a stored order into a JSON-safe dict."""
    data = dict(order)
    data["_id"] = str(data["_id"])
    for key in ("created_at", "updated_at"):
        if isinstance(data.get(key), datetime):
            data[key] = data[key].isoformat()
    return data


def validate_order_payload(payload: OrderCreate) -> None:
    """
    Raises:
        ValidationError: Missing customer/items, a blank required customer
            field, or a final total above the original total
    """
    if payload.customer is None or not payload.items:
        raise ValidationError("Customer info and at least one item are required")

    for field in REQUIRED_CUSTOMER_FIELDS:
        if is_blank(getattr(payload.customer, field)):
            raise ValidationError(f"Missing customer field: {field}")


def _build_customer(payload: OrderCreate) -> Dict[str, Any]:
    customer = payload.customer
    data = {
        "name": customer.name.strip(),
        "mobile": normalize_mobile(customer.mobile),
        "age": customer.age.strip(),
        "city": customer.city.strip(),
    }
    if not is_blank(customer.email):
        data["email"] = customer.email.strip()
    return data


def _build_totals(payload: OrderCreate, items: List[Dict[str, Any]]) -> Dict[str, float]:
    totals = compute_totals(items)

    if payload.totals is not None:
        if payload.totals.original is not None:
            totals["original"] = payload.totals.original
        if payload.totals.final is not None:
            totals["final"] = payload.totals.final
        totals["coverage"] = totals["original"] - totals["final"]

    if totals["final"] > totals["original"]:
        raise ValidationError("Final total cannot exceed the original total")

    return totals


async def create_order(payload: OrderCreate) -> Dict[str, Any]:
    """
    Validates, quota-checks and persists a new order, then queues its
    confirmation. The caller is responsible for running the queued
    confirmation (see outbox_service.process_confirmation).

    Returns:
        The stored order document

    Raises:
        ValidationError: Invalid payload
        QuotaExceededError: Metered order from a customer at the SMS limit
    """
    validate_order_payload(payload)

    customer = _build_customer(payload)
    items = [item.model_dump() for item in payload.items]
    totals = _build_totals(payload, items)

    order = build_order_document(
        customer=customer,
        items=items,
        totals=totals,
        preferred_date=payload.preferred_date or date.today().isoformat(),
        preferred_time=payload.preferred_time or DEFAULT_PREFERRED_TIME,
    )

    with LogContext(mobile=mask_mobile(customer["mobile"])):
        await quota_service.ensure_quota_or_fail(customer["mobile"], is_metered(order))

        orders = get_orders_collection()
        result = await orders.insert_one(order)
        order["_id"] = result.inserted_id

        try:
            await outbox_service.enqueue_confirmation(str(result.inserted_id))
        except Exception as e:
            # The order stands; the request's background run claims it without an entry
            logger.error(
                f"Could not queue confirmation: {e}",
                extra={"order_id": str(result.inserted_id)},
                exc_info=True
            )

        logger.info(
            f"✅ Order created: {len(items)} item(s), final total {totals['final']}",
            extra={"order_id": str(result.inserted_id)}
        )

    return order


async def list_orders(mobile: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Returns orders newest first, optionally for one customer.

    The lookup value is matched against both mobile and email, including the
    legacy form where "+92" was prepended to an email address.
    """
    query: Dict[str, Any] = {}

    if mobile:
        lookup = str(mobile).strip()
        mangled = f"+92{lookup}" if "@" in lookup and not lookup.startswith("+") else lookup
        query = {
            "$or": [
                {"customer.mobile": lookup},
                {"customer.email": lookup},
                {"customer.mobile": mangled},
            ]
        }

    orders = get_orders_collection()
    cursor = orders.find(query).sort("created_at", DESCENDING)
    found = await cursor.to_list(length=None)

    logger.info(f"📋 Found {len(found)} order(s)")
    return found


async def update_order_status(order_id: str, status: Optional[str]) -> Dict[str, Any]:
    """
    Raises:
        ValidationError: Status outside the allowed set
        ResourceNotFoundError: No such order
    """
    if status not in ALLOWED_STATUSES:
        raise ValidationError("Invalid status value", details={"allowed": ALLOWED_STATUSES})

    orders = get_orders_collection()
    order = await orders.find_one_and_update(
        {"_id": _parse_order_id(order_id)},
        {"$set": {"status": status, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )

    if order is None:
        raise ResourceNotFoundError("Order not found")

    logger.info(f"Order status set to {status}", extra={"order_id": order_id})
    return order


async def delete_order(order_id: str) -> None:
    """
    Raises:
        ResourceNotFoundError: No such order
    """
    orders = get_orders_collection()
    result = await orders.delete_one({"_id": _parse_order_id(order_id)})

    if result.deleted_count == 0:
        raise ResourceNotFoundError("Order not found")

    logger.info("Order deleted", extra={"order_id": order_id})
