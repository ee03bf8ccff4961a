"""
app/services/coupon_service.py

Purpose: Coupon pool lifecycle

- Reserves one Available coupon per eligible order
- Commits (Sent) or releases (Available) a reservation
- Every transition is a single conditional update on the coupon's state,
  so two concurrent reservations can never receive the same code
- Seeding and reconciliation helpers for operators
"""

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import Optional, Dict, Any, List, Iterable, Union

from app.db.mongo import get_coupons_collection
from app.models.coupon import CouponState, build_coupon_document
from app.core.config import settings
from app.core.exceptions import CouponUnavailableError, CouponStateError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext, mask_mobile

logger = get_logger(__name__)


def _as_object_id(coupon_id: Union[str, ObjectId]) -> ObjectId:
    if isinstance(coupon_id, ObjectId):
        return coupon_id
    try:
        return ObjectId(coupon_id)
    except (InvalidId, TypeError):
        raise ResourceNotFoundError(f"Coupon {coupon_id} not found")


async def reserve_coupon(
    order_id: Union[str, ObjectId],
    recipient_mobile: str,
    lab_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Atomically claims the oldest Available coupon of a lab.

    Args:
        order_id: Order the coupon is being issued for
        recipient_mobile: Mobile the coupon will be sent to
        lab_id: Owning lab (defaults to the coupon-eligible lab)

    Returns:
        The reserved coupon document

    Raises:
        CouponUnavailableError: If the lab has no Available coupon left
    """
    lab_id = lab_id or settings.COUPON_LAB_ID
    coupons = get_coupons_collection()

    with LogContext(order_id=str(order_id), mobile=mask_mobile(recipient_mobile)):
        coupon = await coupons.find_one_and_update(
            {"lab_id": lab_id, "state": CouponState.AVAILABLE.value},
            {
                "$set": {
                    "state": CouponState.RESERVED.value,
                    "reserved_for": {
                        "order_id": str(order_id),
                        "mobile": recipient_mobile,
                    },
                    "reserved_at": datetime.utcnow(),
                }
            },
            sort=[("_id", ASCENDING)],
            return_document=ReturnDocument.AFTER,
        )

        if coupon is None:
            logger.warning(f"Coupon pool exhausted for lab {lab_id}")
            raise CouponUnavailableError(lab_id)

        logger.info(
            "Coupon reserved",
            extra={"coupon_id": str(coupon["_id"])}
        )
        return coupon


async def mark_coupon_sent(coupon_id: Union[str, ObjectId]) -> None:
    """
    Commits a reservation: Reserved -> Sent. Sent coupons are never reused.

    Raises:
        CouponStateError: If the coupon is not currently Reserved
    """
    coupons = get_coupons_collection()
    oid = _as_object_id(coupon_id)

    result = await coupons.update_one(
        {"_id": oid, "state": CouponState.RESERVED.value},
        {
            "$set": {
                "state": CouponState.SENT.value,
                "sent_at": datetime.utcnow(),
            }
        },
    )

    if result.modified_count == 0:
        logger.error("Cannot mark coupon as sent", extra={"coupon_id": str(oid)})
        raise CouponStateError(oid, CouponState.RESERVED.value)

    logger.info("Coupon marked as sent", extra={"coupon_id": str(oid)})


async def release_coupon(coupon_id: Union[str, ObjectId]) -> None:
    """
    Undoes a reservation: Reserved -> Available, clearing the holder.

    Raises:
        CouponStateError: If the coupon is not currently Reserved
    """
    coupons = get_coupons_collection()
    oid = _as_object_id(coupon_id)

    result = await coupons.update_one(
        {"_id": oid, "state": CouponState.RESERVED.value},
        {
            "$set": {
                "state": CouponState.AVAILABLE.value,
                "reserved_for": None,
                "reserved_at": None,
            }
        },
    )

    if result.modified_count == 0:
        logger.error("Cannot release coupon", extra={"coupon_id": str(oid)})
        raise CouponStateError(oid, CouponState.RESERVED.value)

    logger.info("Coupon released back to pool", extra={"coupon_id": str(oid)})


async def add_coupons(lab_id: str, coupon_numbers: Iterable[str]) -> Dict[str, int]:
    """
    Seeds a lab's pool. Codes that already exist are skipped.

    Returns:
        {"added": n, "skipped": m}
    """
    coupons = get_coupons_collection()
    added = 0
    skipped = 0

    for number in coupon_numbers:
        number = str(number).strip()
        if not number:
            continue
        try:
            await coupons.insert_one(build_coupon_document(lab_id, number))
            added += 1
        except DuplicateKeyError:
            skipped += 1

    logger.info(f"Coupon pool seeded for lab {lab_id}: added={added}, skipped={skipped}")
    return {"added": added, "skipped": skipped}


async def get_pool_summary(lab_id: Optional[str] = None) -> Dict[str, int]:
    """
    Counts coupons per state, optionally for one lab.
    """
    coupons = get_coupons_collection()
    base_query: Dict[str, Any] = {"lab_id": lab_id} if lab_id else {}

    summary = {}
    for state in CouponState:
        summary[state.value] = await coupons.count_documents({**base_query, "state": state.value})
    return summary


async def find_stale_reservations(older_than: datetime) -> List[Dict[str, Any]]:
    """
    Lists coupons still Reserved since before `older_than`.

    These are left behind when a confirmation run died between reserve and
    commit/release. Whether the SMS went out is unknown, so they are only
    reported here and released by an operator.
    """
    coupons = get_coupons_collection()
    cursor = coupons.find(
        {"state": CouponState.RESERVED.value, "reserved_at": {"$lt": older_than}}
    ).sort("reserved_at", ASCENDING)
    return await cursor.to_list(length=None)
