"""
app/api/coupons.py

Purpose: Operator endpoints for the coupon pool

- Seed a lab's pool
- Per-state counts
- List and release reservations left behind by interrupted confirmations
- Every route requires the X-Admin-Key header
"""

from fastapi import APIRouter, Depends, Query
from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import require_operator
from app.schemas.coupon import CouponSeedRequest, CouponSeedResponse
from app.schemas.response import MessageResponse
from app.services import coupon_service

logger = get_logger(__name__)
router = APIRouter(prefix="/coupons", dependencies=[Depends(require_operator)])


def _serialize_coupon(coupon: dict) -> dict:
    data = dict(coupon)
    data["_id"] = str(data["_id"])
    for key in ("reserved_at", "sent_at", "created_at"):
        if isinstance(data.get(key), datetime):
            data[key] = data[key].isoformat()
    return data


@router.post("", status_code=201, response_model=CouponSeedResponse)
async def seed_coupons(payload: CouponSeedRequest):
    lab_id = payload.lab_id or settings.COUPON_LAB_ID
    counts = await coupon_service.add_coupons(lab_id, payload.coupon_numbers)
    return {"lab_id": lab_id, **counts}


@router.get("/summary")
async def pool_summary(lab_id: Optional[str] = Query(None)):
    lab_id = lab_id or settings.COUPON_LAB_ID
    return {"lab_id": lab_id, "states": await coupon_service.get_pool_summary(lab_id)}


@router.get("/stale")
async def stale_reservations(
    older_than_minutes: int = Query(30, ge=1, description="Reserved for longer than this")
):
    cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)
    coupons = await coupon_service.find_stale_reservations(cutoff)
    return {"coupons": [_serialize_coupon(coupon) for coupon in coupons]}


@router.post("/{coupon_id}/release", response_model=MessageResponse)
async def release_coupon(coupon_id: str):
    """Manual reconciliation: return a stuck reservation to the pool."""
    await coupon_service.release_coupon(coupon_id)
    logger.warning(f"Coupon {coupon_id} released by operator")
    return {"message": "Coupon released"}
