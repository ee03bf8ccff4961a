"""
app/services/outbox_service.py

Purpose: Durable hand-off for order confirmations

- An outbox entry is written for every created order
- The request schedules the confirmation in the background; the sweeper
  picks up entries whose background run never started (process restart)
- Claiming an entry is one conditional update (queued -> processing), so a
  confirmation runs at most once
- Entries stuck in processing are reported, never re-run: the SMS may
  already have gone out
"""

import asyncio
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from app.db.mongo import get_outbox_collection, get_orders_collection
from app.services.confirmation_service import send_order_confirmation
from app.core.config import settings
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)

QUEUED = "queued"
PROCESSING = "processing"
DONE = "done"
FAILED = "failed"


def _new_entry(order_id: str, state: str) -> Dict[str, Any]:
    now = datetime.utcnow()
    return {
        "order_id": str(order_id),
        "state": state,
        "outcome": None,
        "coupon_number": None,
        "error": None,
        "created_at": now,
        "claimed_at": now if state == PROCESSING else None,
        "finished_at": None,
    }


async def enqueue_confirmation(order_id: str) -> None:
    """
    Records that `order_id` needs a confirmation run.
    """
    outbox = get_outbox_collection()
    try:
        await outbox.insert_one(_new_entry(order_id, QUEUED))
    except DuplicateKeyError:
        logger.warning("Confirmation already queued", extra={"order_id": str(order_id)})


async def _claim(order_id: str) -> Optional[Dict[str, Any]]:
    outbox = get_outbox_collection()
    return await outbox.find_one_and_update(
        {"order_id": str(order_id), "state": QUEUED},
        {"$set": {"state": PROCESSING, "claimed_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


async def _adopt_unqueued(order_id: str) -> Optional[Dict[str, Any]]:
    """
    Claims an order whose entry was never written. Returns None when any
    entry already exists, whatever its state.
    """
    entry = _new_entry(order_id, PROCESSING)
    try:
        await get_outbox_collection().insert_one(entry)
    except DuplicateKeyError:
        return None
    logger.warning("Confirmation had no outbox entry; claimed directly")
    return entry


async def _finish(order_id: str, update: Dict[str, Any]) -> None:
    outbox = get_outbox_collection()
    await outbox.update_one(
        {"order_id": str(order_id)},
        {"$set": {**update, "finished_at": datetime.utcnow()}},
    )


async def process_confirmation(order_id: str) -> Optional[Dict[str, Any]]:
    """
    Claims and runs the confirmation for one order.

    Never raises: this runs detached from any caller, so failures are
    logged and recorded on the outbox entry.

    Returns:
        The run's result dict, or None if the entry was not claimable
    """
    order_id = str(order_id)

    with LogContext(order_id=order_id):
        try:
            entry = await _claim(order_id)
            if entry is None:
                entry = await _adopt_unqueued(order_id)
            if entry is None:
                logger.debug("Confirmation already claimed or finished")
                return None

            order = await get_orders_collection().find_one({"_id": ObjectId(order_id)})
            if order is None:
                logger.warning("Order vanished before confirmation")
                await _finish(order_id, {"state": FAILED, "error": "order not found"})
                return None

            result = await send_order_confirmation(order)

            await _finish(order_id, {
                "state": DONE,
                "outcome": result.state.value,
                "coupon_number": result.coupon_number,
                "error": result.error,
            })
            return result.to_dict()

        except Exception as e:
            logger.error(f"Confirmation run aborted: {e}", exc_info=True)
            try:
                await _finish(order_id, {"state": FAILED, "error": str(e)})
            except Exception as inner:
                logger.error(f"Could not record failed confirmation: {inner}")
            return None


async def drain_stale_confirmations() -> int:
    """
    Runs confirmations that were queued but never started.

    Returns:
        Number of entries processed
    """
    outbox = get_outbox_collection()
    cutoff = datetime.utcnow() - timedelta(seconds=settings.OUTBOX_STALE_SECONDS)

    stale = await outbox.find(
        {"state": QUEUED, "created_at": {"$lt": cutoff}}
    ).sort("created_at", 1).to_list(length=None)

    processed = 0
    for entry in stale:
        if await process_confirmation(entry["order_id"]) is not None:
            processed += 1

    stuck = await outbox.count_documents({"state": PROCESSING, "claimed_at": {"$lt": cutoff}})
    if stuck:
        logger.warning(f"{stuck} confirmation(s) stuck in processing; reconcile their coupons manually")

    if processed:
        logger.info(f"Recovered {processed} queued confirmation(s)")
    return processed


async def run_outbox_sweeper() -> None:
    """
    Background loop started with the application.
    """
    logger.info("Confirmation outbox sweeper started")
    while True:
        try:
            await drain_stale_confirmations()
        except Exception as e:
            logger.error(f"Outbox sweep failed: {e}", exc_info=True)
        await asyncio.sleep(settings.OUTBOX_SWEEP_INTERVAL_SECONDS)
