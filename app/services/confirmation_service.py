"""
app/services/confirmation_service.py

Purpose: Order confirmation saga

Runs after an order is persisted, outside the request:
1. Decide whether the order is metered (touches the coupon lab)
2. Reserve a coupon for metered orders (an empty pool is not an error)
3. Compose the confirmation text
4. Send it, bounded by SMS_SEND_TIMEOUT_SECONDS
5. On success: count quota, mark the coupon Sent
6. On failure: release the coupon, count nothing

The order itself is only read; its status never depends on the outcome.
"""

import asyncio
from typing import Optional, Dict, Any

from app.flow.states import ConfirmationState, ConfirmationResult
from app.services import coupon_service, quota_service
from app.services.sms_gateway import SMSGateway, get_sms_gateway
from app.core.config import settings
from app.core.exceptions import CouponUnavailableError, SendFailureError
from app.core.logging import get_logger, LogContext, mask_mobile

logger = get_logger(__name__)


def is_metered(order: Dict[str, Any]) -> bool:
    """True if any item belongs to the coupon-eligible lab."""
    return any(item.get("lab_id") == settings.COUPON_LAB_ID for item in order.get("items", []))


def build_confirmation_message(order: Dict[str, Any], coupon_number: Optional[str] = None) -> str:
    """
    Builds the booking confirmation SMS.

    Example:
        "Chughtai Lab | ZUNF Medicare: Your tests are booked. Use Coupon: CH-1001.
         For help: 03090622004. Thank you for trusting ZUNF Medicare!"
    """
    lab_names = list(dict.fromkeys(item["lab_name"] for item in order["items"]))
    labs = ", ".join(lab_names)

    message = f"{labs} | {settings.BRAND_NAME}: Your tests are booked."

    if coupon_number:
        message += f" Use Coupon: {coupon_number}."

    message += f" For help: {settings.SUPPORT_PHONE}. Thank you for trusting {settings.BRAND_NAME}!"

    return message


async def _send_with_timeout(gateway: SMSGateway, mobile: str, text: str) -> None:
    try:
        await asyncio.wait_for(
            gateway.send(mobile, text, settings.SMS_SENDER_ID),
            timeout=settings.SMS_SEND_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as e:
        raise SendFailureError(
            f"SMS gateway did not answer within {settings.SMS_SEND_TIMEOUT_SECONDS}s"
        ) from e


async def send_order_confirmation(
    order: Dict[str, Any],
    gateway: Optional[SMSGateway] = None,
) -> ConfirmationResult:
    """
    Runs the confirmation saga for one persisted order.

    Args:
        order: Order document as stored
        gateway: SMS gateway to use (defaults to the process-wide one)

    Returns:
        ConfirmationResult in COMMITTED or RELEASED_AND_FAILED state

    Store failures propagate to the caller; a coupon reserved before such a
    failure stays Reserved until an operator releases it.
    """
    gateway = gateway or get_sms_gateway()
    order_id = str(order["_id"])
    mobile = str(order["customer"]["mobile"]).strip()

    result = ConfirmationResult(order_id=order_id, metered=is_metered(order))

    with LogContext(order_id=order_id, mobile=mask_mobile(mobile)):
        coupon = None

        if result.metered:
            try:
                coupon = await coupon_service.reserve_coupon(order_id, mobile)
            except CouponUnavailableError:
                logger.warning("No coupon left; confirming without a coupon")
            else:
                result.coupon_id = str(coupon["_id"])
                result.coupon_number = coupon["coupon_number"]
                result.advance(ConfirmationState.COUPON_RESERVED)

        result.message = build_confirmation_message(order, result.coupon_number)

        try:
            await _send_with_timeout(gateway, mobile, result.message)
        except Exception as e:
            result.error = e.message if isinstance(e, SendFailureError) else str(e)
            logger.error(
                f"Failed to send confirmation SMS: {result.error}",
                exc_info=not isinstance(e, SendFailureError)
            )
            if coupon is not None:
                await coupon_service.release_coupon(coupon["_id"])
            result.advance(ConfirmationState.RELEASED_AND_FAILED)
            return result

        result.advance(ConfirmationState.MESSAGE_SENT)

        await quota_service.record_success(mobile, result.metered)
        if coupon is not None:
            await coupon_service.mark_coupon_sent(coupon["_id"])

        result.advance(ConfirmationState.COMMITTED)
        logger.info(
            "Order confirmation committed",
            extra={"state": result.state.value}
        )
        return result
