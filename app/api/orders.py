"""
app/api/orders.py

Purpose: Order endpoints

- POST creates the order and answers 201 right away; the confirmation SMS
  and coupon issuance run afterwards as a background task
- GET lists orders (optionally for one customer)
- PATCH changes status, DELETE removes an order
"""

from fastapi import APIRouter, BackgroundTasks, Query
from typing import Optional

from app.core.logging import get_logger
from app.schemas.order import OrderCreate, OrderStatusUpdate
from app.schemas.response import MessageResponse
from app.services import order_service
from app.services.order_service import serialize_order
from app.services.outbox_service import process_confirmation

logger = get_logger(__name__)
router = APIRouter(prefix="/orders")


@router.post("", status_code=201)
async def create_order(payload: OrderCreate, background_tasks: BackgroundTasks):
    """
    Creates an order with status Pending.

    Responds 400 on missing customer fields or items, 429 when a metered
    order exceeds the customer's SMS quota.
    """
    order = await order_service.create_order(payload)
    background_tasks.add_task(process_confirmation, str(order["_id"]))
    return serialize_order(order)


@router.get("")
async def list_orders(mobile: Optional[str] = Query(None, description="Customer mobile or email")):
    orders = await order_service.list_orders(mobile)
    return {"orders": [serialize_order(order) for order in orders]}


@router.patch("/{order_id}/status")
async def update_order_status(order_id: str, payload: OrderStatusUpdate):
    order = await order_service.update_order_status(order_id, payload.status)
    return serialize_order(order)


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(order_id: str):
    await order_service.delete_order(order_id)
    return {"message": "Order deleted successfully"}
