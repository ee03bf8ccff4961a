"""
app/api/health_card.py

Purpose: The signed-in user's health card
"""

from fastapi import APIRouter, Depends

from app.core.security import get_current_user_id
from app.schemas.health_card import HealthCardIn
from app.services import health_card_service
from app.services.health_card_service import serialize_health_card

router = APIRouter(prefix="/health-card")


@router.get("")
async def get_health_card(user_id: str = Depends(get_current_user_id)):
    card = await health_card_service.get_health_card(user_id)
    return {"health_card": serialize_health_card(card)}


@router.post("")
async def save_health_card(payload: HealthCardIn, user_id: str = Depends(get_current_user_id)):
    card = await health_card_service.save_health_card(user_id, payload)
    return {"message": "Health card saved successfully", "health_card": serialize_health_card(card)}
