from fastapi import APIRouter

from app.services.quota_service import get_quota_status

router = APIRouter(prefix="/quota")


@router.get("/{mobile}")
async def quota_status(mobile: str):
    """Current metered SMS usage for one customer."""
    status = await get_quota_status(mobile)
    if status["window_ends_at"] is not None:
        status["window_ends_at"] = status["window_ends_at"].isoformat()
    return status
