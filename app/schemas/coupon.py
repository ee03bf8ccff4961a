from pydantic import BaseModel, Field
from typing import List, Optional


class CouponSeedRequest(BaseModel):
    """Bulk load of coupon codes into one lab's pool."""
    lab_id: Optional[str] = Field(default=None, description="Defaults to the coupon-eligible lab")
    coupon_numbers: List[str] = Field(..., min_length=1)


class CouponSeedResponse(BaseModel):
    lab_id: str
    added: int
    skipped: int
