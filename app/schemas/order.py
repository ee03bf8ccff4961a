"""
app/schemas/order.py

Purpose: Request/response models for the order endpoints

Accepts the storefront's camelCase payloads as well as snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerIn(_Payload):
    """Customer block. Required fields are checked by the order service so
    the client gets the exact missing field name back."""
    name: Optional[str] = None
    mobile: Optional[str] = None
    age: Optional[Union[str, int]] = None
    city: Optional[str] = None
    email: Optional[str] = None

    @field_validator("age", mode="before")
    @classmethod
    def age_as_text(cls, v):
        if v is None:
            return v
        return str(v)

    @field_validator("mobile", mode="before")
    @classmethod
    def mobile_as_text(cls, v):
        if v is None:
            return v
        return str(v)


class OrderItemIn(_Payload):
    test_id: str
    test_name: str
    lab_id: str
    lab_name: str
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0, ge=0)
    discounted_price: float = Field(default=0, ge=0)
    pinned: bool = False


class TotalsIn(_Payload):
    original: Optional[float] = Field(default=None, ge=0)
    final: Optional[float] = Field(default=None, ge=0)


class OrderCreate(_Payload):
    customer: Optional[CustomerIn] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    items: Optional[List[OrderItemIn]] = None
    totals: Optional[TotalsIn] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None
