"""
app/schemas/auth.py

Purpose: Request/response models for the account endpoints

Fields are optional at this layer; the auth service reports which one is
missing with the same messages the storefront already shows.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional


class _AuthPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def numbers_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class SignupRequest(_AuthPayload):
    name: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(_AuthPayload):
    mobile: Optional[str] = None
    password: Optional[str] = None


class VerifyCodeRequest(_AuthPayload):
    mobile: Optional[str] = None
    code: Optional[str] = None


class MobileRequest(_AuthPayload):
    mobile: Optional[str] = None


class ResetPasswordRequest(_AuthPayload):
    mobile: Optional[str] = None
    code: Optional[str] = None
    new_password: Optional[str] = None


class UserOut(BaseModel):
    id: str
    name: str
    mobile: str
    is_mobile_verified: bool = False


class SmsDispatchResponse(BaseModel):
    message: str
    sms_sent: bool


class SessionResponse(BaseModel):
    message: str
    token: str
    user: UserOut


class CurrentUserResponse(BaseModel):
    user: UserOut
