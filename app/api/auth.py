"""
app/api/auth.py

Purpose: Account endpoints (signup with SMS verification, login, password reset)
"""

from fastapi import APIRouter, Depends

from app.core.security import get_current_user_id
from app.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    MobileRequest,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    SmsDispatchResponse,
    VerifyCodeRequest,
)
from app.schemas.response import MessageResponse
from app.services import auth_service

router = APIRouter(prefix="/auth")


@router.post("/signup", status_code=201, response_model=SmsDispatchResponse)
async def signup(payload: SignupRequest):
    return await auth_service.signup(payload.name, payload.mobile, payload.password)


@router.post("/login", response_model=SessionResponse)
async def login(payload: LoginRequest):
    return await auth_service.login(payload.mobile, payload.password)


@router.post("/verify-mobile", response_model=SessionResponse)
async def verify_mobile(payload: VerifyCodeRequest):
    return await auth_service.verify_mobile(payload.mobile, payload.code)


@router.post("/resend-verification", response_model=SmsDispatchResponse)
async def resend_verification(payload: MobileRequest):
    return await auth_service.resend_verification_code(payload.mobile)


@router.post("/forgot-password", response_model=SmsDispatchResponse)
async def forgot_password(payload: MobileRequest):
    return await auth_service.request_password_reset(payload.mobile)


@router.post("/verify-reset-code", response_model=MessageResponse)
async def verify_reset_code(payload: VerifyCodeRequest):
    return await auth_service.verify_reset_code(payload.mobile, payload.code)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest):
    return await auth_service.reset_password(payload.mobile, payload.code, payload.new_password)


@router.get("/me", response_model=CurrentUserResponse)
async def me(user_id: str = Depends(get_current_user_id)):
    return await auth_service.get_current_user(user_id)
