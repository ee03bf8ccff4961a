"""
app/services/auth_service.py

Purpose: Mobile-verified accounts

- Signup creates/refreshes a pending signup and texts a 6-digit code
- Verification promotes the pending signup to a user and removes it
- Pending signups expire 24h after creation via TTL index
- Login, password reset by SMS code, current-user lookup
- Passwords are hashed before they are stored
"""

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import Dict, Any

from app.db.mongo import get_pending_users_collection, get_users_collection
from app.models.user import build_user_document, public_user
from app.services.sms_gateway import get_sms_gateway
from app.core.config import settings
from app.core.exceptions import ValidationError, ResourceNotFoundError, AuthenticationError
from app.core.security import (
    codes_match,
    create_access_token,
    generate_numeric_code,
    hash_password,
    verify_password,
)
from app.core.logging import get_logger, LogContext, mask_mobile
from utils.time_utils import expires_in, is_expired
from utils.validation_utils import (
    is_blank,
    normalize_mobile,
    sanitize_input,
    validate_code_format,
    validate_pakistani_mobile,
)

logger = get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists with this mobile, a password reset code has been sent."


async def _send_code(kind: str, mobile: str, code: str) -> bool:
    """Texts a code; a gateway failure is reported, not raised."""
    gateway = get_sms_gateway()
    try:
        if kind == "reset":
            await gateway.send_password_reset_code(mobile, code)
        else:
            await gateway.send_verification_code(mobile, code)
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send {kind} code: {e}")
        return False


def _session(user: Dict[str, Any], message: str) -> Dict[str, Any]:
    return {
        "message": message,
        "token": create_access_token(str(user["_id"])),
        "user": public_user(user),
    }


async def signup(name: str, mobile: str, password: str) -> Dict[str, Any]:
    """
    Starts a signup. Re-submitting for the same mobile replaces the pending
    details and issues a new code.

    Returns:
        {"message", "sms_sent"}
    """
    if is_blank(name) or is_blank(password):
        raise ValidationError("Name and password are required")
    if is_blank(mobile):
        raise ValidationError("Mobile number is required")

    mobile = normalize_mobile(mobile)
    if not validate_pakistani_mobile(mobile):
        raise ValidationError("Please enter a valid mobile number")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long"
        )

    with LogContext(mobile=mask_mobile(mobile)):
        if await get_users_collection().find_one({"mobile": mobile}):
            raise ValidationError("Mobile number already registered")

        code = generate_numeric_code()

        pending_users = get_pending_users_collection()
        pending_update = {
            "$set": {
                "name": sanitize_input(name),
                "password_hash": hash_password(password),
                "verification_code": code,
                "verification_code_expiry": expires_in(hours=settings.VERIFICATION_CODE_TTL_HOURS),
            },
            "$setOnInsert": {"created_at": datetime.utcnow()},
        }
        try:
            await pending_users.update_one({"mobile": mobile}, pending_update, upsert=True)
        except DuplicateKeyError:
            # A concurrent signup for this mobile inserted first
            await pending_users.update_one({"mobile": mobile}, pending_update)
        logger.info("Pending signup saved")

        sms_sent = await _send_code("verification", mobile, code)

    return {
        "message": (
            "Verification code sent. Please check your mobile."
            if sms_sent
            else "User data saved. Failed to send SMS, please use the resend option."
        ),
        "sms_sent": sms_sent,
    }


async def verify_mobile(mobile: str, code: str) -> Dict[str, Any]:
    """
    Checks the code and promotes the pending signup to a user.

    Returns:
        {"message", "token", "user"}
    """
    if is_blank(mobile) or is_blank(code):
        raise ValidationError("Mobile number and verification code are required")

    mobile = normalize_mobile(mobile)
    pending_users = get_pending_users_collection()
    users = get_users_collection()

    with LogContext(mobile=mask_mobile(mobile)):
        pending = await pending_users.find_one({"mobile": mobile})
        if pending is None:
            if await users.find_one({"mobile": mobile}):
                raise ValidationError("Account already verified and created.")
            raise ResourceNotFoundError("No pending signup found for this mobile number.")

        if not validate_code_format(code) or not codes_match(pending["verification_code"], code):
            raise ValidationError("Invalid verification code")

        if is_expired(pending.get("verification_code_expiry")):
            raise ValidationError("Verification code has expired")

        user = build_user_document(pending)
        try:
            result = await users.insert_one(user)
        except DuplicateKeyError:
            raise ValidationError("Account already verified and created.")
        user["_id"] = result.inserted_id

        await pending_users.delete_one({"mobile": mobile})
        logger.info("✅ Mobile verified, account created")

    return _session(user, "Mobile number verified and account created successfully")


async def resend_verification_code(mobile: str) -> Dict[str, Any]:
    """
    Issues a fresh code for an existing pending signup.

    Returns:
        {"message", "sms_sent"}
    """
    if is_blank(mobile):
        raise ValidationError("Mobile number is required")

    mobile = normalize_mobile(mobile)

    with LogContext(mobile=mask_mobile(mobile)):
        pending_users = get_pending_users_collection()
        if await pending_users.find_one({"mobile": mobile}) is None:
            if await get_users_collection().find_one({"mobile": mobile}):
                raise ValidationError("Account already verified.")
            raise ResourceNotFoundError("No pending signup found for this mobile number.")

        code = generate_numeric_code()
        await pending_users.update_one(
            {"mobile": mobile},
            {
                "$set": {
                    "verification_code": code,
                    "verification_code_expiry": expires_in(hours=settings.VERIFICATION_CODE_TTL_HOURS),
                }
            },
        )

        sms_sent = await _send_code("verification", mobile, code)

    return {
        "message": (
            "Verification code resent successfully"
            if sms_sent
            else "Failed to send verification code. Please try again."
        ),
        "sms_sent": sms_sent,
    }


async def login(mobile: str, password: str) -> Dict[str, Any]:
    """
    Returns:
        {"message", "token", "user"}

    Raises:
        AuthenticationError: Unknown mobile or wrong password
    """
    if is_blank(password):
        raise ValidationError("Password is required")
    if is_blank(mobile):
        raise ValidationError("Mobile number is required")

    user = await get_users_collection().find_one({"mobile": normalize_mobile(mobile)})
    if user is None or not verify_password(password, user.get("password_hash")):
        raise AuthenticationError("Invalid credentials")

    return _session(user, "Login successful")


async def get_current_user(user_id: str) -> Dict[str, Any]:
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        raise ResourceNotFoundError("User not found")

    user = await get_users_collection().find_one({"_id": oid})
    if user is None:
        raise ResourceNotFoundError("User not found")
    return {"user": public_user(user)}


async def request_password_reset(mobile: str) -> Dict[str, Any]:
    """
    Texts a reset code. The response does not reveal whether the mobile is
    registered.
    """
    if is_blank(mobile):
        raise ValidationError("Mobile number is required")

    mobile = normalize_mobile(mobile)
    users = get_users_collection()

    with LogContext(mobile=mask_mobile(mobile)):
        user = await users.find_one({"mobile": mobile})
        if user is None:
            return {"message": RESET_REQUESTED_MESSAGE, "sms_sent": True}

        if not user.get("is_mobile_verified"):
            raise ValidationError("Please verify your mobile number first before resetting password.")

        code = generate_numeric_code()
        await users.update_one(
            {"_id": user["_id"]},
            {
                "$set": {
                    "reset_code": code,
                    "reset_code_expiry": expires_in(minutes=settings.RESET_CODE_TTL_MINUTES),
                    "updated_at": datetime.utcnow(),
                }
            },
        )

        sms_sent = await _send_code("reset", mobile, code)

    return {"message": RESET_REQUESTED_MESSAGE, "sms_sent": sms_sent}


async def _user_with_valid_reset_code(mobile: str, code: str) -> Dict[str, Any]:
    user = await get_users_collection().find_one({"mobile": normalize_mobile(mobile)})
    if user is None:
        raise ResourceNotFoundError("User not found")

    if not codes_match(user.get("reset_code"), code):
        raise ValidationError("Invalid reset code")

    if is_expired(user.get("reset_code_expiry")):
        raise ValidationError("Reset code has expired. Please request a new one.")

    return user


async def verify_reset_code(mobile: str, code: str) -> Dict[str, Any]:
    if is_blank(mobile) or is_blank(code):
        raise ValidationError("Mobile and reset code are required")

    await _user_with_valid_reset_code(mobile, code)
    return {"message": "Reset code verified successfully"}


async def reset_password(mobile: str, code: str, new_password: str) -> Dict[str, Any]:
    if is_blank(mobile) or is_blank(code) or is_blank(new_password):
        raise ValidationError("Mobile, reset code, and new password are required")

    if len(new_password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long"
        )

    user = await _user_with_valid_reset_code(mobile, code)

    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {
            "$set": {
                "password_hash": hash_password(new_password),
                "reset_code": None,
                "reset_code_expiry": None,
                "updated_at": datetime.utcnow(),
            }
        },
    )
    logger.info("Password reset", extra={"mobile": mask_mobile(user["mobile"])})

    return {"message": "Password reset successfully. You can now login with your new password."}
