"""
app/core/security.py

Purpose: Credentials and tokens

- bcrypt password hashing (passlib)
- HS256 access tokens (python-jose)
- One-time numeric codes and constant-time comparison
- Bearer-token dependency for protected routes
- Operator key dependency for the coupon pool endpoints
"""

import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)
admin_key_scheme = APIKeyHeader(name="X-Admin-Key", auto_error=False)


# ============================================================================
# PASSWORDS
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against bcrypt hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# ONE-TIME CODES
# ============================================================================


def generate_numeric_code(length: int = 6) -> str:
    """Random code without a leading zero, e.g. 100000-999999 for length 6."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def codes_match(expected: Optional[str], provided: Any) -> bool:
    if not expected or provided is None:
        return False
    return secrets.compare_digest(str(expected), str(provided).strip())


# ============================================================================
# ACCESS TOKENS
# ============================================================================


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        user_id: Subject of the token
        expires_delta: Token lifetime (default JWT_EXPIRES_DAYS)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.JWT_EXPIRES_DAYS))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Raises:
        AuthenticationError: Expired or otherwise invalid token
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError("Invalid token")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency returning the authenticated user's id."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    return user_id


# ============================================================================
# OPERATOR ACCESS
# ============================================================================


async def require_operator(api_key: Optional[str] = Depends(admin_key_scheme)) -> None:
    """FastAPI dependency guarding the coupon pool operator endpoints."""
    if not settings.ADMIN_API_KEY:
        raise AuthenticationError("Operator access is not configured")
    if not api_key or not secrets.compare_digest(api_key.encode(), settings.ADMIN_API_KEY.encode()):
        raise AuthenticationError("Invalid operator key")
