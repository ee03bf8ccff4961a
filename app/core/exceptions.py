from typing import Optional, Any, Dict


class ZunfError(Exception):
    """
    Base exception for the ZUNF Medicare API.
    """
    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class ResourceNotFoundError(ZunfError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(ZunfError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class ValidationError(ZunfError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=details)


class QuotaExceededError(ZunfError):
    """
    Raised when a customer has used up their metered SMS allowance.
    `retry_after` is the number of seconds until the current window ends.
    """
    def __init__(
        self,
        message: str = "SMS limit reached for this mobile number. Please try again later.",
        retry_after: Optional[int] = None,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(
            message,
            code="SMS_QUOTA_EXCEEDED",
            status_code=429,
            details=details,
            headers=headers,
        )
        self.retry_after = retry_after


class ExternalServiceError(ZunfError):
    """
    Raised when an external service (e.g., the SMS gateway) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)


class SendFailureError(ExternalServiceError):
    """
    Raised when the SMS gateway did not accept a message, including timeouts.
    """
    def __init__(self, message: str = "SMS could not be sent", details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.code = "SMS_SEND_FAILED"


class CouponUnavailableError(ZunfError):
    """
    Raised when a lab's coupon pool has no Available coupon left.
    """
    def __init__(self, lab_id: str):
        super().__init__(
            f"No coupon available for lab {lab_id}",
            code="COUPON_UNAVAILABLE",
            status_code=409,
            details={"lab_id": lab_id},
        )
        self.lab_id = lab_id


class CouponStateError(ZunfError):
    """
    Raised when a coupon transition is attempted from the wrong state.
    """
    def __init__(self, coupon_id: Any, expected_state: str):
        super().__init__(
            f"Coupon {coupon_id} is not {expected_state}",
            code="COUPON_STATE_CONFLICT",
            status_code=409,
            details={"coupon_id": str(coupon_id), "expected_state": expected_state},
        )
