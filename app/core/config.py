"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, secrets, SMS gateway, quotas)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="zunf_medicare",
        description="MongoDB database name"
    )

    # SMS gateway
    SMS_API_URL: str = Field(
        default="https://sms.example.pk/api/send",
        description="Outbound SMS gateway endpoint"
    )
    SMS_API_KEY: Optional[str] = Field(
        default=None,
        description="SMS gateway API key"
    )
    SMS_SENDER_ID: str = Field(
        default="ZUNF",
        description="Sender label shown on outgoing SMS"
    )
    SMS_SEND_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Upper bound on a single gateway call; a timeout counts as a failed send"
    )

    # Branding used in outgoing messages
    BRAND_NAME: str = Field(default="ZUNF Medicare")
    SUPPORT_PHONE: str = Field(default="03090622004")

    # Coupons
    COUPON_LAB_ID: str = Field(
        default="chughtai-lab",
        description="Lab whose orders receive a coupon and count against the SMS quota"
    )

    # SMS quota
    SMS_QUOTA_LIMIT: int = Field(
        default=5,
        description="Successful metered sends allowed per customer per window"
    )
    SMS_QUOTA_WINDOW_HOURS: int = Field(
        default=24,
        description="Length of the quota window in hours"
    )

    # Accounts
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 15
    VERIFICATION_CODE_TTL_HOURS: int = 24
    PENDING_SIGNUP_TTL_SECONDS: int = 86400
    RESET_CODE_TTL_MINUTES: int = 60
    PASSWORD_MIN_LENGTH: int = 6

    # Confirmation outbox
    OUTBOX_SWEEP_INTERVAL_SECONDS: int = Field(
        default=60,
        description="How often the sweeper looks for confirmations that never ran"
    )
    OUTBOX_STALE_SECONDS: int = Field(
        default=120,
        description="Age after which a queued confirmation is considered lost"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Security
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Secret used to sign access tokens"
    )
    ADMIN_API_KEY: Optional[str] = Field(
        default=None,
        description="Key for the coupon pool operator endpoints (X-Admin-Key header); unset disables them"
    )

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str, info: ValidationInfo) -> str:
        """Ensure secret key is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.SMS_API_URL:
        errors.append("SMS_API_URL is required")

    if settings.SMS_QUOTA_LIMIT < 1:
        errors.append("SMS_QUOTA_LIMIT must be at least 1")

    if settings.SMS_SEND_TIMEOUT_SECONDS <= 0:
        errors.append("SMS_SEND_TIMEOUT_SECONDS must be positive")

    if settings.is_production:
        if not settings.SMS_API_KEY:
            errors.append("SMS_API_KEY is required in production")
        if not settings.ADMIN_API_KEY:
            errors.append("ADMIN_API_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
