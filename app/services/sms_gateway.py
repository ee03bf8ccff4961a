"""
app/services/sms_gateway.py

Purpose: Outbound SMS

- Sends a single SMS through the HTTP gateway
- Raises SendFailureError on any non-accepted send (no retries here)
- Composes the account verification and password reset texts
"""

import httpx
from typing import Dict, Any, Optional
from app.core.config import settings
from app.core.exceptions import SendFailureError
from app.core.logging import get_logger, mask_mobile

logger = get_logger(__name__)


class SMSGateway:
    """Client for the SMS gateway HTTP API"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_url = api_url or settings.SMS_API_URL
        self.api_key = api_key if api_key is not None else settings.SMS_API_KEY
        self.sender_id = sender_id or settings.SMS_SENDER_ID
        self.timeout = timeout or settings.SMS_SEND_TIMEOUT_SECONDS

    async def send(
        self,
        to_number: str,
        text: str,
        from_label: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Sends one SMS.

        Args:
            to_number: Recipient mobile (+923001234567 or 03001234567)
            text: Message body
            from_label: Sender label, defaults to SMS_SENDER_ID

        Returns:
            Gateway response body (parsed JSON when available)

        Raises:
            SendFailureError: On non-2xx responses, transport errors or timeout
        """
        data = {
            "apikey": self.api_key or "",
            "receivernum": str(to_number).strip(),
            "sendernum": from_label or self.sender_id,
            "textmessage": text,
        }

        logger.info(f"📤 Sending SMS to {mask_mobile(to_number)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, data=data)
        except httpx.TimeoutException as e:
            logger.error("SMS gateway timeout")
            raise SendFailureError("SMS gateway timeout") from e
        except httpx.HTTPError as e:
            logger.error(f"SMS gateway transport error: {e}")
            raise SendFailureError(f"SMS gateway unreachable: {e}") from e

        if response.status_code not in (200, 201, 202):
            logger.error(f"❌ SMS gateway error: {response.status_code} - {response.text}")
            raise SendFailureError(
                f"SMS gateway error: {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        logger.info(f"✅ SMS accepted for {mask_mobile(to_number)}")
        return body

    async def send_verification_code(self, mobile: str, code: str) -> Dict[str, Any]:
        text = (
            f"{settings.BRAND_NAME}: Your verification code is {code}. "
            f"It expires in {settings.VERIFICATION_CODE_TTL_HOURS} hours. Do not share it with anyone."
        )
        return await self.send(mobile, text)

    async def send_password_reset_code(self, mobile: str, code: str) -> Dict[str, Any]:
        text = (
            f"{settings.BRAND_NAME}: Your password reset code is {code}. "
            f"It expires in {settings.RESET_CODE_TTL_MINUTES} minutes."
        )
        return await self.send(mobile, text)

    def is_configured(self) -> bool:
        """Check if the gateway has credentials"""
        return bool(self.api_url and self.api_key)


_gateway: Optional[SMSGateway] = None


def get_sms_gateway() -> SMSGateway:
    """Returns the process-wide gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = SMSGateway()
    return _gateway
