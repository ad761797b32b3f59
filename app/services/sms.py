import logging
from typing import Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioException

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from .notification import DeliveryResult

logger = logging.getLogger(__name__)

class TwilioSmsProvider:
    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        from_number: Optional[str] = TWILIO_PHONE_NUMBER
    ):
        self.from_number = from_number
        self.client = None
        if not (account_sid and auth_token and from_number) or not account_sid.startswith("AC"):
            logger.warning("Twilio credentials not found or invalid. SMS delivery will be disabled.")
            return
        self.client = Client(account_sid, auth_token)
        logger.info("Twilio SMS provider initialized")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def send_text(self, to: str, body: str) -> DeliveryResult:
        if not self.enabled:
            return DeliveryResult(success=False, error="Twilio not configured - SMS delivery unavailable")
        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
        except TwilioException as e:
            logger.error("Failed to send SMS to %s: %s", to, e)
            return DeliveryResult(success=False, error=str(e))
        logger.info("SMS sent successfully: %s", message.sid)
        return DeliveryResult(success=True, message_id=message.sid)
