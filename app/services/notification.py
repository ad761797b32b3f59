import logging
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel

from ..models.gift import DeliveryMethod
from .messages import NotificationKind, render_text

logger = logging.getLogger(__name__)

class DeliveryResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

class DispatchResult(BaseModel):
    sms: Optional[DeliveryResult] = None
    email: Optional[DeliveryResult] = None

    @property
    def success(self) -> bool:
        # One channel getting through is enough
        return any(result.success for result in (self.sms, self.email) if result is not None)

class Notice(BaseModel):
    """A notification waiting to be sent once the transition that produced it is committed."""
    kind: NotificationKind
    phone: Optional[str] = None
    email: Optional[str] = None
    data: dict = {}

class SmsProvider(Protocol):
    def send_text(self, to: str, body: str) -> DeliveryResult: ...

class EmailProvider(Protocol):
    def send_email(self, to: str, kind: NotificationKind, data: dict) -> DeliveryResult: ...

def recipient_notice(gift, kind: NotificationKind, data: dict) -> Notice:
    """Build a notice for the gift's recipient.

    Channels follow the gift's delivery method, narrowed to the contact
    details that actually exist.
    """
    method = DeliveryMethod(gift.delivery_method)
    return Notice(
        kind=kind,
        phone=gift.recipient_phone if method.allows_sms else None,
        email=gift.recipient_email if method.allows_email else None,
        data=data,
    )

class NotificationGateway:
    def __init__(self, sms_provider: SmsProvider, email_provider: EmailProvider):
        self.sms_provider = sms_provider
        self.email_provider = email_provider

    def send(self, gift, kind: NotificationKind, data: dict) -> DispatchResult:
        return self.deliver(recipient_notice(gift, kind, data))

    def deliver(self, notice: Notice) -> DispatchResult:
        jobs = {}
        if notice.phone:
            jobs["sms"] = (self.sms_provider.send_text, notice.phone, render_text(notice.kind, notice.data))
        if notice.email:
            jobs["email"] = (self.email_provider.send_email, notice.email, notice.kind, notice.data)

        if not jobs:
            logger.info("No channel available for %s notification", notice.kind.value)
            return DispatchResult()

        # Channels are independent, so attempt them side by side
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            futures = {
                channel: pool.submit(self._attempt, channel, notice.kind, func, *args)
                for channel, (func, *args) in jobs.items()
            }
            results = {channel: future.result() for channel, future in futures.items()}

        return DispatchResult(**results)

    def deliver_all(self, notices: List[Notice]) -> List[DispatchResult]:
        return [self.deliver(notice) for notice in notices]

    def _attempt(self, channel: str, kind: NotificationKind, func: Callable, *args) -> DeliveryResult:
        try:
            result = func(*args)
        except Exception as e:
            logger.exception("Error sending %s notification via %s", kind.value, channel)
            return DeliveryResult(success=False, error=str(e))
        if not result.success:
            logger.warning("Failed to send %s notification via %s: %s", kind.value, channel, result.error)
        return result

@lru_cache
def get_gateway() -> NotificationGateway:
    from .sms import TwilioSmsProvider
    from .mailer import SmtpEmailProvider
    return NotificationGateway(TwilioSmsProvider(), SmtpEmailProvider())
