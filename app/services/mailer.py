import html
import logging
import smtplib
import ssl
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import (
    SMTP_SERVER, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD,
    FROM_EMAIL, FROM_NAME, SEND_EMAILS, EMAIL_MAX_RETRIES
)
from .messages import NotificationKind, render_text, render_subject
from .notification import DeliveryResult

logger = logging.getLogger(__name__)

class SmtpEmailProvider:
    def __init__(
        self,
        server: str = SMTP_SERVER,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USERNAME,
        password: Optional[str] = SMTP_PASSWORD,
        from_email: Optional[str] = FROM_EMAIL,
        from_name: str = FROM_NAME,
        enabled: bool = SEND_EMAILS,
        max_retries: int = EMAIL_MAX_RETRIES,
        backoff_seconds: float = 1.0
    ):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.from_name = from_name
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.enabled = enabled and bool(self.from_email and username and password)
        if not self.enabled:
            logger.warning("SMTP not configured or disabled. Email delivery will be disabled.")

    def send_email(self, to: str, kind: NotificationKind, data: dict) -> DeliveryResult:
        if not self.enabled:
            return DeliveryResult(success=False, error="Email not configured")

        message = self.build_message(to, kind, data)
        for attempt in range(1, self.max_retries + 1):
            try:
                self._send(to, message)
                logger.info("%s email sent to %s", kind.value, to)
                return DeliveryResult(success=True)
            except (smtplib.SMTPException, OSError) as e:
                logger.warning("Email send attempt %s/%s failed: %s", attempt, self.max_retries, e)
                if attempt == self.max_retries:
                    return DeliveryResult(success=False, error=str(e))
                time.sleep(self.backoff_seconds * 2 ** attempt)

    def build_message(self, to: str, kind: NotificationKind, data: dict) -> MIMEMultipart:
        text = render_text(kind, data)
        message = MIMEMultipart("alternative")
        message["Subject"] = render_subject(kind, data)
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(self._html(text, data), "html", "utf-8"))
        return message

    def _html(self, text: str, data: dict) -> str:
        body = html.escape(text).replace("\n", "<br>")
        link = ""
        if data.get("tracking_url"):
            link = f'<p><a href="{html.escape(data["tracking_url"])}">Track your Honey Badger</a></p>'
        return (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            f"<p>{body}</p>{link}"
            '<p style="color: #888; font-size: 12px;">Honey Badger AI Gifts</p>'
            "</div>"
        )

    def _send(self, to: str, message: MIMEMultipart):
        context = ssl.create_default_context()
        with smtplib.SMTP(self.server, self.port, timeout=10) as server:
            server.starttls(context=context)
            server.login(self.username, self.password)
            server.sendmail(self.from_email, [to], message.as_string())
