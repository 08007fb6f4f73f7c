from __future__ import annotations

import asyncio
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from loguru import logger
from twilio.rest import Client

from ..database import Settings, settings as default_settings
from ..errors import DependencyError


@dataclass
class SmsNotification:
    to: str
    body: str


@dataclass
class EmailNotification:
    to: str
    subject: str
    body: str


def normalize_phone_number(phone: str) -> str:
    """
    Normalize phone number to E.164 format for Twilio.

    Examples:
        "+91 98765-43210" -> "+919876543210"
        "(020) 555 0199" -> "+0205550199"
    """
    if not phone:
        return phone

    if phone.startswith("+"):
        normalized = "+" + re.sub(r"\D", "", phone[1:])
    else:
        normalized = "+" + re.sub(r"\D", "", phone)

    logger.debug("Normalized phone number: {} -> {}", phone, normalized)
    return normalized


class NotificationService:
    """Outbound email and SMS.

    Both channels are mocked (logged only) when their credentials are missing.
    ``send_email`` raises ``DependencyError`` when the SMTP server rejects or is
    unreachable; ``send_sms`` logs failures and returns.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.settings = config or default_settings
        if not self.settings.twilio_sid or not self.settings.twilio_token:
            logger.warning("Twilio credentials missing; SMS notifications will be mocked.")
            self.client: Optional[Client] = None
        else:
            self.client = Client(self.settings.twilio_sid, self.settings.twilio_token)
        self.sender_phone = self.settings.twilio_phone or "+1234567890"

    @property
    def mail_configured(self) -> bool:
        return bool(self.settings.smtp_host)

    async def send_sms(self, message: SmsNotification) -> None:
        normalized_phone = normalize_phone_number(message.to)

        if self.client is None:
            logger.info("Mock SMS: {} -> {}", normalized_phone, message.body)
            return
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                lambda: self.client.messages.create(
                    to=normalized_phone,
                    from_=self.sender_phone,
                    body=message.body,
                ),
            )
            logger.info("SMS sent to {} (normalized from {})", normalized_phone, message.to)
        except Exception as exc:
            logger.warning("SMS delivery failed for {} (normalized: {}): {}", message.to, normalized_phone, exc)

    async def send_email(self, message: EmailNotification) -> None:
        if not self.mail_configured:
            logger.info("Mock email: {} -> {}", message.to, message.subject)
            return
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._deliver_email, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email delivery failed for {}: {}", message.to, exc)
            raise DependencyError("Mail service unavailable. Try again later.") from exc
        logger.info("Email sent to {}: {}", message.to, message.subject)

    def _deliver_email(self, message: EmailNotification) -> None:
        email = EmailMessage()
        email["From"] = self.settings.mail_sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls()
            if self.settings.smtp_username and self.settings.smtp_password:
                smtp.login(self.settings.smtp_username, self.settings.smtp_password)
            smtp.send_message(email)


notification_service = NotificationService()
