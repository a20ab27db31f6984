"""Outbound email transport (SMTP).

The reminder service only sees the ``EmailTransport`` protocol; tests swap
in a recording fake through ``get_email_transport``.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Protocol

from app.core.config import Settings, settings
from app.core.structured_logging import mask_email

logger = logging.getLogger(__name__)


class EmailTransportError(Exception):
    """Raised when an email cannot be sent (including missing configuration)."""


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class OutboundEmail:
    to_email: str
    subject: str
    html: str
    text: str
    from_name: str | None = None
    attachments: list[EmailAttachment] = field(default_factory=list)


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailTransport(Protocol):
    def send(self, message: OutboundEmail) -> SendResult:
        """Send one message. Raise EmailTransportError or return a failed result."""


class SmtpEmailTransport:
    """Send through the configured SMTP relay."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings

    def is_configured(self) -> bool:
        return self.config.smtp_configured

    def _build_message(self, message: OutboundEmail, message_id: str) -> MIMEMultipart:
        from_name = message.from_name or self.config.EMAIL_FROM_NAME or self.config.COMPANY_NAME
        msg = MIMEMultipart("mixed")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((from_name, self.config.EMAIL_FROM_ADDRESS))
        msg["To"] = message.to_email
        msg["Message-ID"] = message_id

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.text, "plain", "utf-8"))
        body.attach(MIMEText(message.html, "html", "utf-8"))
        msg.attach(body)

        for attachment in message.attachments:
            _, _, subtype = attachment.content_type.partition("/")
            part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
        return msg

    def _connect(self) -> smtplib.SMTP:
        host = self.config.SMTP_HOST
        port = self.config.SMTP_PORT
        timeout = self.config.SMTP_TIMEOUT_SECONDS
        context = ssl.create_default_context()
        if self.config.SMTP_SECURE:
            return smtplib.SMTP_SSL(host, port, context=context, timeout=timeout)
        server = smtplib.SMTP(host, port, timeout=timeout)
        try:
            server.starttls(context=context)
        except Exception:
            server.close()
            raise
        return server

    def send(self, message: OutboundEmail) -> SendResult:
        if not self.is_configured():
            raise EmailTransportError("Email configuration not available")

        message_id = make_msgid(domain=self.config.EMAIL_FROM_ADDRESS.partition("@")[2] or None)
        mime = self._build_message(message, message_id)
        try:
            server = self._connect()
            try:
                server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.sendmail(self.config.EMAIL_FROM_ADDRESS, [message.to_email], mime.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP send to %s via %s failed: %s",
                mask_email(message.to_email),
                self.config.SMTP_HOST,
                e,
            )
            raise EmailTransportError(f"SMTP send failed: {e}") from e

        logger.info(
            "Email sent to %s at %s (message_id=%s)",
            mask_email(message.to_email),
            datetime.now(timezone.utc).isoformat(),
            message_id,
        )
        return SendResult(success=True, message_id=message_id)


def get_email_transport() -> EmailTransport:
    """Default transport (FastAPI dependency and CLI entry point)."""
    return SmtpEmailTransport()
