"""Email backend implementations for birthday reminders."""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import TYPE_CHECKING, List, Optional, Protocol

import httpx
from loguru import logger

if TYPE_CHECKING:
    from bacenta_reminders.core.settings import Settings

SENDGRID_MAIL_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


class EmailBackend(Protocol):
    """Minimal protocol for sending notification emails.

    Returns the provider message id when the provider reports one.
    """

    async def send_email(
        self,
        recipient: str,
        subject: str,
        body_text: str,
        *,
        body_html: str | None = None,
    ) -> str | None:
        ...


class SMTPEmailBackend:
    """SMTP-powered backend that sends emails via standard library."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool,
        sender_email: str,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._sender_email = sender_email

    async def send_email(
        self,
        recipient: str,
        subject: str,
        body_text: str,
        *,
        body_html: str | None = None,
    ) -> str | None:
        """Send email asynchronously by offloading blocking call."""

        message = _build_message(recipient, subject, body_text, body_html=body_html)
        message["From"] = self._sender_email
        message["Message-ID"] = make_msgid(domain=self._sender_email.rpartition("@")[2] or None)

        await asyncio.to_thread(self._send, message)
        return message["Message-ID"]

    def _send(self, message: EmailMessage) -> None:
        if self._use_tls:
            smtp: smtplib.SMTP = smtplib.SMTP(self._host, self._port, timeout=10)
            smtp.starttls()
        else:
            smtp = smtplib.SMTP(self._host, self._port, timeout=10)

        try:
            if self._username and self._password:
                smtp.login(self._username, self._password)
            smtp.send_message(message)
        finally:
            smtp.quit()


class SendGridEmailBackend:
    """Backend posting to the SendGrid v3 mail API."""

    def __init__(
        self,
        *,
        api_key: str,
        sender_email: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender_email = sender_email
        self._http_client = http_client
        self._timeout = timeout

    async def send_email(
        self,
        recipient: str,
        subject: str,
        body_text: str,
        *,
        body_html: str | None = None,
    ) -> str | None:
        content = [{"type": "text/plain", "value": body_text}]
        if body_html:
            content.append({"type": "text/html", "value": body_html})
        payload: dict[str, object] = {
            "personalizations": [{"to": [{"email": recipient}], "subject": subject}],
            "from": {"email": self._sender_email},
            "content": content,
        }

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        close_client = False
        client = self._http_client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout)
            close_client = True

        try:
            response = await client.post(SENDGRID_MAIL_SEND_URL, json=payload, headers=headers)
            response.raise_for_status()
            return response.headers.get("X-Message-Id")
        finally:
            if close_client:
                await client.aclose()


@dataclass
class InMemoryEmailBackend:
    """Test backend storing outbound messages in memory."""

    sent_messages: List[EmailMessage]

    def __init__(self, *, fail_for: set[str] | None = None, delay_seconds: float = 0.0) -> None:
        self.sent_messages = []
        self.fail_for = set(fail_for or ())
        self.delay_seconds = delay_seconds

    async def send_email(
        self,
        recipient: str,
        subject: str,
        body_text: str,
        *,
        body_html: str | None = None,
    ) -> str | None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if recipient in self.fail_for:
            raise RuntimeError(f"mailbox unavailable for {recipient}")
        message = _build_message(recipient, subject, body_text, body_html=body_html)
        self.sent_messages.append(message)
        return f"memory-{len(self.sent_messages)}"


def _build_message(
    recipient: str,
    subject: str,
    body_text: str,
    *,
    body_html: str | None,
) -> EmailMessage:
    message = EmailMessage()
    message["To"] = recipient
    message["Subject"] = subject
    message.set_content(body_text)
    if body_html:
        message.add_alternative(body_html, subtype="html")
    return message


def build_email_backend(settings: "Settings") -> EmailBackend:
    """Pick the configured provider; SendGrid wins over SMTP, memory is the fallback."""

    if settings.birthday_dry_run:
        logger.info("Birthday email dry run enabled; using in-memory backend")
        return InMemoryEmailBackend()
    if settings.sendgrid_api_key and settings.sendgrid_sender_email:
        return SendGridEmailBackend(
            api_key=settings.sendgrid_api_key,
            sender_email=settings.sendgrid_sender_email,
        )
    if settings.smtp_host and settings.smtp_sender_email:
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender_email=settings.smtp_sender_email,
        )
    logger.warning("No email provider configured; birthday emails will not leave the process")
    return InMemoryEmailBackend()


__all__ = [
    "EmailBackend",
    "InMemoryEmailBackend",
    "SENDGRID_MAIL_SEND_URL",
    "SMTPEmailBackend",
    "SendGridEmailBackend",
    "build_email_backend",
]
