"""
Outbound account emails (verification link, password reset link, welcome).

Sending is best-effort: every method returns False on failure instead of
raising. Without SMTP credentials a development environment writes each
message, link included, to the log; any other environment drops the
message with a warning and reports it as not sent.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Optional, Protocol
from urllib.parse import urlencode

from homi.logging_config import get_logger

logger = get_logger(__name__)


class NotificationSender(Protocol):
    async def send_verification_link(self, email: str, token: str) -> bool:
        ...

    async def send_password_reset_link(self, email: str, token: str) -> bool:
        ...

    async def send_welcome(self, email: str, name: str) -> bool:
        ...


def _render_html(title: str, message: str, button_text: Optional[str], button_url: Optional[str]) -> str:
    button = ""
    if button_text and button_url:
        url = escape(button_url, quote=True)
        button = (
            f'<p style="text-align:center;margin:30px 0;">'
            f'<a href="{url}" style="background:#6366f1;color:#fff;padding:14px 36px;'
            f'border-radius:50px;text-decoration:none;font-weight:600;">{escape(button_text)}</a></p>'
            f'<p style="font-size:13px;color:#64748b;">If the button does not work, open this link:<br>'
            f'<a href="{url}">{url}</a></p>'
        )
    return (
        "<!DOCTYPE html><html><body style=\"font-family:Segoe UI,Arial,sans-serif;\">"
        "<h1 style=\"color:#6366f1;\">HOMi</h1>"
        f"<h2>{escape(title)}</h2><p>{escape(message)}</p>{button}"
        "<p style=\"font-size:12px;color:#94a3b8;\">"
        "You're receiving this email because you have an account with HOMi.</p>"
        "</body></html>"
    )


def _render_text(title: str, message: str, button_text: Optional[str], button_url: Optional[str]) -> str:
    text = f"HOMi - Your Home, Your Way\n\n{title}\n{'=' * len(title)}\n\n{message}\n\n"
    if button_url:
        text += f"{button_text or 'Open'}: {button_url}\n\n"
    return text


class SmtpNotificationSender:
    """
    Sends account emails over SMTP with STARTTLS.

    smtplib blocks, so each send runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        from_email: str = "noreply@homi.example.com",
        from_name: str = "HOMi",
        client_url: str = "http://localhost:5173",
        public_api_url: str = "http://localhost:8000",
        api_prefix: str = "/api",
        timeout: float = 10.0,
        environment: str = "development",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.client_url = client_url.rstrip("/")
        self.public_api_url = public_api_url.rstrip("/")
        self.api_prefix = api_prefix
        self.timeout = timeout
        self.environment = environment

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    def _build_message(self, to: str, subject: str, title: str, message: str,
                       button_text: Optional[str] = None,
                       button_url: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(_render_text(title, message, button_text, button_url))
        msg.add_alternative(_render_html(title, message, button_text, button_url), subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as server:
                server.login(self.username, self.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.username, self.password)
                server.send_message(msg)

    async def _send(self, msg: EmailMessage) -> bool:
        if not self.configured:
            if self.environment != "development":
                logger.warning("SMTP is not configured, email not sent: %s", msg["Subject"])
                return False
            # The body carries the link so a developer can follow it from the console
            logger.info(
                "[MOCK EMAIL] to=%s subject=%s\n%s",
                msg["To"], msg["Subject"], msg.get_body(("plain",)).get_content(),
            )
            return True

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", msg["To"], e)
            return False

        logger.info("Email sent", extra={"subject": msg["Subject"]})
        return True

    def verification_url(self, token: str) -> str:
        return f"{self.public_api_url}{self.api_prefix}/auth/verify-email?{urlencode({'token': token})}"

    def reset_url(self, token: str) -> str:
        return f"{self.client_url}/reset-password?{urlencode({'token': token})}"

    async def send_verification_link(self, email: str, token: str) -> bool:
        msg = self._build_message(
            email,
            "Verify Your Email - HOMi",
            "Welcome to HOMi!",
            "Please confirm your email address to finish setting up your account. "
            "This link expires in 24 hours.",
            button_text="Verify My Email",
            button_url=self.verification_url(token),
        )
        return await self._send(msg)

    async def send_password_reset_link(self, email: str, token: str) -> bool:
        msg = self._build_message(
            email,
            "Reset Your Password - HOMi",
            "Password Reset Request",
            "We received a request to reset your password. This link expires in 1 hour. "
            "If you didn't ask for it you can ignore this email; your password stays unchanged.",
            button_text="Reset Password",
            button_url=self.reset_url(token),
        )
        return await self._send(msg)

    async def send_welcome(self, email: str, name: str) -> bool:
        msg = self._build_message(
            email,
            "Welcome to HOMi!",
            f"Welcome, {name}!",
            "Your account is now fully verified. You can browse, list and manage properties on HOMi.",
            button_text="Get Started",
            button_url=self.client_url,
        )
        return await self._send(msg)
