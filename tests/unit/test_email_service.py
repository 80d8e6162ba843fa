"""Unit tests for the SMTP notification sender."""

import logging
import smtplib

from homi.services.email_service import SmtpNotificationSender


def _sender(**overrides) -> SmtpNotificationSender:
    options = dict(
        host="smtp.test",
        port=587,
        client_url="https://app.homi.test/",
        public_api_url="https://api.homi.test",
        api_prefix="/api",
    )
    options.update(overrides)
    return SmtpNotificationSender(**options)


class TestSmtpNotificationSender:
    """Tests for SmtpNotificationSender."""

    def test_links(self):
        sender = _sender()

        assert sender.verification_url("abc") == "https://api.homi.test/api/auth/verify-email?token=abc"
        assert sender.reset_url("abc") == "https://app.homi.test/reset-password?token=abc"

    async def test_unconfigured_sender_logs_instead(self, caplog):
        sender = _sender(environment="development")
        assert sender.configured is False

        with caplog.at_level(logging.INFO, logger="homi.services.email_service"):
            sent = await sender.send_password_reset_link("tenant@example.com", "f" * 64)

        assert sent is True
        assert "[MOCK EMAIL]" in caplog.text
        assert "reset-password?token=" + "f" * 64 in caplog.text

    async def test_unconfigured_sender_outside_development_drops_mail(self, caplog):
        sender = _sender(environment="production")

        with caplog.at_level(logging.INFO, logger="homi.services.email_service"):
            sent = await sender.send_password_reset_link("tenant@example.com", "f" * 64)

        assert sent is False
        assert "f" * 64 not in caplog.text
        assert "[MOCK EMAIL]" not in caplog.text
        assert "SMTP is not configured" in caplog.text

    async def test_delivery_failure_returns_false(self, monkeypatch):
        sender = _sender(username="user", password="secret")

        def broken_deliver(msg):
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

        monkeypatch.setattr(sender, "_deliver", broken_deliver)

        assert await sender.send_welcome("tenant@example.com", "Test") is False

    async def test_delivery_success(self, monkeypatch):
        sender = _sender(username="user", password="secret")
        delivered = []
        monkeypatch.setattr(sender, "_deliver", delivered.append)

        assert await sender.send_verification_link("tenant@example.com", "a" * 64) is True
        msg = delivered[0]
        assert msg["To"] == "tenant@example.com"
        assert msg["Subject"] == "Verify Your Email - HOMi"
        html = msg.get_body(("html",)).get_content()
        assert "verify-email?token=" + "a" * 64 in html
