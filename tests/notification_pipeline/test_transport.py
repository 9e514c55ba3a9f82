"""Tests for the SMTP and log-only mail transports."""

from unittest.mock import AsyncMock, patch

import pytest

from notification_pipeline.config import SmtpConfig
from notification_pipeline.mail import LogMailTransport, OutboundMail, SmtpMailTransport


@pytest.fixture
def mail():
    return OutboundMail(
        from_address="NextHire <no-reply@nexthire.dev>",
        to="jane@example.com",
        subject="Password Reset Request - NextHire",
        html="<p>Reset</p>",
    )


class TestOutboundMail:
    def test_email_message_headers(self, mail):
        message = mail.to_email_message()

        assert message["From"] == "NextHire <no-reply@nexthire.dev>"
        assert message["To"] == "jane@example.com"
        assert message["Subject"] == "Password Reset Request - NextHire"
        assert message.get_content_type() == "text/html"
        assert "<p>Reset</p>" in message.get_content()


class TestSmtpMailTransport:
    @pytest.mark.asyncio
    async def test_implicit_tls(self, mail):
        config = SmtpConfig(username="svc@nexthire.dev", password="app-password")
        transport = SmtpMailTransport(config)

        with patch("aiosmtplib.send", new=AsyncMock()) as send:
            await transport.send_mail(mail)

        send.assert_awaited_once()
        kwargs = send.await_args.kwargs
        assert kwargs["hostname"] == "smtp.gmail.com"
        assert kwargs["port"] == 465
        assert kwargs["username"] == "svc@nexthire.dev"
        assert kwargs["password"] == "app-password"
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert send.await_args.args[0]["To"] == "jane@example.com"

    @pytest.mark.asyncio
    async def test_plain_connection_without_credentials(self, mail):
        transport = SmtpMailTransport(SmtpConfig(host="localhost", port=1025, secure=False))

        with patch("aiosmtplib.send", new=AsyncMock()) as send:
            await transport.send_mail(mail)

        kwargs = send.await_args.kwargs
        assert kwargs["username"] is None
        assert kwargs["password"] is None
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is None

    @pytest.mark.asyncio
    async def test_send_error_propagates(self, mail):
        transport = SmtpMailTransport(SmtpConfig())

        with patch("aiosmtplib.send", new=AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(OSError):
                await transport.send_mail(mail)


class TestLogMailTransport:
    @pytest.mark.asyncio
    async def test_records_and_masks(self, mail, caplog):
        caplog.set_level("INFO", logger="notification_pipeline.mail.transport")
        transport = LogMailTransport()

        await transport.send_mail(mail)

        assert transport.sent == [mail]
        assert "to=j***@example.com" in caplog.text
        assert "jane@example.com" not in caplog.text

    @pytest.mark.asyncio
    async def test_body_not_logged(self, caplog):
        caplog.set_level("DEBUG", logger="notification_pipeline.mail.transport")
        transport = LogMailTransport()
        mail = OutboundMail(
            from_address="NextHire <no-reply@nexthire.dev>",
            to="jane@example.com",
            subject="Password Reset Request - NextHire",
            html='<a href="https://nexthire.dev/reset?token=s3cr3t">Reset</a>',
        )

        await transport.send_mail(mail)

        assert "s3cr3t" not in caplog.text
        assert caplog.records[-1].value_size == len(mail.html)
