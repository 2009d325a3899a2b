import asyncio
import json

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import ExternalServiceError
from app.services.email_service import (
    ConsoleEmailSender,
    ResendEmailSender,
    SendGridEmailSender,
    SmtpEmailSender,
    create_email_sender,
    render_magic_link_email,
)


@pytest.mark.parametrize("provider, sender_cls", [
    ("console", ConsoleEmailSender),
    ("SMTP", SmtpEmailSender),
    ("resend", ResendEmailSender),
    ("sendgrid", SendGridEmailSender),
])
def test_create_email_sender_selects_provider(provider, sender_cls):
    assert isinstance(create_email_sender(Settings(EMAIL_PROVIDER=provider)), sender_cls)


def test_unknown_provider_is_refused():
    with pytest.raises(ValueError):
        create_email_sender(Settings(EMAIL_PROVIDER="pigeon"))


def test_magic_link_email_contains_link_and_expiry():
    html = render_magic_link_email("https://rezo.app/auth/verify?token=abc", 10)
    assert "https://rezo.app/auth/verify?token=abc" in html
    assert "10 minutes" in html


def test_resend_posts_message():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    settings = Settings(EMAIL_PROVIDER="resend", RESEND_API_KEY="re_test")
    sender = ResendEmailSender(settings, transport=httpx.MockTransport(handler))
    asyncio.run(sender.send_magic_link("fan@example.com", "https://rezo.app/auth/verify?token=abc"))

    request, = captured
    assert request.headers["Authorization"] == "Bearer re_test"
    payload = json.loads(request.content)
    assert payload["to"] == ["fan@example.com"]
    assert "token=abc" in payload["html"]


def test_sendgrid_failure_raises_external_service_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    settings = Settings(EMAIL_PROVIDER="sendgrid", SENDGRID_API_KEY="sg_test")
    sender = SendGridEmailSender(settings, transport=transport)

    with pytest.raises(ExternalServiceError) as exc_info:
        asyncio.run(sender.send("fan@example.com", "hi", "<p>hi</p>"))
    assert exc_info.value.status_code == 502
    assert exc_info.value.message.startswith("SendGrid:")


def test_check_configuration_flags_missing_credentials():
    assert asyncio.run(ResendEmailSender(Settings(RESEND_API_KEY="")).check_configuration()) is False
    assert asyncio.run(SmtpEmailSender(Settings(SMTP_HOST="")).check_configuration()) is False
    assert asyncio.run(ConsoleEmailSender(Settings()).check_configuration()) is True
