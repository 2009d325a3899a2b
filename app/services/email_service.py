"""
Email delivery.

One EmailSender interface, several providers:
  - console:  logs the link instead of sending (local development)
  - smtp:     any SMTP relay, via smtplib in a worker thread
  - resend:   Resend HTTP API
  - sendgrid: SendGrid v3 HTTP API

The provider is chosen once at startup from EMAIL_PROVIDER. Every failure is
raised as ExternalServiceError.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import parseaddr
from typing import Optional

import httpx
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings, get_settings
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

MAGIC_LINK_SUBJECT = "🎵 Your Rezo sign-in link"


def render_magic_link_email(magic_link: str, expire_minutes: int) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <title>Sign in to Rezo</title>
  </head>
  <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: white; border-radius: 16px; padding: 40px;">
      <h1 style="color: #1a202c;">Sign in to Rezo</h1>
      <p>Click the button below to sign in. No password needed.</p>
      <p style="text-align: center;">
        <a href="{magic_link}" style="display: inline-block; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; text-decoration: none; padding: 16px 32px; border-radius: 12px; font-weight: 600;">Sign in</a>
      </p>
      <p style="color: #718096; font-size: 14px;">This link expires in {expire_minutes} minutes and can only be used once.
      If you did not request it, you can ignore this email.</p>
    </div>
  </body>
</html>"""


def render_welcome_email(pseudo: str, frontend_url: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <title>Welcome to Rezo</title>
  </head>
  <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: white; border-radius: 16px; padding: 40px;">
      <h1 style="color: #1a202c;">Welcome, {pseudo}!</h1>
      <p>Your account is ready. Tell us how you feel and we will find the music that fits your mood.</p>
      <p style="text-align: center;">
        <a href="{frontend_url}" style="display: inline-block; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; text-decoration: none; padding: 16px 32px; border-radius: 12px; font-weight: 600;">Open Rezo</a>
      </p>
    </div>
  </body>
</html>"""


class EmailSender(ABC):
    """Capability used by the auth flow to reach users by email."""

    provider = "abstract"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> None:
        """Deliver one message. Raises ExternalServiceError on failure."""

    async def send_magic_link(self, email: str, magic_link: str) -> None:
        html = render_magic_link_email(magic_link, self.settings.MAGIC_LINK_EXPIRE_MINUTES)
        await self.send(email, MAGIC_LINK_SUBJECT, html)
        logger.info(f"[EMAIL] Magic link sent to {email} via {self.provider}")

    async def send_welcome(self, email: str, pseudo: str) -> None:
        html = render_welcome_email(pseudo, self.settings.FRONTEND_URL)
        await self.send(email, f"🎉 Welcome to Rezo, {pseudo}!", html)
        logger.info(f"[EMAIL] Welcome email sent to {email} via {self.provider}")

    async def check_configuration(self) -> bool:
        """Lightweight startup check. Never raises."""
        return True


class ConsoleEmailSender(EmailSender):
    """Development sender: logs instead of delivering."""

    provider = "console"

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info(f"[EMAIL:console] to={to} | subject={subject}")

    async def send_magic_link(self, email: str, magic_link: str) -> None:
        await super().send_magic_link(email, magic_link)
        logger.info(f"[EMAIL:console] Magic link for {email}: {magic_link}")


class SmtpEmailSender(EmailSender):
    provider = "smtp"

    def _deliver(self, message: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.EMAIL_TIMEOUT_SECONDS) as smtp:
            if s.SMTP_USE_TLS:
                smtp.starttls()
            if s.SMTP_USER:
                smtp.login(s.SMTP_USER, s.SMTP_PASSWORD)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = self.settings.EMAIL_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Open this message in an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            await run_in_threadpool(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL:smtp] Delivery to {to} failed: {e}")
            raise ExternalServiceError(str(e), service="SMTP")

    async def check_configuration(self) -> bool:
        if not self.settings.SMTP_HOST:
            logger.warning("SMTP_HOST is not configured")
            return False
        return True


class HttpEmailSender(EmailSender):
    """Base for JSON-over-HTTPS providers."""

    API_URL = ""
    service_name = "email API"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings)
        self.transport = transport

    @property
    def api_key(self) -> Optional[str]:
        raise NotImplementedError

    def build_payload(self, to: str, subject: str, html: str) -> dict:
        raise NotImplementedError

    async def send(self, to: str, subject: str, html: str) -> None:
        payload = self.build_payload(to, subject, html)
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.EMAIL_TIMEOUT_SECONDS, transport=self.transport
            ) as client:
                response = await client.post(self.API_URL, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[EMAIL:{self.provider}] Delivery to {to} failed: {e}")
            raise ExternalServiceError(str(e), service=self.service_name)

    async def check_configuration(self) -> bool:
        if not self.api_key:
            logger.warning(f"{self.provider.upper()}_API_KEY is not configured")
            return False
        return True


class ResendEmailSender(HttpEmailSender):
    provider = "resend"
    service_name = "Resend"
    API_URL = "https://api.resend.com/emails"

    @property
    def api_key(self) -> Optional[str]:
        return self.settings.RESEND_API_KEY

    def build_payload(self, to: str, subject: str, html: str) -> dict:
        return {
            "from": self.settings.EMAIL_FROM,
            "to": [to],
            "subject": subject,
            "html": html,
        }


class SendGridEmailSender(HttpEmailSender):
    provider = "sendgrid"
    service_name = "SendGrid"
    API_URL = "https://api.sendgrid.com/v3/mail/send"

    @property
    def api_key(self) -> Optional[str]:
        return self.settings.SENDGRID_API_KEY

    def build_payload(self, to: str, subject: str, html: str) -> dict:
        name, address = parseaddr(self.settings.EMAIL_FROM)
        sender = {"email": address, "name": name} if name else {"email": address}
        return {
            "personalizations": [{"to": [{"email": to}]}],
            "from": sender,
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }


EMAIL_PROVIDERS = {
    "console": ConsoleEmailSender,
    "smtp": SmtpEmailSender,
    "resend": ResendEmailSender,
    "sendgrid": SendGridEmailSender,
}


def create_email_sender(settings: Optional[Settings] = None) -> EmailSender:
    """Build the sender selected by EMAIL_PROVIDER."""
    settings = settings or get_settings()
    provider = settings.EMAIL_PROVIDER.lower()
    sender_cls = EMAIL_PROVIDERS.get(provider)
    if sender_cls is None:
        raise ValueError(
            f"Unknown EMAIL_PROVIDER '{settings.EMAIL_PROVIDER}'. "
            f"Expected one of: {', '.join(EMAIL_PROVIDERS)}"
        )
    logger.info(f"Email provider: {provider}")
    return sender_cls(settings)
