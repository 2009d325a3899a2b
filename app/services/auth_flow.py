"""
Magic-link Authentication Flow.

Per-user states:
    Unverified (no token) -> LinkPending (token set) -> Verified

request_link issues a fresh token (overwriting any pending one) and emails it.
verify_link consumes it exactly once and mints a session JWT. get_session
resolves a presented session JWT back to the live user record.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from app.core.config import Settings, get_settings
from app.core.errors import (
    AuthenticationError,
    ExternalServiceError,
    InvalidTokenError,
    NotFoundError,
)
from app.core.observer import Observer
from app.core.security import (
    MagicLinkTokenCodec,
    create_session_token,
    decode_session_token,
    utc_now,
)
from app.models.user import User
from app.services.email_service import EmailSender
from app.services.profile_flow import serialize_profile
from app.services.user_store import (
    UserStore,
    generate_placeholder_pseudo,
    validate_email_format,
    validate_pseudo,
)

logger = logging.getLogger(__name__)


class AuthFlow:
    """Orchestrates request-link / verify-link / session lookup."""

    def __init__(
        self,
        store: UserStore,
        email_sender: EmailSender,
        codec: Optional[MagicLinkTokenCodec] = None,
        observer: Optional[Observer] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.email_sender = email_sender
        self.codec = codec or MagicLinkTokenCodec()
        self.observer = observer or Observer()
        self.settings = settings or get_settings()

    def build_magic_link(self, cleartext: str, email: str) -> str:
        query = urlencode({"token": cleartext, "email": email})
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/auth/verify?{query}"

    async def request_link(self, email: str) -> dict:
        """
        Find or create the user, store a fresh token digest and email the link.
        Only the normalized email is returned; the token never leaves by this path.
        """
        email = validate_email_format(email)

        user = self.store.find_by_email(email)
        if user is None:
            user = self.store.create(email, generate_placeholder_pseudo())
            self.observer.event("user_created", user_id=user.id)

        issued = self.codec.generate()
        user.token_digest = issued.digest
        user.token_expiry = issued.expiry
        self.store.save(user)

        await self.email_sender.send_magic_link(email, self.build_magic_link(issued.cleartext, email))
        self.observer.event("magic_link_requested", user_id=user.id)

        return {"email": email}

    async def verify_link(self, token: str, email: str, pseudo: Optional[str] = None) -> dict:
        """
        Consume a magic-link token.

        Returns one of:
          {"requires_pseudo": True, "token": ..., "user": {...}}
          {"session_token": ..., "user": profile, "is_new_user": bool}
        """
        user = self.store.find_by_email(email)
        if user is None:
            raise NotFoundError()

        if not self.codec.verify(token, user.token_digest, user.token_expiry):
            self.observer.event("magic_link_rejected", user_id=user.id)
            raise InvalidTokenError()

        is_new_user = not user.is_verified

        if is_new_user and not pseudo:
            return {
                "requires_pseudo": True,
                "token": token,
                "user": {"id": user.id, "email": user.email, "is_new_user": True},
            }

        if pseudo:
            user.pseudo = validate_pseudo(pseudo)

        user.is_verified = True
        user.last_login = utc_now()
        user.login_count = (user.login_count or 0) + 1
        user.token_digest = None
        user.token_expiry = None
        self.store.save(user)

        if is_new_user:
            await self._send_welcome(user)

        self.observer.event("magic_link_verified", user_id=user.id, is_new_user=is_new_user)

        return {
            "session_token": self.issue_session(user),
            "user": serialize_profile(user),
            "is_new_user": is_new_user,
        }

    def issue_session(self, user: User) -> str:
        return create_session_token(user.id, user.email, user.pseudo)

    def logout(self, credential: Optional[str]) -> str:
        """
        Acknowledge a sign-out. Session tokens are stateless, so nothing is
        revoked server-side; the credential is only checked for validity.
        Returns the user id it belonged to.
        """
        if not credential:
            raise AuthenticationError()

        user_id = decode_session_token(credential)["sub"]
        self.observer.event("user_logged_out", user_id=user_id)
        return user_id

    def get_session(self, credential: Optional[str]) -> User:
        """Resolve a bearer session token to the live user record."""
        if not credential:
            raise AuthenticationError()

        claims = decode_session_token(credential)
        user = self.store.find_by_id(claims["sub"])
        if user is None:
            raise NotFoundError()
        return user

    async def _send_welcome(self, user: User) -> None:
        """Best effort; a failed welcome email never fails the login."""
        try:
            await self.email_sender.send_welcome(user.email, user.pseudo)
        except ExternalServiceError as e:
            logger.warning(f"Welcome email to user {user.id} failed: {e}")
            self.observer.event("welcome_email_failed", user_id=user.id)
        except Exception:
            # Login is already committed at this point
            logger.exception(f"Welcome email to user {user.id} failed unexpectedly")
            self.observer.event("welcome_email_failed", user_id=user.id)
