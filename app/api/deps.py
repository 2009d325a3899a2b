"""
Shared FastAPI dependencies: service wiring, bearer-session resolution and
the magic-link rate limiter.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import AuthenticationError, RateLimitError
from app.core.observer import Observer
from app.core.redis import hit_rate_limit
from app.core.security import decode_session_token
from app.services.auth_flow import AuthFlow
from app.services.email_service import EmailSender
from app.services.profile_flow import ProfileFlow
from app.services.user_store import UserStore

settings = get_settings()

# auto_error=False so a missing header maps to our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


def get_email_sender(request: Request) -> EmailSender:
    """Sender selected at startup and stored on app.state."""
    return request.app.state.email_sender


def get_observer(request: Request) -> Observer:
    return request.app.state.observer


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_auth_flow(
    store: UserStore = Depends(get_user_store),
    email_sender: EmailSender = Depends(get_email_sender),
    observer: Observer = Depends(get_observer),
) -> AuthFlow:
    return AuthFlow(store, email_sender, observer=observer)


def get_profile_flow(store: UserStore = Depends(get_user_store)) -> ProfileFlow:
    return ProfileFlow(store)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_session_user_id(token: Optional[str] = Depends(get_bearer_token)) -> str:
    """
    Decode the session token to a user id without loading the user.
    401 when missing, 403 when invalid or expired.
    """
    if not token:
        raise AuthenticationError()
    return decode_session_token(token)["sub"]


def limit_magic_link_requests(request: Request) -> None:
    """Fixed-window limit on magic-link requests per client IP."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = hit_rate_limit(
        f"magic-link:{client_ip}",
        settings.MAGIC_LINK_RATE_LIMIT,
        settings.MAGIC_LINK_RATE_WINDOW_SECONDS,
    )
    if not allowed:
        raise RateLimitError(
            f"Too many magic link requests. Try again in "
            f"{max(1, settings.MAGIC_LINK_RATE_WINDOW_SECONDS // 60)} minutes.",
            retry_after=retry_after,
        )
