"""
Credential primitives.

- MagicLinkTokenCodec: one-time login secrets. The cleartext goes out by email,
  only its SHA-256 digest is stored.
- Session tokens: signed, expiring JWTs (python-jose) carrying
  {sub, email, pseudo}.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.errors import AuthorizationError

settings = get_settings()

SESSION_TOKEN_TYPE = "session"


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class IssuedToken(NamedTuple):
    cleartext: str
    digest: str
    expiry: datetime


class MagicLinkTokenCodec:
    """Stateless generator/verifier for magic-link tokens."""

    def __init__(self, ttl: Optional[timedelta] = None):
        self.ttl = ttl or timedelta(minutes=settings.MAGIC_LINK_EXPIRE_MINUTES)

    @staticmethod
    def hash_token(cleartext: str) -> str:
        return hashlib.sha256(cleartext.encode("utf-8")).hexdigest()

    def generate(self, now: Optional[datetime] = None) -> IssuedToken:
        """
        Create a fresh token.

        Returns:
            IssuedToken with a 64-char hex cleartext (32 random bytes), its
            digest, and the expiry timestamp.
        """
        now = now or utc_now()
        cleartext = secrets.token_hex(32)
        return IssuedToken(
            cleartext=cleartext,
            digest=self.hash_token(cleartext),
            expiry=now + self.ttl,
        )

    def verify(
        self,
        cleartext: Optional[str],
        digest: Optional[str],
        expiry: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> bool:
        """Check a presented token. Expiry equal to now counts as expired."""
        if not cleartext or not digest or expiry is None:
            return False

        now = now or utc_now()
        if expiry <= now:
            return False

        return hmac.compare_digest(self.hash_token(cleartext), digest)


def create_session_token(
    user_id: str,
    email: str,
    pseudo: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed session JWT."""
    expire = utc_now() + (expires_delta or timedelta(days=settings.SESSION_EXPIRE_DAYS))
    to_encode = {
        "sub": user_id,
        "email": email,
        "pseudo": pseudo,
        "type": SESSION_TOKEN_TYPE,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SESSION_SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Decode and verify a session JWT (signature, expiry, token type).
    Raises AuthorizationError on any failure.
    """
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET_KEY, algorithms=[settings.SESSION_ALGORITHM])
    except JWTError:
        raise AuthorizationError("Invalid token")

    if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("sub"):
        raise AuthorizationError("Invalid token")

    return payload
