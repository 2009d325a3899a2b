from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import get_settings
from app.core.errors import AuthorizationError
from app.core.security import (
    MagicLinkTokenCodec,
    create_session_token,
    decode_session_token,
    utc_now,
)


def test_generated_token_is_hex_and_only_digest_matches():
    codec = MagicLinkTokenCodec(ttl=timedelta(minutes=10))
    now = utc_now()
    issued = codec.generate(now=now)

    assert len(issued.cleartext) == 64
    int(issued.cleartext, 16)
    assert issued.digest == MagicLinkTokenCodec.hash_token(issued.cleartext)
    assert issued.digest != issued.cleartext
    assert issued.expiry == now + timedelta(minutes=10)


def test_generated_tokens_are_unique():
    codec = MagicLinkTokenCodec()
    assert codec.generate().cleartext != codec.generate().cleartext


def test_verify_accepts_matching_unexpired_token():
    codec = MagicLinkTokenCodec()
    issued = codec.generate()
    assert codec.verify(issued.cleartext, issued.digest, issued.expiry) is True


def test_verify_rejects_wrong_token():
    codec = MagicLinkTokenCodec()
    issued = codec.generate()
    other = codec.generate()
    assert codec.verify(other.cleartext, issued.digest, issued.expiry) is False


def test_verify_expiry_boundary():
    codec = MagicLinkTokenCodec()
    now = utc_now()
    issued = codec.generate(now=now)

    just_before = issued.expiry - timedelta(microseconds=1)
    assert codec.verify(issued.cleartext, issued.digest, issued.expiry, now=just_before) is True
    assert codec.verify(issued.cleartext, issued.digest, issued.expiry, now=issued.expiry) is False
    assert codec.verify(
        issued.cleartext, issued.digest, issued.expiry, now=issued.expiry + timedelta(seconds=1)
    ) is False


@pytest.mark.parametrize("cleartext, digest, has_expiry", [
    ("", "abc", True),
    ("abc", None, True),
    ("abc", "abc", False),
])
def test_verify_rejects_missing_parts(cleartext, digest, has_expiry):
    codec = MagicLinkTokenCodec()
    expiry = utc_now() + timedelta(minutes=5) if has_expiry else None
    assert codec.verify(cleartext, digest, expiry) is False


def test_session_token_round_trip():
    token = create_session_token("user-1", "a@example.com", "nova")
    claims = decode_session_token(token)

    assert claims["sub"] == "user-1"
    assert claims["email"] == "a@example.com"
    assert claims["pseudo"] == "nova"
    assert claims["type"] == "session"


def test_expired_session_token_is_rejected():
    token = create_session_token("user-1", "a@example.com", "nova", expires_delta=timedelta(seconds=-5))
    with pytest.raises(AuthorizationError):
        decode_session_token(token)


def test_tampered_session_token_is_rejected():
    token = create_session_token("user-1", "a@example.com", "nova")
    with pytest.raises(AuthorizationError):
        decode_session_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))


def test_foreign_signature_is_rejected():
    settings = get_settings()
    forged = jwt.encode(
        {"sub": "user-1", "type": "session", "exp": utc_now() + timedelta(hours=1)},
        "some-other-secret",
        algorithm=settings.SESSION_ALGORITHM,
    )
    with pytest.raises(AuthorizationError):
        decode_session_token(forged)


def test_non_session_token_type_is_rejected():
    settings = get_settings()
    other = jwt.encode(
        {"sub": "user-1", "type": "refresh", "exp": utc_now() + timedelta(hours=1)},
        settings.SESSION_SECRET_KEY,
        algorithm=settings.SESSION_ALGORITHM,
    )
    with pytest.raises(AuthorizationError):
        decode_session_token(other)
