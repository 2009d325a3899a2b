import asyncio
from datetime import timedelta

import pytest

from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from app.core.security import utc_now
from app.services.auth_flow import AuthFlow
from conftest import RecordingEmailSender


@pytest.fixture
def flow(store, email_sender):
    return AuthFlow(store, email_sender)


def _request(flow, email):
    return asyncio.run(flow.request_link(email))


def _verify(flow, token, email, pseudo=None):
    return asyncio.run(flow.verify_link(token, email, pseudo))


def test_request_link_creates_unverified_user_and_sends_link(flow, store, email_sender):
    result = _request(flow, " New@Example.com ")

    assert result == {"email": "new@example.com"}
    user = store.find_by_email("new@example.com")
    assert user.is_verified is False
    assert user.pseudo.startswith("user_")
    assert user.token_digest is not None

    (to, link), = email_sender.links
    assert to == "new@example.com"
    assert "/auth/verify?" in link
    token = email_sender.last_token()
    assert token != user.token_digest
    assert token not in str(result)


def test_new_user_scenario(flow, store, email_sender):
    _request(flow, "new@example.com")
    token = email_sender.last_token()

    result = _verify(flow, token, "new@example.com", pseudo="nova")

    assert result["is_new_user"] is True
    assert result["session_token"]
    profile = result["user"]
    assert profile.pseudo == "nova"
    assert profile.is_verified is True
    assert profile.login_count == 1

    user = store.find_by_email("new@example.com")
    assert user.token_digest is None
    assert user.token_expiry is None
    assert email_sender.welcomed == [("new@example.com", "nova")]


def test_token_is_single_use(flow, email_sender):
    _request(flow, "once@example.com")
    token = email_sender.last_token()
    _verify(flow, token, "once@example.com", pseudo="nova")

    with pytest.raises(InvalidTokenError):
        _verify(flow, token, "once@example.com", pseudo="nova")


def test_new_request_replaces_pending_token(flow, email_sender):
    _request(flow, "twice@example.com")
    first = email_sender.last_token()
    _request(flow, "twice@example.com")
    second = email_sender.last_token()

    with pytest.raises(InvalidTokenError):
        _verify(flow, first, "twice@example.com", pseudo="nova")
    assert _verify(flow, second, "twice@example.com", pseudo="nova")["session_token"]


def test_wrong_token_leaves_user_unchanged(flow, store, email_sender):
    _request(flow, "wrong@example.com")
    digest = store.find_by_email("wrong@example.com").token_digest

    with pytest.raises(InvalidTokenError):
        _verify(flow, "0" * 64, "wrong@example.com", pseudo="nova")

    store.db.expire_all()
    user = store.find_by_email("wrong@example.com")
    assert user.is_verified is False
    assert user.token_digest == digest
    assert user.login_count == 0


def test_expired_token_is_rejected(flow, store, email_sender):
    _request(flow, "late@example.com")
    token = email_sender.last_token()

    user = store.find_by_email("late@example.com")
    user.token_expiry = utc_now() - timedelta(seconds=1)
    store.save(user)

    with pytest.raises(InvalidTokenError):
        _verify(flow, token, "late@example.com", pseudo="nova")


def test_unknown_email_is_not_found(flow):
    with pytest.raises(NotFoundError):
        _verify(flow, "0" * 64, "nobody@example.com")


def test_new_user_without_pseudo_keeps_token_valid(flow, store, email_sender):
    _request(flow, "shy@example.com")
    token = email_sender.last_token()

    pending = _verify(flow, token, "shy@example.com")
    assert pending["requires_pseudo"] is True
    assert pending["token"] == token
    assert pending["user"]["email"] == "shy@example.com"
    assert store.find_by_email("shy@example.com").is_verified is False

    result = _verify(flow, token, "shy@example.com", pseudo="shy_one")
    assert result["user"].pseudo == "shy_one"


def test_rejected_pseudo_leaves_token_usable(flow, store, email_sender):
    _request(flow, "rude@example.com")
    token = email_sender.last_token()

    with pytest.raises(ValidationError):
        _verify(flow, token, "rude@example.com", pseudo="0612345678")

    store.db.expire_all()
    assert store.find_by_email("rude@example.com").is_verified is False
    assert _verify(flow, token, "rude@example.com", pseudo="polite")["is_new_user"] is True


def test_returning_user_signs_in_without_pseudo(flow, email_sender):
    _request(flow, "back@example.com")
    _verify(flow, email_sender.last_token(), "back@example.com", pseudo="nova")

    _request(flow, "back@example.com")
    result = _verify(flow, email_sender.last_token(), "back@example.com")

    assert result["is_new_user"] is False
    assert result["user"].pseudo == "nova"
    assert result["user"].login_count == 2
    assert len(email_sender.welcomed) == 1


def test_welcome_failure_does_not_fail_login(flow, email_sender):
    email_sender.fail_welcome = True
    _request(flow, "welcome@example.com")

    result = _verify(flow, email_sender.last_token(), "welcome@example.com", pseudo="nova")
    assert result["session_token"]


def test_magic_link_delivery_failure_propagates(flow, email_sender):
    email_sender.fail_magic_links = True
    with pytest.raises(ExternalServiceError):
        _request(flow, "down@example.com")


def test_invalid_email_is_rejected_before_storage(flow, store):
    with pytest.raises(ValidationError):
        _request(flow, "not-an-email")


def test_get_session_resolves_live_user(flow, store, email_sender):
    _request(flow, "session@example.com")
    session_token = _verify(flow, email_sender.last_token(), "session@example.com", pseudo="nova")[
        "session_token"
    ]

    user = flow.get_session(session_token)
    assert user.email == "session@example.com"

    store.delete(user.id)
    with pytest.raises(NotFoundError):
        flow.get_session(session_token)


def test_get_session_rejects_missing_and_garbage(flow):
    with pytest.raises(AuthenticationError):
        flow.get_session(None)
    with pytest.raises(AuthorizationError):
        flow.get_session("not-a-jwt")


def test_unexpected_welcome_error_does_not_fail_login(store):
    class BrokenWelcomeSender(RecordingEmailSender):
        async def send_welcome(self, email: str, pseudo: str) -> None:
            raise UnicodeEncodeError("ascii", "mot de passe é", 13, 14, "ordinal not in range(128)")

    sender = BrokenWelcomeSender()
    flow = AuthFlow(store, sender)
    _request(flow, "accent@example.com")

    result = _verify(flow, sender.last_token(), "accent@example.com", pseudo="nova")

    assert result["session_token"]
    assert result["is_new_user"] is True
    assert store.find_by_email("accent@example.com").is_verified is True


def test_logout_checks_the_session_credential(flow, email_sender):
    _request(flow, "bye@example.com")
    result = _verify(flow, email_sender.last_token(), "bye@example.com", pseudo="nova")

    assert flow.logout(result["session_token"]) == result["user"].id
    with pytest.raises(AuthenticationError):
        flow.logout(None)
    with pytest.raises(AuthorizationError):
        flow.logout("not-a-jwt")
