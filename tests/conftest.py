import os
import sys
from urllib.parse import parse_qs, urlparse

# Add backend directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("TOKEN_SWEEP_INTERVAL_MINUTES", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models.user  # noqa: F401
from app.api.deps import get_email_sender
from app.core.database import Base, get_db
from app.core.errors import ExternalServiceError
from app.core.redis import reset_rate_limits
from app.main import app
from app.services.email_service import EmailSender
from app.services.user_store import UserStore


class RecordingEmailSender(EmailSender):
    """Keeps every message in memory instead of delivering it."""

    provider = "recording"

    def __init__(self):
        super().__init__()
        self.sent = []
        self.links = []
        self.welcomed = []
        self.fail_magic_links = False
        self.fail_welcome = False

    async def send(self, to: str, subject: str, html: str) -> None:
        self.sent.append((to, subject))

    async def send_magic_link(self, email: str, magic_link: str) -> None:
        if self.fail_magic_links:
            raise ExternalServiceError("mailbox unreachable", service="Recording")
        self.links.append((email, magic_link))
        await super().send_magic_link(email, magic_link)

    async def send_welcome(self, email: str, pseudo: str) -> None:
        if self.fail_welcome:
            raise ExternalServiceError("mailbox unreachable", service="Recording")
        self.welcomed.append((email, pseudo))
        await super().send_welcome(email, pseudo)

    def last_token(self, email: str = None) -> str:
        for to, link in reversed(self.links):
            if email is None or to == email:
                return token_from_link(link)
        raise AssertionError(f"no magic link sent to {email}")


def token_from_link(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def store(db_session):
    return UserStore(db_session)


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def client(session_factory, email_sender):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    # Not used as a context manager so the lifespan (real DB, scheduler) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sign_in(client, email_sender):
    """Run the full magic-link flow over HTTP and return the session token."""

    def _sign_in(email: str = "listener@example.com", pseudo: str = "nova") -> str:
        response = client.post("/api/auth/request-link", json={"email": email})
        assert response.status_code == 200, response.text
        token = email_sender.last_token(email)
        response = client.post(
            "/api/auth/verify-link",
            json={"token": token, "email": email, "pseudo": pseudo},
        )
        assert response.status_code == 200, response.text
        return response.json()["session_token"]

    return _sign_in


def auth_header(session_token: str) -> dict:
    return {"Authorization": f"Bearer {session_token}"}
