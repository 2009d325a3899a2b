"""
User Store.

Persistence for user accounts on top of a SQLAlchemy session. Every write
goes through save(), which re-checks the record invariants before commit:
  - email well-formed and unique (case-insensitive)
  - pseudo 2-20 chars and free of personal info / toxic content
  - at most two preferred genres (extra ones silently dropped)
  - token digest and expiry both set or both cleared
  - onboarding flagged complete once two genres are held (never reverted)
"""

import logging
import secrets
from datetime import datetime
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import inspect, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import utc_now
from app.models.user import MoodEntry, MusicInteraction, User
from app.services import content_filter

logger = logging.getLogger(__name__)

PSEUDO_MIN_LENGTH = 2
PSEUDO_MAX_LENGTH = 20
MAX_PREFERRED_GENRES = 2
MAX_MOOD_HISTORY = 50


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email_format(email: str) -> str:
    """Return the normalized email or raise ValidationError."""
    normalized = normalize_email(email)
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email")
    return normalized


def validate_pseudo(pseudo: Optional[str]) -> str:
    """Return the trimmed pseudo or raise ValidationError."""
    pseudo = (pseudo or "").strip()
    if not PSEUDO_MIN_LENGTH <= len(pseudo) <= PSEUDO_MAX_LENGTH:
        raise ValidationError(
            f"Pseudo must be between {PSEUDO_MIN_LENGTH} and {PSEUDO_MAX_LENGTH} characters"
        )
    report = content_filter.analyze_content(pseudo)
    if not report["is_appropriate"]:
        logger.info(f"Pseudo rejected by content filter: {report['cleaned_text']}")
        raise ValidationError(
            "Pseudo must not contain personal information or inappropriate content",
            details=report["safety_tips"],
        )
    return pseudo


def generate_placeholder_pseudo() -> str:
    """Temporary pseudo for accounts that have not picked one yet."""
    while True:
        pseudo = f"user_{secrets.token_hex(6)}"
        if content_filter.is_clean(pseudo):
            return pseudo


class UserStore:
    """Repository for User records bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    # ─── Lookups ────────────────────────────────────────────────

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.get(User, user_id)

    # ─── Writes ─────────────────────────────────────────────────

    def create(self, email: str, pseudo: str) -> User:
        """Insert a new unverified user."""
        email = validate_email_format(email)
        pseudo = validate_pseudo(pseudo)

        if self.find_by_email(email) is not None:
            raise ConflictError("email already in use")

        user = User(
            email=email,
            pseudo=pseudo,
            preferred_genres=[],
            onboarding_completed=False,
            onboarding_step=1,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        logger.info(f"User created: {user.id}")
        return user

    def save(self, user: User) -> User:
        """Validate invariants and persist pending changes to the user."""
        try:
            self._enforce_invariants(user)
        except ValidationError:
            self.db.rollback()
            raise
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: str) -> None:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError()

        self.db.delete(user)
        self._commit()
        logger.info(f"User deleted: {user_id}")

    def sweep_expired_tokens(self, now: Optional[datetime] = None) -> int:
        """Clear magic-link credentials whose expiry has passed. Returns rows affected."""
        now = now or utc_now()
        result = self.db.execute(
            update(User)
            .where(User.token_expiry.is_not(None), User.token_expiry < now)
            .values(token_digest=None, token_expiry=None)
            .execution_options(synchronize_session=False)
        )
        self._commit()
        count = result.rowcount or 0
        if count:
            logger.info(f"Token sweep: cleared {count} expired magic link(s)")
        return count

    # ─── Preference helpers (mutate only; call save() afterwards) ──

    def add_mood_entry(self, user: User, mood: str) -> MoodEntry:
        entry = MoodEntry(mood=mood, timestamp=utc_now())
        user.mood_history.append(entry)

        overflow = len(user.mood_history) - MAX_MOOD_HISTORY
        if overflow > 0:
            del user.mood_history[:overflow]
        return entry

    def add_music_interaction(self, user: User, interaction: dict[str, Any]) -> MusicInteraction:
        """
        Record an interaction. A "like" while fewer than two genres are held
        also adds the liked content as a preferred genre.
        """
        content = interaction["content"]
        record = MusicInteraction(
            content_id=content["id"],
            content_title=content["title"],
            content_type=content["type"],
            source_genres=list(content.get("source_genres") or []),
            audio_features=dict(content.get("audio_features") or {}),
            kind=interaction["type"],
            time_spent=interaction.get("time_spent"),
            timestamp=utc_now(),
        )
        user.music_interactions.append(record)

        genres = list(user.preferred_genres or [])
        if record.kind == "like" and len(genres) < MAX_PREFERRED_GENRES:
            genres.append({
                "id": record.content_id,
                "title": record.content_title,
                "type": record.content_type,
                "source_genres": record.source_genres,
                "audio_features": record.audio_features,
                "selected_at": record.timestamp.isoformat(),
            })
            user.preferred_genres = genres

        self._update_onboarding(user)
        return record

    # ─── Internals ──────────────────────────────────────────────

    def _enforce_invariants(self, user: User) -> None:
        state = inspect(user)

        if state.transient or state.pending or state.attrs.email.history.has_changes():
            user.email = validate_email_format(user.email)
        if state.transient or state.pending or state.attrs.pseudo.history.has_changes():
            user.pseudo = validate_pseudo(user.pseudo)

        genres = list(user.preferred_genres or [])
        if len(genres) > MAX_PREFERRED_GENRES:
            user.preferred_genres = genres[:MAX_PREFERRED_GENRES]

        if (user.token_digest is None) != (user.token_expiry is None):
            user.token_digest = None
            user.token_expiry = None

        self._update_onboarding(user)

    @staticmethod
    def _update_onboarding(user: User) -> None:
        if len(user.preferred_genres or []) >= MAX_PREFERRED_GENRES and not user.onboarding_completed:
            user.onboarding_completed = True

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Integrity error on user write: {e.orig}")
            raise ConflictError("email already in use")
