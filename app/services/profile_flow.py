"""
Profile Flow.

Authenticated operations on the caller's own profile and preferences.
Payloads arrive already validated by the pydantic schemas, so nothing here
touches storage with malformed input.
"""

import logging

from app.core.errors import NotFoundError
from app.models.user import MoodEntry, MusicInteraction, User
from app.schemas.user import (
    ContentRef,
    GenreRecord,
    MoodEntryResponse,
    MusicInteractionCreate,
    MusicInteractionResponse,
    PreferencesResponse,
    ProfileUpdate,
    UserProfile,
)
from app.services.user_store import UserStore, validate_pseudo

logger = logging.getLogger(__name__)


def serialize_mood(entry: MoodEntry) -> MoodEntryResponse:
    return MoodEntryResponse(mood=entry.mood, timestamp=entry.timestamp)


def serialize_interaction(record: MusicInteraction) -> MusicInteractionResponse:
    return MusicInteractionResponse(
        content=ContentRef(
            id=record.content_id,
            title=record.content_title,
            type=record.content_type,
            source_genres=record.source_genres or [],
            audio_features=record.audio_features or {},
        ),
        type=record.kind,
        timestamp=record.timestamp,
        time_spent=record.time_spent,
    )


def serialize_genres(user: User) -> list[GenreRecord]:
    return [GenreRecord(**genre) for genre in (user.preferred_genres or [])]


def serialize_profile(user: User) -> UserProfile:
    """Public profile. Never includes credential material."""
    return UserProfile(
        id=user.id,
        email=user.email,
        pseudo=user.pseudo,
        avatar=user.avatar,
        is_verified=user.is_verified,
        preferences=PreferencesResponse(
            preferred_genres=serialize_genres(user),
            music_interactions=[serialize_interaction(r) for r in user.music_interactions],
            mood_history=[serialize_mood(e) for e in user.mood_history],
            onboarding_completed=user.onboarding_completed,
            onboarding_step=user.onboarding_step,
        ),
        last_login=user.last_login,
        login_count=user.login_count,
        joined_at=user.created_at,
    )


class ProfileFlow:
    """CRUD over the session user's profile, delegating persistence to UserStore."""

    def __init__(self, store: UserStore):
        self.store = store

    def _require_user(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def get_profile(self, user_id: str) -> UserProfile:
        return serialize_profile(self._require_user(user_id))

    def update_profile(self, user_id: str, update: ProfileUpdate) -> UserProfile:
        """Apply a partial update. Preferences are shallow-merged."""
        # Content check before the record is loaded or touched
        pseudo = validate_pseudo(update.pseudo) if update.pseudo is not None else None

        user = self._require_user(user_id)

        if pseudo is not None:
            user.pseudo = pseudo
        if update.avatar is not None:
            user.avatar = str(update.avatar)

        if update.preferences is not None:
            prefs = update.preferences.model_dump(exclude_unset=True, mode="json")
            if "preferred_genres" in prefs and prefs["preferred_genres"] is not None:
                user.preferred_genres = prefs["preferred_genres"]
            if prefs.get("onboarding_completed") is not None:
                user.onboarding_completed = prefs["onboarding_completed"]
            if prefs.get("onboarding_step") is not None:
                user.onboarding_step = prefs["onboarding_step"]

        self.store.save(user)
        logger.info(f"Profile updated: {user.id}")
        return serialize_profile(user)

    def record_mood(self, user_id: str, mood: str) -> MoodEntryResponse:
        user = self._require_user(user_id)
        entry = self.store.add_mood_entry(user, mood)
        self.store.save(user)
        return MoodEntryResponse(mood=entry.mood, timestamp=entry.timestamp)

    def get_mood_history(self, user_id: str) -> list[MoodEntryResponse]:
        user = self._require_user(user_id)
        return [serialize_mood(e) for e in user.mood_history]

    def record_music_interaction(self, user_id: str, interaction: MusicInteractionCreate) -> dict:
        """Record an interaction and return it with the updated onboarding state."""
        user = self._require_user(user_id)
        record = self.store.add_music_interaction(user, interaction.model_dump(mode="json"))
        self.store.save(user)
        return {
            "interaction": serialize_interaction(record),
            "preferred_genres": serialize_genres(user),
            "onboarding_completed": user.onboarding_completed,
        }

    def get_music_interactions(self, user_id: str) -> dict:
        user = self._require_user(user_id)
        return {
            "music_interactions": [serialize_interaction(r) for r in user.music_interactions],
            "preferred_genres": serialize_genres(user),
        }

    def delete_account(self, user_id: str) -> None:
        self.store.delete(user_id)
