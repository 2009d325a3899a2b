"""
User model for the Rezo music-mood app.

One row per email. Preferences live on the user row (genre picks, onboarding
state) and in two child tables (mood history, music interactions). Magic-link
credential columns are deferred so normal reads never load them.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.core.security import utc_now


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        doc="Unique user identifier (UUID)"
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        doc="Lower-cased, trimmed email address"
    )
    pseudo: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Public display name (2-20 chars, content-filtered)"
    )
    avatar: Mapped[Optional[str]] = mapped_column(
        String(2048),
        nullable=True,
        default=None,
        doc="Avatar URI"
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the email has been confirmed via magic link"
    )

    # Preferences
    preferred_genres: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        doc="At most two genre records picked during onboarding"
    )
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Sticky flag, set once two genres are held"
    )
    onboarding_step: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        doc="Current onboarding screen (1-5)"
    )

    # Magic-link credential state, excluded from normal reads
    token_digest: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        deferred=True,
        doc="SHA-256 digest of the pending magic-link token"
    )
    token_expiry: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        index=True,
        deferred=True,
        doc="Expiry of the pending magic-link token"
    )

    # Login bookkeeping
    last_login: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )
    login_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )

    mood_history = relationship(
        "MoodEntry",
        back_populates="user",
        order_by="MoodEntry.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    music_interactions = relationship(
        "MusicInteraction",
        back_populates="user",
        order_by="MusicInteraction.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, verified={self.is_verified})>"


class MoodEntry(Base):
    __tablename__ = "mood_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    mood: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    user = relationship("User", back_populates="mood_history")

    def __repr__(self) -> str:
        return f"<MoodEntry(user={self.user_id}, mood={self.mood})>"


class MusicInteraction(Base):
    __tablename__ = "music_interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content_title: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_genres: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    audio_features: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="like, dislike or skip"
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    time_spent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    user = relationship("User", back_populates="music_interactions")

    def __repr__(self) -> str:
        return f"<MusicInteraction(user={self.user_id}, content={self.content_id}, kind={self.kind})>"
