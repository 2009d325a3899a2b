"""Pydantic schemas for profile and preference payloads."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import AnyUrl, BaseModel, Field


class AudioFeatures(BaseModel):
    """Audio feature scores, each between 0 and 1."""
    danceability: Optional[float] = Field(None, ge=0, le=1)
    energy: Optional[float] = Field(None, ge=0, le=1)
    valence: Optional[float] = Field(None, ge=0, le=1)
    acousticness: Optional[float] = Field(None, ge=0, le=1)


class GenreRecord(BaseModel):
    """A preferred genre picked during onboarding."""
    id: str = Field(..., min_length=1, description="Genre/content identifier")
    title: str = Field(..., min_length=1, description="Display title")
    type: str = Field("genre", description="Record type")
    source_genres: list[str] = Field(default_factory=list, description="Upstream genre tags")
    audio_features: AudioFeatures = Field(default_factory=AudioFeatures)
    selected_at: Optional[datetime] = Field(None, description="When the genre was picked")


class PreferencesUpdate(BaseModel):
    """Preference fields accepted by PUT /profile. Shallow-merged."""
    preferred_genres: Optional[list[GenreRecord]] = Field(None, max_length=2)
    onboarding_completed: Optional[bool] = None
    onboarding_step: Optional[int] = Field(None, ge=1, le=5)


class ProfileUpdate(BaseModel):
    """Partial profile update. Absent fields are left untouched."""
    pseudo: Optional[str] = Field(None, min_length=2, max_length=20)
    avatar: Optional[AnyUrl] = None
    preferences: Optional[PreferencesUpdate] = None

    model_config = {"str_strip_whitespace": True}


class MoodCreate(BaseModel):
    mood: str = Field(..., min_length=1, max_length=100)

    model_config = {"str_strip_whitespace": True}


class MoodEntryResponse(BaseModel):
    mood: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class ContentRef(BaseModel):
    """The track, album or genre the user interacted with."""
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    source_genres: list[str] = Field(default_factory=list)
    audio_features: AudioFeatures = Field(default_factory=AudioFeatures)


class MusicInteractionCreate(BaseModel):
    content: ContentRef
    type: Literal["like", "dislike", "skip"]
    time_spent: Optional[float] = Field(None, ge=0, description="Seconds spent on the content")


class MusicInteractionResponse(BaseModel):
    content: ContentRef
    type: str
    timestamp: datetime
    time_spent: Optional[float] = None


class PreferencesResponse(BaseModel):
    preferred_genres: list[GenreRecord] = Field(default_factory=list)
    music_interactions: list[MusicInteractionResponse] = Field(default_factory=list)
    mood_history: list[MoodEntryResponse] = Field(default_factory=list)
    onboarding_completed: bool = False
    onboarding_step: int = 1


class UserProfile(BaseModel):
    """Public view of a user. Credential fields are never included."""
    id: str
    email: str
    pseudo: str
    avatar: Optional[str] = None
    is_verified: bool
    preferences: PreferencesResponse
    last_login: Optional[datetime] = None
    login_count: int = 0
    joined_at: Optional[datetime] = None


class ProfileResponse(BaseModel):
    user: UserProfile


class ProfileUpdateResponse(BaseModel):
    message: str
    user: UserProfile


class MoodRecordedResponse(BaseModel):
    message: str
    mood: str
    timestamp: datetime


class MoodHistoryResponse(BaseModel):
    mood_history: list[MoodEntryResponse]


class MusicInteractionRecordedResponse(BaseModel):
    message: str
    interaction: MusicInteractionResponse
    preferred_genres: list[GenreRecord]
    onboarding_completed: bool


class MusicInteractionsResponse(BaseModel):
    music_interactions: list[MusicInteractionResponse]
    preferred_genres: list[GenreRecord]
