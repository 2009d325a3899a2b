"""
Profile API endpoints.
Everything here requires a bearer session token.
"""

from fastapi import APIRouter, Depends

from app.api.deps import get_profile_flow, get_session_user_id
from app.schemas.auth import MessageResponse
from app.schemas.user import (
    MoodCreate,
    MoodHistoryResponse,
    MoodRecordedResponse,
    MusicInteractionCreate,
    MusicInteractionRecordedResponse,
    MusicInteractionsResponse,
    ProfileResponse,
    ProfileUpdate,
    ProfileUpdateResponse,
)
from app.services.profile_flow import ProfileFlow

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    """Get the signed-in user's profile."""
    return ProfileResponse(user=flow.get_profile(user_id))


@router.put("", response_model=ProfileUpdateResponse)
async def update_profile(
    update: ProfileUpdate,
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    """Partial profile update; absent fields are left untouched."""
    return ProfileUpdateResponse(message="Profile updated", user=flow.update_profile(user_id, update))


@router.post("/mood", response_model=MoodRecordedResponse)
async def record_mood(
    payload: MoodCreate,
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    """Append a mood to the history (50 most recent kept)."""
    entry = flow.record_mood(user_id, payload.mood)
    return MoodRecordedResponse(message="Mood recorded", mood=entry.mood, timestamp=entry.timestamp)


@router.get("/mood-history", response_model=MoodHistoryResponse)
async def get_mood_history(
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    return MoodHistoryResponse(mood_history=flow.get_mood_history(user_id))


@router.post("/music-interaction", response_model=MusicInteractionRecordedResponse)
async def record_music_interaction(
    payload: MusicInteractionCreate,
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    """Record a like/dislike/skip. Likes feed the two onboarding genres."""
    result = flow.record_music_interaction(user_id, payload)
    return MusicInteractionRecordedResponse(message="Interaction recorded", **result)


@router.get("/music-interactions", response_model=MusicInteractionsResponse)
async def get_music_interactions(
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    return MusicInteractionsResponse(**flow.get_music_interactions(user_id))


@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    user_id: str = Depends(get_session_user_id),
    flow: ProfileFlow = Depends(get_profile_flow),
):
    """Permanently delete the account and all its history."""
    flow.delete_account(user_id)
    return MessageResponse(message="Account deleted")
