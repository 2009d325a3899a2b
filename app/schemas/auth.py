"""Pydantic schemas for the magic-link auth endpoints."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.user import UserProfile


class RequestLinkRequest(BaseModel):
    email: EmailStr = Field(..., description="Address the magic link is sent to")

    model_config = {"str_strip_whitespace": True}


class RequestLinkResponse(BaseModel):
    message: str
    email: str


class VerifyLinkRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Cleartext token from the magic link")
    email: EmailStr
    pseudo: Optional[str] = Field(None, min_length=2, max_length=20)

    model_config = {"str_strip_whitespace": True}


class PendingUser(BaseModel):
    """Minimal user view returned while a pseudo is still required."""
    id: str
    email: str
    is_new_user: bool = True


class VerifyLinkResponse(BaseModel):
    """
    Either a completed login (session_token + user) or a request for a
    pseudo (requires_pseudo + the still-valid token).
    """
    message: str
    session_token: Optional[str] = None
    user: Optional[UserProfile | PendingUser] = None
    is_new_user: bool = False
    requires_pseudo: bool = False
    token: Optional[str] = None


class SessionResponse(BaseModel):
    user: UserProfile


class MessageResponse(BaseModel):
    message: str
