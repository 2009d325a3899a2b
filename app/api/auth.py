"""
Auth API endpoints.
Passwordless sign-in: request a magic link, verify it, resolve the session.
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import (
    get_auth_flow,
    get_bearer_token,
    limit_magic_link_requests,
)
from app.schemas.auth import (
    MessageResponse,
    PendingUser,
    RequestLinkRequest,
    RequestLinkResponse,
    SessionResponse,
    VerifyLinkRequest,
    VerifyLinkResponse,
)
from app.services.auth_flow import AuthFlow
from app.services.profile_flow import serialize_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/request-link",
    response_model=RequestLinkResponse,
    dependencies=[Depends(limit_magic_link_requests)],
)
async def request_link(
    request: RequestLinkRequest,
    flow: AuthFlow = Depends(get_auth_flow),
):
    """Email a one-time sign-in link. Creates the account on first use."""
    result = await flow.request_link(request.email)
    return RequestLinkResponse(message="Magic link sent by email", email=result["email"])


@router.post(
    "/verify-link",
    response_model=VerifyLinkResponse,
    response_model_exclude_none=True,
)
async def verify_link(
    request: VerifyLinkRequest,
    flow: AuthFlow = Depends(get_auth_flow),
):
    """
    Consume a magic link.
    New accounts without a pseudo get requires_pseudo=true and the token back
    so the client can retry with a pseudo.
    """
    result = await flow.verify_link(request.token, request.email, request.pseudo)

    if result.get("requires_pseudo"):
        return VerifyLinkResponse(
            message="Pseudo required for new account",
            requires_pseudo=True,
            token=result["token"],
            is_new_user=True,
            user=PendingUser(**result["user"]),
        )

    is_new_user = result["is_new_user"]
    return VerifyLinkResponse(
        message="Account created and signed in" if is_new_user else "Signed in",
        session_token=result["session_token"],
        user=result["user"],
        is_new_user=is_new_user,
    )


@router.get("/session", response_model=SessionResponse)
async def get_session(
    token: str = Depends(get_bearer_token),
    flow: AuthFlow = Depends(get_auth_flow),
):
    """Return the user behind the bearer session token."""
    user = flow.get_session(token)
    return SessionResponse(user=serialize_profile(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    flow: AuthFlow = Depends(get_auth_flow),
):
    """Session tokens are stateless; the client discards its copy."""
    user_id = flow.logout(token)
    logger.info(f"User signed out: {user_id}")
    return MessageResponse(message="Signed out")
