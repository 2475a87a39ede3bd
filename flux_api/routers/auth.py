"""
Email/password authentication and profile endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
import structlog

from ..models.api_responses import ERROR_RESPONSES, ok
from ..models.auth import (
    AuthSession,
    AuthUser,
    ProfileUpdateRequest,
    RefreshRequest,
    SigninRequest,
    SignupRequest,
)
from ..services import AuthService, UserService
from ..utils.dependencies import get_auth_service, get_current_user, get_user_service

logger = structlog.get_logger()
router = APIRouter()


def session_dict(session: AuthSession) -> Dict[str, Any]:
    return session.model_dump(exclude_none=True)


@router.post("/signup", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def signup(
    request: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """
    Register a new account.

    When the identity provider requires email confirmation no session is
    returned and the client is asked to check its inbox.
    """
    user, session = await auth_service.sign_up(request.email, request.password, request.full_name)

    if session is None:
        return ok(
            {"user": {"id": user.id, "email": user.email, "email_confirmed": False}},
            "Please check your email to confirm your account"
        )

    return ok(
        {"user": user.public_dict(), "session": session_dict(session)},
        "Account created successfully"
    )


@router.post("/signin", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def signin(
    request: SigninRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Authenticate with email and password."""
    user, session = await auth_service.sign_in(request.email, request.password)
    return ok(
        {"user": user.public_dict(), "session": session_dict(session)},
        "Authentication successful"
    )


@router.post("/refresh", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def refresh(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Exchange a refresh token for a new session."""
    user, session = await auth_service.refresh(request.refresh_token)
    return ok(
        {"user": user.public_dict(), "session": session_dict(session)},
        "Session refreshed successfully"
    )


@router.get("/profile", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def get_profile(
    current_user: AuthUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    """Get the current user's local profile."""
    profile = await user_service.get_user(current_user.id)
    return ok({"user": profile})


@router.put("/profile", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    """Update the current user's local profile."""
    profile = await user_service.update_profile(current_user.id, request)
    return ok({"user": profile}, "Profile updated successfully")


@router.post("/sync-user", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def sync_user(
    current_user: AuthUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Copy the identity provider's record of the current user into the users table."""
    profile = await auth_service.sync_user(current_user.id)
    return ok({"user": profile}, "User synced successfully")
