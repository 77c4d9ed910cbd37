"""
API endpoints for session authentication.
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends

from flashquery.api.v1.dependencies import ActorContext, require_user
from flashquery.core.config import settings
from flashquery.core.exceptions import AuthenticationError, NotFoundError
from flashquery.core.security import create_session_token, verify_password
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_repository_context
from flashquery.schemas.user import LoginRequest, UserPublic
from flashquery.utils.datetime import utc_now
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.auth")

router = APIRouter()


@router.post("/login")
async def login(credentials: LoginRequest):
    """
    Log in with email and password.

    Sets an HttpOnly session cookie valid for SESSION_EXPIRE_DAYS.
    """
    async with get_repository_context(UserRepository) as user_repo:
        user = await user_repo.get_by_email(credentials.email)

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Your account has been deactivated")

    lifetime = timedelta(days=settings.SESSION_EXPIRE_DAYS)
    token = create_session_token({"sub": user.id, "role": user.role}, expires_delta=lifetime)
    expires_at = utc_now() + lifetime

    response = success_response(
        {"user": UserPublic.model_validate(user).to_wire(), "expiresAt": expires_at},
        message="Logged in successfully",
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )

    logger.info(f"User {user.id} logged in")
    return response


@router.post("/logout")
async def logout():
    """Clear the session cookie."""
    response = success_response(None, message="Logged out successfully")
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/session")
async def get_current_session(actor: ActorContext = Depends(require_user)):
    """Get the user behind the current session."""
    async with get_repository_context(UserRepository) as user_repo:
        user = await user_repo.get_by_id(actor.user_id)

    if not user:
        raise NotFoundError("User not found")

    return success_response({"user": UserPublic.model_validate(user).to_wire()})
