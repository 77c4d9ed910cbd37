"""
API endpoints for a user's own profile and password.
"""
from fastapi import APIRouter, Depends

from flashquery.api.v1.dependencies import ActorContext, require_user
from flashquery.core.exceptions import NotFoundError, ValidationError
from flashquery.core.security import verify_password
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_repository_context
from flashquery.schemas.user import PasswordChange, ProfileUpdate, UserPublic
from flashquery.utils.error_handling import success_response

router = APIRouter()


@router.get("/profile")
async def get_profile(actor: ActorContext = Depends(require_user)):
    async with get_repository_context(UserRepository) as user_repo:
        user = await user_repo.get_by_id(actor.user_id)

    if not user:
        raise NotFoundError("User not found")

    return success_response({"user": UserPublic.model_validate(user).to_wire()})


@router.put("/profile")
async def update_profile(
    profile: ProfileUpdate,
    actor: ActorContext = Depends(require_user)
):
    """Update the current user's name and email."""
    async with get_repository_context(UserRepository) as user_repo:
        if await user_repo.email_taken(profile.email, exclude_id=actor.user_id):
            raise ValidationError("Email is already taken")

        user = await user_repo.update_user(
            user_id=actor.user_id,
            name=profile.name,
            email=profile.email,
        )

    if not user:
        raise NotFoundError("User not found")

    return success_response(
        {"user": UserPublic.model_validate(user).to_wire()},
        message="Profile updated successfully",
    )


@router.put("/password")
async def change_password(
    change: PasswordChange,
    actor: ActorContext = Depends(require_user)
):
    """Change the current user's password after verifying the current one."""
    if change.current_password == change.new_password:
        raise ValidationError("New password must be different from current password")

    async with get_repository_context(UserRepository) as user_repo:
        user = await user_repo.get_by_id(actor.user_id)
        if not user:
            raise NotFoundError("User not found")

        if not verify_password(change.current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")

        await user_repo.update_password(user_id=user.id, new_password=change.new_password)

    return success_response(None, message="Password updated successfully")
