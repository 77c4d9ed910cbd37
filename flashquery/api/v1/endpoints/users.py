"""
API endpoints for user administration.
"""
import logging

from fastapi import APIRouter, Depends, Path, status

from flashquery.api.v1.dependencies import ActorContext, require_admin
from flashquery.core.exceptions import NotFoundError, ValidationError
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_repository_context
from flashquery.schemas.base import dump_many
from flashquery.schemas.user import UserCreate, UserPublic, UserRole, UserUpdate
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.users")

router = APIRouter()


@router.get("")
async def list_users(actor: ActorContext = Depends(require_admin)):
    """List all users, newest first."""
    async with get_repository_context(UserRepository) as user_repo:
        users = await user_repo.list()

    return success_response({"users": dump_many(UserPublic, users)})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    actor: ActorContext = Depends(require_admin)
):
    """
    Create a user.

    Emails are unique; a duplicate is reported as a validation error rather
    than a storage conflict.
    """
    async with get_repository_context(UserRepository) as user_repo:
        if await user_repo.email_taken(user_in.email):
            raise ValidationError("User with this email already exists")

        user = await user_repo.create_user(
            email=user_in.email,
            password=user_in.password,
            name=user_in.name,
            role=user_in.role.value,
        )

    logger.info(f"User {user.id} created by {actor.user_id}")
    return success_response(
        {"user": UserPublic.model_validate(user).to_wire()},
        message="User created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{user_id}")
async def update_user(
    user_in: UserUpdate,
    user_id: str = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Update a user. Admins cannot deactivate or demote themselves."""
    if user_id == actor.user_id:
        if user_in.is_active is False:
            raise ValidationError("You cannot deactivate your own account")
        if user_in.role is not None and user_in.role != UserRole.ADMIN:
            raise ValidationError("You cannot change your own role")

    async with get_repository_context(UserRepository) as user_repo:
        if not await user_repo.get_by_id(user_id):
            raise NotFoundError("User not found")

        if user_in.email and await user_repo.email_taken(user_in.email, exclude_id=user_id):
            raise ValidationError("Email is already taken")

        user = await user_repo.update_user(
            user_id=user_id,
            name=user_in.name,
            email=user_in.email,
            role=user_in.role.value if user_in.role else None,
            is_active=user_in.is_active,
            password=user_in.password,
        )

    return success_response(
        {"user": UserPublic.model_validate(user).to_wire()},
        message="User updated successfully",
    )


@router.delete("/{user_id}")
async def delete_user(
    user_id: str = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Delete a user. Admins cannot delete themselves."""
    if user_id == actor.user_id:
        raise ValidationError("You cannot delete your own account")

    async with get_repository_context(UserRepository) as user_repo:
        deleted = await user_repo.delete_user(user_id=user_id)

    if not deleted:
        raise NotFoundError("User not found")

    logger.info(f"User {user_id} deleted by {actor.user_id}")
    return success_response(None, message="User deleted successfully")
