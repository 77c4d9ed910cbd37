"""
User repository for database operations related to users.
"""
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.core.security import get_password_hash
from flashquery.db.repositories.base import BaseRepository
from flashquery.models.access import Access
from flashquery.models.chat import Chat, Message, chat_databases
from flashquery.models.team import team_members
from flashquery.models.user import User
from flashquery.utils.ids import IDPrefix


class UserRepository(BaseRepository[User]):
    """User repository for database operations."""

    id_prefix = IDPrefix.USER

    def __init__(self, session: AsyncSession):
        """Initialize with session and User model."""
        super().__init__(session=session, model=User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get a user by email (case-insensitive).

        Args:
            email: User email

        Returns:
            User: Found user or None
        """
        return await self.get_by_attribute("email", email.strip().lower())

    async def email_taken(self, email: str, *, exclude_id: Optional[str] = None) -> bool:
        """
        Check whether an email already belongs to a user.

        Args:
            email: Email to check
            exclude_id: User whose own email should not count

        Returns:
            bool: True if another user has this email
        """
        query = select(func.count()).select_from(User).where(User.email == email.strip().lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        result = await self.session.execute(query)
        return result.scalar_one() > 0

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        name: str,
        role: str = "user",
        is_active: bool = True
    ) -> User:
        """
        Create a new user, hashing the password before it is stored.

        Args:
            email: User email
            password: Plain-text password
            name: Display name
            role: User role
            is_active: Whether the user is active

        Returns:
            User: Created user
        """
        return await self.create(obj_in={
            "email": email.strip().lower(),
            "hashed_password": get_password_hash(password),
            "name": name.strip(),
            "role": role,
            "is_active": is_active,
        })

    async def update_user(
        self,
        *,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        password: Optional[str] = None
    ) -> Optional[User]:
        """Update profile fields; a new password is hashed first."""
        return await self.update(id=user_id, obj_in={
            "name": name.strip() if name else None,
            "email": email.strip().lower() if email else None,
            "role": role,
            "is_active": is_active,
            "hashed_password": get_password_hash(password) if password else None,
        })

    async def update_password(self, *, user_id: str, new_password: str) -> Optional[User]:
        """
        Update user password.

        Args:
            user_id: User ID
            new_password: New password (plain text)

        Returns:
            User: Updated user or None
        """
        return await self.update(
            id=user_id,
            obj_in={"hashed_password": get_password_hash(new_password)}
        )

    async def get_many(self, user_ids: List[str]) -> List[User]:
        """Get all users whose ID is in ``user_ids``."""
        if not user_ids:
            return []
        result = await self.session.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    async def delete_user(self, *, user_id: str) -> bool:
        """
        Delete a user together with their memberships, grants and chats.

        Args:
            user_id: User ID

        Returns:
            bool: True if deleted, False if not found
        """
        user = await self.get_by_id(user_id)
        if not user:
            return False

        chat_ids = select(Chat.id).where(Chat.user_id == user_id)
        for statement in (
            delete(Message).where(Message.chat_id.in_(chat_ids)),
            delete(chat_databases).where(chat_databases.c.chat_id.in_(chat_ids)),
            delete(Chat).where(Chat.user_id == user_id),
            delete(Access).where(Access.user_id == user_id),
            delete(team_members).where(team_members.c.user_id == user_id),
        ):
            await self.session.execute(statement.execution_options(synchronize_session=False))

        await self.session.delete(user)
        await self.session.commit()

        return True
