"""
Chat and message repositories.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.db.repositories.base import BaseRepository
from flashquery.models.chat import Chat, Message
from flashquery.models.database import Database
from flashquery.utils.ids import IDPrefix

DEFAULT_CHAT_TITLE = "New Chat"


class ChatRepository(BaseRepository[Chat]):
    """Chat repository for database operations."""

    id_prefix = IDPrefix.CHAT

    def __init__(self, session: AsyncSession):
        """Initialize with session and Chat model."""
        super().__init__(session=session, model=Chat)

    async def create_chat(
        self,
        *,
        user_id: str,
        databases: List[Database],
        title: Optional[str] = None
    ) -> Chat:
        """Create a chat over already-resolved databases."""
        return await self.create(obj_in={
            "user_id": user_id,
            "databases": databases,
            "title": title or DEFAULT_CHAT_TITLE,
        })

    async def list_for_user(self, user_id: str) -> List[Chat]:
        """List a user's chats, most recently active first."""
        activity = func.coalesce(Chat.last_message_at, Chat.created_at)
        result = await self.session.execute(
            select(Chat).where(Chat.user_id == user_id).order_by(activity.desc())
        )
        return list(result.scalars().all())

    async def delete_chat(self, *, chat_id: str) -> bool:
        """
        Delete a chat and all of its messages.

        Args:
            chat_id: Chat ID

        Returns:
            bool: True if deleted, False if not found
        """
        chat = await self.get_by_id(chat_id)
        if not chat:
            return False

        await self.session.execute(
            delete(Message)
            .where(Message.chat_id == chat_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.delete(chat)
        await self.session.commit()

        return True


class MessageRepository(BaseRepository[Message]):
    """Message repository for database operations."""

    id_prefix = IDPrefix.MESSAGE

    def __init__(self, session: AsyncSession):
        """Initialize with session and Message model."""
        super().__init__(session=session, model=Message)

    async def list_for_chat(self, chat_id: str, *, limit: int = 100) -> List[Message]:
        """List a chat's messages oldest first."""
        return await self.list(filters={"chat_id": chat_id}, limit=limit, newest_first=False)

    async def count_for_chat(self, chat_id: str) -> int:
        return await self.count(filters={"chat_id": chat_id})

    async def last_for_chat(self, chat_id: str) -> Optional[Message]:
        messages = await self.list(filters={"chat_id": chat_id}, limit=1)
        return messages[0] if messages else None

    async def record_reply(
        self,
        *,
        message_id: str,
        assistant_message: str,
        sql_query: Optional[str] = None,
        query_results: Optional[Any] = None,
        file_path: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Message]:
        """Store the assistant side of a message."""
        return await self.update(id=message_id, obj_in={
            "assistant_message": assistant_message,
            "sql_query": sql_query,
            "query_results": query_results,
            "file_path": file_path,
            "message_metadata": metadata,
        })
