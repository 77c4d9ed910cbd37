"""
Connection repository for database server credentials.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.core.security import encrypt_secret
from flashquery.db.repositories.base import BaseRepository
from flashquery.db.repositories.databases import DatabaseRepository
from flashquery.models.connection import Connection
from flashquery.models.database import Database
from flashquery.utils.ids import IDPrefix


class ConnectionRepository(BaseRepository[Connection]):
    """Connection repository for database operations."""

    id_prefix = IDPrefix.CONNECTION

    def __init__(self, session: AsyncSession):
        """Initialize with session and Connection model."""
        super().__init__(session=session, model=Connection)

    async def create_connection(
        self,
        *,
        name: str,
        connection_type: str,
        host: str,
        port: int,
        username: str,
        password: str,
        created_by: str
    ) -> Connection:
        """Create a connection, encrypting the password before it is stored."""
        return await self.create(obj_in={
            "name": name,
            "connection_type": connection_type,
            "host": host,
            "port": port,
            "username": username,
            "encrypted_password": encrypt_secret(password),
            "created_by": created_by,
        })

    async def update_connection(
        self,
        *,
        connection_id: str,
        name: Optional[str] = None,
        connection_type: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None
    ) -> Optional[Connection]:
        """Update a connection; an empty password keeps the stored one."""
        return await self.update(id=connection_id, obj_in={
            "name": name,
            "connection_type": connection_type,
            "host": host,
            "port": port,
            "username": username,
            "encrypted_password": encrypt_secret(password) if password else None,
        })

    async def delete_connection(self, *, connection_id: str) -> bool:
        """
        Delete a connection and every database registered on it.

        Args:
            connection_id: Connection ID

        Returns:
            bool: True if deleted, False if not found
        """
        connection = await self.get_by_id(connection_id)
        if not connection:
            return False

        database_repo = DatabaseRepository(self.session)
        result = await self.session.execute(
            select(Database.id).where(Database.connection_id == connection_id)
        )
        for database_id in result.scalars().all():
            await database_repo.delete_database(database_id=database_id)

        await self.session.delete(connection)
        await self.session.commit()

        return True

    async def list_for_user(self, user_id: Optional[str]) -> List[Connection]:
        """List connections, restricted to a creator when ``user_id`` is set."""
        return await self.list(filters={"created_by": user_id})
