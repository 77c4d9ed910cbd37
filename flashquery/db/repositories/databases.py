"""
Database repository for registered databases and their sync state.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.db.repositories.base import BaseRepository
from flashquery.models.access import Access
from flashquery.models.chat import chat_databases
from flashquery.models.database import Database
from flashquery.utils.datetime import utc_now
from flashquery.utils.ids import IDPrefix


class SyncStatus:
    SYNCED = "synced"
    YET_TO_SYNC = "yet_to_sync"
    SYNCING = "syncing"
    ERROR = "error"


class DatabaseRepository(BaseRepository[Database]):
    """Database repository for database operations."""

    id_prefix = IDPrefix.DATABASE

    def __init__(self, session: AsyncSession):
        """Initialize with session and Database model."""
        super().__init__(session=session, model=Database)

    async def get_by_connection_and_name(self, connection_id: str, database_name: str) -> Optional[Database]:
        """Find a database registered on a connection under a given name."""
        result = await self.session.execute(
            select(Database).where(
                Database.connection_id == connection_id,
                Database.database_name == database_name,
            )
        )
        return result.scalar_one_or_none()

    async def get_many(self, database_ids: List[str]) -> List[Database]:
        """Get all databases whose ID is in ``database_ids``, newest first."""
        if not database_ids:
            return []
        result = await self.session.execute(
            select(Database)
            .where(Database.id.in_(database_ids))
            .order_by(Database.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_needs_sync(self, database_id: str) -> bool:
        """
        Flip a synced database back to ``yet_to_sync``.

        Databases in any other state are left untouched, so the transition is
        only ever synced -> yet_to_sync.

        Args:
            database_id: Database ID

        Returns:
            bool: True if the status changed
        """
        result = await self.session.execute(
            update(Database)
            .where(Database.id == database_id, Database.sync_status == SyncStatus.SYNCED)
            .values(sync_status=SyncStatus.YET_TO_SYNC, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def mark_syncing(self, database_id: str) -> Optional[Database]:
        """Record that a sync has started."""
        return await self.update(id=database_id, obj_in={"sync_status": SyncStatus.SYNCING})

    async def mark_synced(self, database_id: str, sync_result: Dict[str, Any]) -> Optional[Database]:
        """Record a finished sync and its statistics."""
        database = await self.get_by_id(database_id)
        if not database:
            return None

        embeddings_created = sync_result.get("embeddings_created") or 0
        database.sync_status = SyncStatus.SYNCED
        database.sync_last_at = utc_now()
        database.sync_error_message = None
        database.embeddings_ready = bool(embeddings_created) or database.embeddings_ready
        database.sync_metadata = {
            **(database.sync_metadata or {}),
            "tablesProcessed": sync_result.get("tables_processed"),
            "embeddingsCreated": embeddings_created,
            "indexPath": sync_result.get("index_path"),
            "processingTimeMs": sync_result.get("processing_time_ms"),
        }

        self.session.add(database)
        await self.session.commit()

        return await self.get_by_id(database_id)

    async def mark_sync_failed(self, database_id: str, error_message: str) -> Optional[Database]:
        """Record a failed sync."""
        return await self.update(id=database_id, obj_in={
            "sync_status": SyncStatus.ERROR,
            "sync_error_message": error_message,
        })

    async def record_connection_test(self, database_id: str, *, connected: bool) -> Optional[Database]:
        """Store the outcome of a connection test."""
        return await self.update(id=database_id, obj_in={
            "connection_status": "connected" if connected else "error",
            "last_connection_test": utc_now(),
        })

    async def delete_database(self, *, database_id: str) -> bool:
        """
        Delete a database together with its access grants and chat links.

        Args:
            database_id: Database ID

        Returns:
            bool: True if deleted, False if not found
        """
        database = await self.get_by_id(database_id)
        if not database:
            return False

        for statement in (
            delete(Access).where(Access.database_id == database_id),
            delete(chat_databases).where(chat_databases.c.database_id == database_id),
        ):
            await self.session.execute(statement.execution_options(synchronize_session=False))

        await self.session.delete(database)
        await self.session.commit()

        return True
