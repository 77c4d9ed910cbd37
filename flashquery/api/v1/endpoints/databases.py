"""
API endpoints for registered databases and embedding sync.
"""
import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.api.v1.dependencies import ActorContext, get_actor, require_admin, require_user
from flashquery.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DownstreamServiceError,
    NotFoundError,
    ValidationError,
)
from flashquery.db.repositories.access import AccessRepository
from flashquery.db.repositories.connections import ConnectionRepository
from flashquery.db.repositories.databases import DatabaseRepository, SyncStatus
from flashquery.db.session import get_session
from flashquery.models.database import Database
from flashquery.schemas.base import dump_many
from flashquery.schemas.database import (
    ConnectionStatus,
    DatabaseCreate,
    DatabaseResponse,
    DatabaseTestRequest,
    DatabaseUpdate,
    SyncRequest,
)
from flashquery.services.connectivity import ServerChecker, ServerTarget, get_server_checker
from flashquery.services.query_engine import QueryEngineClient, get_query_engine
from flashquery.utils.datetime import utc_now
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.databases")

router = APIRouter()


async def can_access_database(session: AsyncSession, database: Database, actor: ActorContext) -> bool:
    """
    Decide whether an actor may use a database.

    Admins and the creator always may; other users need a direct or team
    grant; API keys need a grant to their team.
    """
    access_repo = AccessRepository(session)
    if not actor.is_session:
        return await access_repo.team_has_access(team_id=actor.team_id, database_id=database.id)
    if actor.is_admin or database.created_by == actor.user_id:
        return True
    return await access_repo.user_has_access(user_id=actor.user_id, database_id=database.id)


async def get_accessible_database(session: AsyncSession, database_id: str, actor: ActorContext) -> Database:
    """
    Load a database the actor may use.

    Raises:
        NotFoundError: If the database does not exist
        AuthorizationError: If the actor has no access
    """
    database = await DatabaseRepository(session).get_by_id(database_id)
    if not database:
        raise NotFoundError("Database not found")
    if not await can_access_database(session, database, actor):
        raise AuthorizationError("Access denied to this database")
    return database


@router.get("")
async def list_databases(actor: ActorContext = Depends(require_user)):
    """List databases; non-admins see the ones granted to them or their teams."""
    async with get_session() as session:
        database_repo = DatabaseRepository(session)
        if actor.is_admin:
            databases = await database_repo.list()
        else:
            database_ids = await AccessRepository(session).database_ids_for_user(actor.user_id)
            databases = await database_repo.get_many(database_ids)

    return success_response({"databases": dump_many(DatabaseResponse, databases)})


@router.get("/accessible")
async def list_accessible_databases(actor: ActorContext = Depends(get_actor)):
    """
    List databases usable for querying.

    Sessions get databases granted to the user or their teams; API keys get
    databases granted to the key's team.
    """
    async with get_session() as session:
        access_repo = AccessRepository(session)
        if actor.is_session:
            database_ids = await access_repo.database_ids_for_user(actor.user_id)
        else:
            database_ids = await access_repo.database_ids_for_team(actor.team_id)
        databases = await DatabaseRepository(session).get_many(database_ids)

    return success_response({"databases": dump_many(DatabaseResponse, databases)})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_database(
    database_in: DatabaseCreate,
    actor: ActorContext = Depends(require_admin)
):
    """Register a database on an existing connection."""
    async with get_session() as session:
        if not await ConnectionRepository(session).get_by_id(database_in.connection_id):
            raise NotFoundError("Connection not found")

        database_repo = DatabaseRepository(session)
        existing = await database_repo.get_by_connection_and_name(
            database_in.connection_id, database_in.database_name
        )
        if existing:
            raise ConflictError("Database already exists for this connection")

        connected = database_in.connection_status == ConnectionStatus.CONNECTED
        database = await database_repo.create(obj_in={
            "connection_id": database_in.connection_id,
            "database_name": database_in.database_name,
            "display_name": database_in.display_name or database_in.database_name,
            "enabled": database_in.enabled,
            "connection_status": database_in.connection_status.value,
            "last_connection_test": utc_now() if connected else None,
            "sync_status": SyncStatus.YET_TO_SYNC,
            "sync_metadata": {},
            "created_by": actor.user_id,
        })

    logger.info(f"Database {database.id} registered by {actor.user_id}")
    return success_response(
        {"database": DatabaseResponse.model_validate(database).to_wire()},
        message="Database added successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/sync")
async def sync_database(
    sync_in: SyncRequest,
    actor: ActorContext = Depends(require_admin),
    query_engine: QueryEngineClient = Depends(get_query_engine)
):
    """
    Generate embeddings for a database through the query engine.

    The database must be connected. Its status moves to ``syncing`` and
    then to ``synced`` or ``error``.
    """
    async with get_session() as session:
        database_repo = DatabaseRepository(session)
        database = await database_repo.get_by_id(sync_in.database_id)
        if not database:
            raise NotFoundError("Database not found")
        if database.connection_status != ConnectionStatus.CONNECTED.value:
            raise ValidationError("Database must be connected before syncing")

        await database_repo.mark_syncing(database.id)

    try:
        result = await query_engine.sync_embeddings(sync_in.database_id, sync_in.force_regenerate)
    except DownstreamServiceError as e:
        async with get_session() as session:
            await DatabaseRepository(session).mark_sync_failed(sync_in.database_id, f"Sync failed: {e.message}")
        logger.error(f"Sync of database {sync_in.database_id} failed: {e.message}")
        raise DownstreamServiceError(f"Failed to sync database: {e.message}", service="query_engine") from e

    async with get_session() as session:
        database = await DatabaseRepository(session).mark_synced(sync_in.database_id, result)

    logger.info(f"Database {database.id} synced by {actor.user_id}")
    return success_response(
        {
            "databaseId": database.id,
            "databaseName": database.database_name,
            "syncStatus": database.sync_status,
            "syncLastAt": database.sync_last_at,
            "message": result.get("message") or "Sync completed successfully",
            "metadata": database.sync_metadata,
        },
        message="Database sync completed successfully",
    )


@router.post("/test")
async def test_database(
    test_in: DatabaseTestRequest,
    actor: ActorContext = Depends(require_admin),
    checker: ServerChecker = Depends(get_server_checker)
):
    """
    Connect to a registered database and record the outcome.

    A successful test marks the database ``connected``, which /sync requires;
    a failed one marks it ``error``.
    """
    if not test_in.database_id:
        raise ValidationError("Database ID is required")

    async with get_session() as session:
        database = await DatabaseRepository(session).get_by_id(test_in.database_id)
    if not database:
        raise NotFoundError("Database not found")

    try:
        message = await checker.test_server(ServerTarget.from_connection(database.connection), database.database_name)
    except DownstreamServiceError as e:
        async with get_session() as session:
            await DatabaseRepository(session).record_connection_test(database.id, connected=False)
        raise ValidationError(e.message) from e

    async with get_session() as session:
        await DatabaseRepository(session).record_connection_test(database.id, connected=True)

    logger.info(f"Database {database.id} connection test passed")
    return success_response(
        {
            "success": True,
            "databaseId": database.id,
            "databaseName": database.database_name,
            "connectionStatus": ConnectionStatus.CONNECTED.value,
            "message": message,
        },
        message=message,
    )


@router.get("/{database_id}")
async def get_database(
    database_id: str = Path(..., description="Database ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        database = await get_accessible_database(session, database_id, actor)

    return success_response({"database": DatabaseResponse.model_validate(database).to_wire()})


@router.put("/{database_id}")
async def update_database(
    database_in: DatabaseUpdate,
    database_id: str = Path(..., description="Database ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Update display name, enabled flag or connection status."""
    values = {
        "display_name": database_in.display_name,
        "enabled": database_in.enabled,
    }
    if database_in.connection_status is not None:
        values["connection_status"] = database_in.connection_status.value
        values["last_connection_test"] = utc_now()

    async with get_session() as session:
        database = await DatabaseRepository(session).update(id=database_id, obj_in=values)

    if not database:
        raise NotFoundError("Database not found")

    return success_response(
        {"database": DatabaseResponse.model_validate(database).to_wire()},
        message="Database updated successfully",
    )


@router.delete("/{database_id}")
async def delete_database(
    database_id: str = Path(..., description="Database ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Delete a database together with its access grants."""
    async with get_session() as session:
        deleted = await DatabaseRepository(session).delete_database(database_id=database_id)

    if not deleted:
        raise NotFoundError("Database not found")

    logger.info(f"Database {database_id} deleted by {actor.user_id}")
    return success_response(None, message="Database deleted successfully")
