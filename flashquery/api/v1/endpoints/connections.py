"""
API endpoints for database server connections.
"""
import logging

from fastapi import APIRouter, Depends, Path, status

from flashquery.api.v1.dependencies import ActorContext, require_admin, require_user
from flashquery.core.exceptions import AuthorizationError, DownstreamServiceError, NotFoundError, ValidationError
from flashquery.db.repositories.connections import ConnectionRepository
from flashquery.db.session import get_repository_context
from flashquery.schemas.base import dump_many
from flashquery.schemas.connection import ConnectionCreate, ConnectionResponse, ConnectionTest, ConnectionUpdate
from flashquery.services.connectivity import ServerChecker, ServerTarget, get_server_checker
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.connections")

router = APIRouter()


@router.get("")
async def list_connections(actor: ActorContext = Depends(require_user)):
    """List connections; non-admins only see the ones they created."""
    async with get_repository_context(ConnectionRepository) as connection_repo:
        connections = await connection_repo.list_for_user(None if actor.is_admin else actor.user_id)

    return success_response({"connections": dump_many(ConnectionResponse, connections)})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_connection(
    connection_in: ConnectionCreate,
    actor: ActorContext = Depends(require_admin)
):
    """Create a connection. The password is stored encrypted and never returned."""
    async with get_repository_context(ConnectionRepository) as connection_repo:
        connection = await connection_repo.create_connection(
            name=connection_in.name.strip(),
            connection_type=connection_in.connection_type.value,
            host=connection_in.host.strip(),
            port=connection_in.port,
            username=connection_in.username,
            password=connection_in.password,
            created_by=actor.user_id,
        )

    logger.info(f"Connection {connection.id} created by {actor.user_id}")
    return success_response(
        {"connection": ConnectionResponse.model_validate(connection).to_wire()},
        message="Connection created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/test")
async def test_connection(
    connection_in: ConnectionTest,
    actor: ActorContext = Depends(require_admin),
    checker: ServerChecker = Depends(get_server_checker)
):
    """Try credentials against a server before saving them."""
    target = ServerTarget(
        connection_type=connection_in.connection_type.value,
        host=connection_in.host.strip(),
        port=connection_in.port,
        username=connection_in.username,
        password=connection_in.password,
    )
    try:
        message = await checker.test_server(target, connection_in.database_name)
    except DownstreamServiceError as e:
        raise ValidationError(e.message) from e

    return success_response(
        {
            "success": True,
            "message": message,
            "connectionType": target.connection_type,
            "host": target.host,
            "port": target.port,
            "databaseName": connection_in.database_name,
        },
        message=message,
    )


@router.get("/{connection_id}")
async def get_connection(
    connection_id: str = Path(..., description="Connection ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_repository_context(ConnectionRepository) as connection_repo:
        connection = await connection_repo.get_by_id(connection_id)

    if not connection:
        raise NotFoundError("Connection not found")
    if not actor.is_admin and connection.created_by != actor.user_id:
        raise AuthorizationError("You do not have access to this connection")

    return success_response({"connection": ConnectionResponse.model_validate(connection).to_wire()})


@router.put("/{connection_id}")
async def update_connection(
    connection_in: ConnectionUpdate,
    connection_id: str = Path(..., description="Connection ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Update a connection; omit or blank the password to keep the stored one."""
    async with get_repository_context(ConnectionRepository) as connection_repo:
        connection = await connection_repo.update_connection(
            connection_id=connection_id,
            name=connection_in.name,
            connection_type=connection_in.connection_type.value if connection_in.connection_type else None,
            host=connection_in.host,
            port=connection_in.port,
            username=connection_in.username,
            password=connection_in.password,
        )

    if not connection:
        raise NotFoundError("Connection not found")

    return success_response(
        {"connection": ConnectionResponse.model_validate(connection).to_wire()},
        message="Connection updated successfully",
    )


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str = Path(..., description="Connection ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Delete a connection and every database registered on it."""
    async with get_repository_context(ConnectionRepository) as connection_repo:
        deleted = await connection_repo.delete_connection(connection_id=connection_id)

    if not deleted:
        raise NotFoundError("Connection not found")

    logger.info(f"Connection {connection_id} deleted by {actor.user_id}")
    return success_response(None, message="Connection and associated databases deleted successfully")


@router.get("/{connection_id}/databases")
async def list_server_databases(
    connection_id: str = Path(..., description="Connection ID"),
    actor: ActorContext = Depends(require_admin),
    checker: ServerChecker = Depends(get_server_checker)
):
    """List the databases hosted on a connection's server."""
    async with get_repository_context(ConnectionRepository) as connection_repo:
        connection = await connection_repo.get_by_id(connection_id)

    if not connection:
        raise NotFoundError("Connection not found")

    try:
        names = await checker.list_databases(ServerTarget.from_connection(connection))
    except DownstreamServiceError as e:
        raise DownstreamServiceError(
            f"Failed to connect to database server: {e.message}",
            service=connection.connection_type,
        ) from e

    logger.info(f"Listed {len(names)} databases on connection {connection_id}")
    return success_response({
        "connectionId": connection.id,
        "connectionName": connection.name,
        "connectionType": connection.connection_type,
        "databases": [{"name": name} for name in names],
    })
