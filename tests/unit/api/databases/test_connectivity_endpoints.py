import socket

import pytest
from httpx import AsyncClient

from flashquery.db.repositories.connections import ConnectionRepository
from flashquery.db.repositories.databases import DatabaseRepository
from flashquery.db.session import get_repository_context

from conftest import load, make_database


CREDENTIALS = {
    "connectionType": "postgresql",
    "host": "reports.internal",
    "port": 5432,
    "username": "reader",
    "password": "hunter2",
}


@pytest.mark.asyncio
async def test_credentials_check(admin_client: AsyncClient, database_server):
    response = await admin_client.post("/api/connections/test", json=CREDENTIALS)
    assert response.status_code == 200
    assert response.json()["message"] == "Successfully connected to PostgreSQL"

    data = response.json()["data"]
    assert data["success"] is True
    assert data["host"] == "reports.internal"

    [call] = database_server.calls
    assert call["sql"] == "SELECT 1"
    assert call["database"] is None
    assert call["target"].password == "hunter2"


@pytest.mark.asyncio
async def test_credentials_check_against_one_database(admin_client: AsyncClient, database_server):
    response = await admin_client.post("/api/connections/test", json={**CREDENTIALS, "databaseName": "sales"})
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Successfully connected to sales"
    assert database_server.calls[0]["database"] == "sales"


@pytest.mark.asyncio
async def test_unreachable_server_is_400(admin_client: AsyncClient, database_server):
    database_server.error = ConnectionRefusedError(111, "Connection refused")

    response = await admin_client.post("/api/connections/test", json=CREDENTIALS)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot connect to reports.internal:5432. Server is not reachable."


@pytest.mark.asyncio
async def test_unknown_host_is_400(admin_client: AsyncClient, database_server):
    database_server.error = socket.gaierror(-2, "Name or service not known")

    response = await admin_client.post("/api/connections/test", json=CREDENTIALS)
    assert response.status_code == 400
    assert response.json()["error"] == 'Host "reports.internal" not found. Please check the hostname.'


@pytest.mark.asyncio
async def test_unsupported_engine(admin_client: AsyncClient, database_server):
    response = await admin_client.post("/api/connections/test", json={**CREDENTIALS, "connectionType": "mongodb"})
    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported connection type"
    assert database_server.calls == []


@pytest.mark.asyncio
async def test_credentials_check_is_admin_only(user_client: AsyncClient, database_server):
    response = await user_client.post("/api/connections/test", json=CREDENTIALS)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_server_databases(admin_client: AsyncClient, connection, database_server):
    response = await admin_client.get(f"/api/connections/{connection.id}/databases")
    assert response.status_code == 200

    data = response.json()["data"]
    assert data["connectionId"] == connection.id
    assert data["connectionType"] == "postgresql"
    assert data["databases"] == [{"name": "analytics"}, {"name": "sales"}]

    [call] = database_server.calls
    assert "pg_database" in call["sql"]
    assert call["target"].password == "s3cret"


@pytest.mark.asyncio
async def test_list_server_databases_failure(admin_client: AsyncClient, connection, database_server):
    database_server.error = ConnectionRefusedError(111, "Connection refused")

    response = await admin_client.get(f"/api/connections/{connection.id}/databases")
    assert response.status_code == 500
    assert response.json()["error"] == (
        "Failed to connect to database server: Cannot connect to db.internal:5432. Server is not reachable."
    )


@pytest.mark.asyncio
async def test_list_server_databases_unknown_connection(admin_client: AsyncClient, database_server):
    response = await admin_client.get("/api/connections/conn-missing/databases")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_databases_of_unsupported_engine(admin_client: AsyncClient, admin_user, database_server):
    async with get_repository_context(ConnectionRepository) as connection_repo:
        mongo = await connection_repo.create_connection(
            name="Documents",
            connection_type="mongodb",
            host="mongo.internal",
            port=27017,
            username="reader",
            password="s3cret",
            created_by=admin_user.id,
        )

    response = await admin_client.get(f"/api/connections/{mongo.id}/databases")
    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported connection type"


@pytest.mark.asyncio
async def test_database_check_marks_connected(admin_client: AsyncClient, connection, admin_user, database_server):
    database = await make_database(connection, admin_user.id, connection_status="disconnected")

    response = await admin_client.post("/api/databases/test", json={"databaseId": database.id})
    assert response.status_code == 200
    assert response.json()["data"]["connectionStatus"] == "connected"
    assert database_server.calls[0]["database"] == "sales"

    stored = await load(DatabaseRepository, database.id)
    assert stored.connection_status == "connected"
    assert stored.last_connection_test is not None


@pytest.mark.asyncio
async def test_database_check_failure_marks_error(admin_client: AsyncClient, connection, admin_user, database_server):
    database = await make_database(connection, admin_user.id)
    database_server.error = TimeoutError()

    response = await admin_client.post("/api/databases/test", json={"databaseId": database.id})
    assert response.status_code == 400
    assert response.json()["error"] == "Connection timeout. Server took too long to respond."

    stored = await load(DatabaseRepository, database.id)
    assert stored.connection_status == "error"
    assert stored.last_connection_test is not None


@pytest.mark.asyncio
async def test_tested_database_can_be_synced(
    admin_client: AsyncClient, connection, admin_user, database_server, query_engine
):
    database = await make_database(connection, admin_user.id, connection_status="disconnected")

    response = await admin_client.post("/api/databases/sync", json={"databaseId": database.id})
    assert response.status_code == 400

    await admin_client.post("/api/databases/test", json={"databaseId": database.id})
    response = await admin_client.post("/api/databases/sync", json={"databaseId": database.id})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_database_check_requires_id(admin_client: AsyncClient, database_server):
    response = await admin_client.post("/api/databases/test", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Database ID is required"


@pytest.mark.asyncio
async def test_database_check_unknown_database(admin_client: AsyncClient, database_server):
    response = await admin_client.post("/api/databases/test", json={"databaseId": "db-missing"})
    assert response.status_code == 404
