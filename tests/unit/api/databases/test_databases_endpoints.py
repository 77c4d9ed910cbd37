import pytest
from httpx import AsyncClient

from flashquery.core.security import decrypt_secret
from flashquery.db.repositories.access import AccessRepository
from flashquery.db.repositories.connections import ConnectionRepository
from flashquery.db.repositories.databases import DatabaseRepository

from conftest import grant, issue_key, load, make_database


CONNECTION = {
    "name": "Reporting",
    "connectionType": "postgresql",
    "host": "reports.internal",
    "port": 5432,
    "username": "reader",
    "password": "hunter2",
}


@pytest.mark.asyncio
async def test_create_connection_hides_password(admin_client: AsyncClient):
    response = await admin_client.post("/api/connections", json=CONNECTION)
    assert response.status_code == 201

    connection = response.json()["data"]["connection"]
    assert connection["id"].startswith("conn-")
    assert "password" not in connection
    assert "encryptedPassword" not in connection

    stored = await load(ConnectionRepository, connection["id"])
    assert stored.encrypted_password != "hunter2"
    assert decrypt_secret(stored.encrypted_password) == "hunter2"


@pytest.mark.asyncio
async def test_update_connection_keeps_blank_password(admin_client: AsyncClient, connection):
    response = await admin_client.put(
        f"/api/connections/{connection.id}",
        json={"host": "replica.internal", "password": ""},
    )
    assert response.status_code == 200
    assert response.json()["data"]["connection"]["host"] == "replica.internal"

    stored = await load(ConnectionRepository, connection.id)
    assert decrypt_secret(stored.encrypted_password) == "s3cret"


@pytest.mark.asyncio
async def test_user_only_sees_own_connections(user_client: AsyncClient, connection):
    response = await user_client.get("/api/connections")
    assert response.status_code == 200
    assert response.json()["data"]["connections"] == []

    response = await user_client.get(f"/api/connections/{connection.id}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_connection_cascades(admin_client: AsyncClient, connection, admin_user, team):
    database = await make_database(connection, admin_user.id)
    access = await grant(database.id, team_id=team.id)

    response = await admin_client.delete(f"/api/connections/{connection.id}")
    assert response.status_code == 200

    assert await load(DatabaseRepository, database.id) is None
    assert await load(AccessRepository, access.id) is None


@pytest.mark.asyncio
async def test_create_database(admin_client: AsyncClient, connection):
    response = await admin_client.post("/api/databases", json={
        "connectionId": connection.id,
        "databaseName": "sales",
    })
    assert response.status_code == 201

    database = response.json()["data"]["database"]
    assert database["id"].startswith("db-")
    assert database["displayName"] == "sales"
    assert database["syncStatus"] == "yet_to_sync"
    assert database["embeddingsReady"] is False
    assert database["metadata"] == {}


@pytest.mark.asyncio
async def test_create_duplicate_database(admin_client: AsyncClient, connection, admin_user):
    await make_database(connection, admin_user.id, "sales")

    response = await admin_client.post("/api/databases", json={
        "connectionId": connection.id,
        "databaseName": "sales",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_database_unknown_connection(admin_client: AsyncClient):
    response = await admin_client.post("/api/databases", json={
        "connectionId": "conn_missing",
        "databaseName": "sales",
    })
    assert response.status_code == 404
    assert response.json()["error"] == "Connection not found"


@pytest.mark.asyncio
async def test_user_lists_granted_databases(user_client: AsyncClient, connection, admin_user, regular_user, team):
    direct = await make_database(connection, admin_user.id, "direct")
    via_team = await make_database(connection, admin_user.id, "via_team")
    hidden = await make_database(connection, admin_user.id, "hidden")
    await grant(direct.id, user_id=regular_user.id)
    await grant(via_team.id, team_id=team.id)

    response = await user_client.get("/api/databases")
    ids = {d["id"] for d in response.json()["data"]["databases"]}
    assert ids == {direct.id, via_team.id}

    assert (await user_client.get(f"/api/databases/{direct.id}")).status_code == 200
    hidden_response = await user_client.get(f"/api/databases/{hidden.id}")
    assert hidden_response.status_code == 403
    assert hidden_response.json()["error"] == "Access denied to this database"


@pytest.mark.asyncio
async def test_accessible_databases_for_api_key(client: AsyncClient, connection, admin_user, regular_user, team):
    team_db = await make_database(connection, admin_user.id, "team_db")
    user_db = await make_database(connection, admin_user.id, "user_db")
    await grant(team_db.id, team_id=team.id)
    await grant(user_db.id, user_id=regular_user.id)
    _, secret = await issue_key(team.id, admin_user.id)

    response = await client.get("/api/databases/accessible", headers={"Authorization": f"Bearer {secret}"})
    assert response.status_code == 200
    assert [d["id"] for d in response.json()["data"]["databases"]] == [team_db.id]


@pytest.mark.asyncio
async def test_update_database_connection_status(admin_client: AsyncClient, connection, admin_user):
    database = await make_database(connection, admin_user.id, connection_status="disconnected")

    response = await admin_client.put(f"/api/databases/{database.id}", json={
        "displayName": "Sales (prod)",
        "connectionStatus": "connected",
    })
    assert response.status_code == 200
    updated = response.json()["data"]["database"]
    assert updated["displayName"] == "Sales (prod)"
    assert updated["connectionStatus"] == "connected"
    assert updated["lastConnectionTest"] is not None


@pytest.mark.asyncio
async def test_sync_success(admin_client: AsyncClient, connection, admin_user, query_engine):
    database = await make_database(connection, admin_user.id)

    response = await admin_client.post("/api/databases/sync", json={
        "databaseId": database.id,
        "forceRegenerate": True,
    })
    assert response.status_code == 200
    assert query_engine.sync_calls == [{"database_id": database.id, "force_regenerate": True}]

    data = response.json()["data"]
    assert data["syncStatus"] == "synced"
    assert data["metadata"]["embeddingsCreated"] == 3

    stored = await load(DatabaseRepository, database.id)
    assert stored.sync_status == "synced"
    assert stored.embeddings_ready is True
    assert stored.sync_last_at is not None


@pytest.mark.asyncio
async def test_sync_failure_records_error(admin_client: AsyncClient, connection, admin_user, query_engine):
    database = await make_database(connection, admin_user.id)
    query_engine.error = "engine offline"

    response = await admin_client.post("/api/databases/sync", json={"databaseId": database.id})
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to sync database: engine offline"

    stored = await load(DatabaseRepository, database.id)
    assert stored.sync_status == "error"
    assert stored.sync_error_message == "Sync failed: engine offline"


@pytest.mark.asyncio
async def test_sync_requires_connected_database(admin_client: AsyncClient, connection, admin_user, query_engine):
    database = await make_database(connection, admin_user.id, connection_status="disconnected")

    response = await admin_client.post("/api/databases/sync", json={"databaseId": database.id})
    assert response.status_code == 400
    assert query_engine.sync_calls == []


@pytest.mark.asyncio
async def test_delete_database_removes_grants(admin_client: AsyncClient, connection, admin_user, team):
    database = await make_database(connection, admin_user.id)
    access = await grant(database.id, team_id=team.id)

    response = await admin_client.delete(f"/api/databases/{database.id}")
    assert response.status_code == 200
    assert await load(AccessRepository, access.id) is None
    assert (await admin_client.delete(f"/api/databases/{database.id}")).status_code == 404
