import os

# Settings are read at import time, so the test environment is set first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["DB_CREATE_TABLES"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from flashquery.core.config import settings
from flashquery.core.exceptions import DownstreamServiceError, NotFoundError
from flashquery.core.security import create_session_token
from flashquery.db.base import Base
from flashquery.db.repositories.access import AccessRepository
from flashquery.db.repositories.api_keys import ApiKeyRepository
from flashquery.db.repositories.connections import ConnectionRepository
from flashquery.db.repositories.databases import DatabaseRepository, SyncStatus
from flashquery.db.repositories.teams import TeamRepository
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import create_tables, engine, get_repository_context, get_session
from flashquery.main import app
from flashquery.services.connectivity import ServerChecker, get_server_checker
from flashquery.services.object_store import get_object_store
from flashquery.services.query_engine import get_query_engine
from flashquery.services.vector_store import format_vector, get_vector_store


TEST_ADMIN = {"email": "admin@example.com", "password": "Admin123!", "name": "Admin User"}
TEST_USER = {"email": "user@example.com", "password": "User1234!", "name": "Test User"}


class FakeVectorStore:
    """In-memory stand-in for the Milvus-backed vector store."""

    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    def add_table(self, database_id: str, table_name: str, text: str = "", **extra):
        record = {
            "id": f"{database_id}_{table_name}",
            "database_id": database_id,
            "table_name": table_name,
            "text": text,
            "needs_sync": False,
            "skipped": False,
            **extra,
        }
        self.records.append(record)
        return record

    def _table(self, database_id: str, table_name: str) -> List[Dict[str, Any]]:
        records = [
            r for r in self.records
            if r["database_id"] == database_id and r["table_name"] == table_name
        ]
        if not records:
            raise NotFoundError(f"No vector found for table {table_name} in database {database_id}")
        return records

    async def list_vectors(self, database_id: str, *, search: str = "", limit: int = 100, offset: int = 0):
        records = [r for r in self.records if r["database_id"] == database_id]
        if search:
            records = [r for r in records if search.lower() in r["table_name"].lower()]
        page = records[offset:offset + limit]
        return {
            "vectors": [format_vector(r) for r in page],
            "total": len(records),
            "hasData": bool(records),
            "tables": [r["table_name"] for r in page],
            "metadata": {"collection": "test", "database_id": database_id},
        }

    async def update_table_text(self, database_id: str, table_name: str, text: str) -> int:
        records = self._table(database_id, table_name)
        for record in records:
            record.update(text=text, needs_sync=True)
        return len(records)

    async def get_field_descriptions(self, database_id: str, table_name: str):
        record = self._table(database_id, table_name)[0]
        fields = record.get("field_descriptions") or []
        return {
            "field_descriptions": fields,
            "schema": record.get("schema", ""),
            "fields_count": len(fields),
            "table_description": record.get("description", ""),
        }

    async def update_field_descriptions(self, database_id: str, table_name: str, field_descriptions):
        for record in self._table(database_id, table_name):
            record.update(field_descriptions=field_descriptions, needs_sync=True)
        return len(field_descriptions)

    async def set_table_skipped(self, database_id: str, table_name: str, skipped: bool) -> int:
        records = self._table(database_id, table_name)
        for record in records:
            record["skipped"] = skipped
        return len(records)


class FakeQueryEngine:
    """Records calls and answers with canned responses."""

    def __init__(self):
        self.sync_calls: List[Dict[str, Any]] = []
        self.chat_calls: List[Dict[str, Any]] = []
        self.sync_result: Dict[str, Any] = {
            "tables_processed": 3,
            "embeddings_created": 3,
            "index_path": "/indexes/test",
            "processing_time_ms": 120,
            "message": "Embeddings generated",
        }
        self.stream_calls: List[Dict[str, Any]] = []
        self.stream_events: List[Dict[str, Any]] = [
            {"chunk": "There are"},
            {"chunk": "42 orders."},
            {
                "is_complete": True,
                "sql_query": "SELECT COUNT(*) FROM orders",
                "file_path": "s3://query-results/run-2.parquet",
            },
        ]
        self.error: Optional[str] = None

    async def sync_embeddings(self, database_id: str, force_regenerate: bool = False):
        self.sync_calls.append({"database_id": database_id, "force_regenerate": force_regenerate})
        if self.error:
            raise DownstreamServiceError(self.error, service="query_engine")
        return self.sync_result

    async def chat_completion(self, *, database_ids, message, chat_id=None):
        self.chat_calls.append({"database_ids": database_ids, "message": message, "chat_id": chat_id})
        if self.error:
            raise DownstreamServiceError(self.error, service="query_engine")
        return {
            "message": "There are 42 orders.",
            "sqlQuery": "SELECT COUNT(*) FROM orders",
            "queryResults": [{"count": 42}],
            "filePath": "s3://query-results/run-1.parquet",
            "raw": {},
        }

    async def stream_chat_completion(self, *, database_ids, message, chat_id=None):
        self.stream_calls.append({"database_ids": database_ids, "message": message, "chat_id": chat_id})
        if self.error:
            raise DownstreamServiceError(self.error, service="query_engine")
        for event in self.stream_events:
            yield event


class FakeDatabaseServer:
    """Answers connectivity checks without a real server."""

    def __init__(self):
        self.rows: List[tuple] = [("analytics",), ("sales",)]
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def fetch(self, target, database, sql, timeout):
        self.calls.append({"target": target, "database": database, "sql": sql})
        if self.error:
            raise self.error
        return self.rows


class FakeObjectStore:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.requested: List[str] = []

    async def get_object_bytes(self, key: str) -> bytes:
        self.requested.append(key)
        if key not in self.objects:
            raise DownstreamServiceError(f"Failed to fetch {key} from bucket test: NoSuchKey", service="minio")
        return self.objects[key]


@pytest_asyncio.fixture(autouse=True)
async def database():
    """Fresh in-memory schema for every test."""
    await create_tables()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def vector_store():
    store = FakeVectorStore()
    app.dependency_overrides[get_vector_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_vector_store, None)


@pytest.fixture
def query_engine():
    engine_client = FakeQueryEngine()
    app.dependency_overrides[get_query_engine] = lambda: engine_client
    yield engine_client
    app.dependency_overrides.pop(get_query_engine, None)


@pytest.fixture
def database_server():
    server = FakeDatabaseServer()
    checker = ServerChecker(fetchers={"postgresql": server.fetch, "mysql": server.fetch})
    app.dependency_overrides[get_server_checker] = lambda: checker
    yield server
    app.dependency_overrides.pop(get_server_checker, None)


@pytest.fixture
def object_store():
    store = FakeObjectStore()
    app.dependency_overrides[get_object_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_object_store, None)


@pytest_asyncio.fixture
async def admin_user():
    async with get_repository_context(UserRepository) as user_repo:
        return await user_repo.create_user(role="admin", **TEST_ADMIN)


@pytest_asyncio.fixture
async def regular_user():
    async with get_repository_context(UserRepository) as user_repo:
        return await user_repo.create_user(role="user", **TEST_USER)


def session_cookies(user) -> Dict[str, str]:
    token = create_session_token({"sub": user.id, "role": user.role}, expires_delta=timedelta(days=1))
    return {settings.SESSION_COOKIE_NAME: token}


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(admin_user):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=session_cookies(admin_user),
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def user_client(regular_user):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=session_cookies(regular_user),
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def team(admin_user, regular_user):
    async with get_repository_context(TeamRepository) as team_repo:
        return await team_repo.create_team(
            name="Analytics",
            description="Data team",
            members=[regular_user],
            created_by=admin_user.id,
        )


@pytest_asyncio.fixture
async def connection(admin_user):
    async with get_repository_context(ConnectionRepository) as connection_repo:
        return await connection_repo.create_connection(
            name="Warehouse",
            connection_type="postgresql",
            host="db.internal",
            port=5432,
            username="reader",
            password="s3cret",
            created_by=admin_user.id,
        )


async def make_database(
    connection,
    created_by: str,
    name: str = "sales",
    *,
    connection_status: str = "connected",
    sync_status: str = SyncStatus.YET_TO_SYNC,
    embeddings_ready: bool = False
):
    async with get_repository_context(DatabaseRepository) as database_repo:
        return await database_repo.create(obj_in={
            "connection_id": connection.id,
            "database_name": name,
            "display_name": name.title(),
            "enabled": True,
            "connection_status": connection_status,
            "sync_status": sync_status,
            "embeddings_ready": embeddings_ready,
            "sync_metadata": {},
            "created_by": created_by,
        })


@pytest_asyncio.fixture
async def synced_database(connection, admin_user):
    return await make_database(
        connection,
        admin_user.id,
        sync_status=SyncStatus.SYNCED,
        embeddings_ready=True,
    )


async def grant(database_id: str, *, team_id: Optional[str] = None, user_id: Optional[str] = None):
    async with get_repository_context(AccessRepository) as access_repo:
        return await access_repo.create(obj_in={
            "database_id": database_id,
            "access_type": "team" if team_id else "individual",
            "team_id": team_id,
            "user_id": user_id,
        })


async def issue_key(team_id: str, created_by: str, **kwargs):
    """Issue an API key and return ``(record, secret)``."""
    async with get_repository_context(ApiKeyRepository) as key_repo:
        return await key_repo.create_key(
            team_id=team_id,
            name=kwargs.pop("name", "CI key"),
            created_by=created_by,
            expires_in_days=kwargs.pop("expires_in_days", 30),
            permissions=kwargs.pop("permissions", None),
        )


async def load(repository_type, record_id: str):
    async with get_session() as session:
        return await repository_type(session).get_by_id(record_id)
