"""
Connectivity checks against customer database servers.

Used to test credentials before a connection is saved, to list the
databases a server hosts and to test a registered database. PostgreSQL is
reached through asyncpg and MySQL through asyncmy; other engines are
rejected as unsupported.
"""
import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import asyncmy
import asyncpg
from asyncmy.errors import MySQLError

from flashquery.core.exceptions import DownstreamServiceError, ValidationError
from flashquery.core.security import decrypt_secret
from flashquery.models.connection import Connection

logger = logging.getLogger("flashquery.connectivity")

DEFAULT_TIMEOUT = 5.0

ENGINE_NAMES = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
}

LIST_DATABASES_SQL = {
    "postgresql": (
        "SELECT datname FROM pg_database WHERE datistemplate = false "
        "AND datname NOT IN ('postgres', 'template0', 'template1') ORDER BY datname"
    ),
    "mysql": (
        "SELECT SCHEMA_NAME FROM information_schema.schemata WHERE SCHEMA_NAME NOT IN "
        "('information_schema', 'mysql', 'performance_schema', 'sys') ORDER BY SCHEMA_NAME"
    ),
}

# MySQL server error codes
MYSQL_ACCESS_DENIED = 1045
MYSQL_BAD_DATABASE = 1049

DRIVER_ERRORS = (OSError, asyncio.TimeoutError, TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError, MySQLError)


@dataclass
class ServerTarget:
    """Address and credentials of a database server."""
    connection_type: str
    host: str
    port: int
    username: str
    password: str

    @classmethod
    def from_connection(cls, connection: Connection) -> "ServerTarget":
        return cls(
            connection_type=connection.connection_type,
            host=connection.host,
            port=connection.port,
            username=connection.username,
            password=decrypt_secret(connection.encrypted_password),
        )


async def fetch_postgresql(target: ServerTarget, database: Optional[str], sql: str, timeout: float) -> List[Sequence[Any]]:
    conn = await asyncpg.connect(
        host=target.host,
        port=target.port,
        user=target.username,
        password=target.password,
        database=database or "postgres",
        timeout=timeout,
    )
    try:
        rows = await conn.fetch(sql)
        return [tuple(row.values()) for row in rows]
    finally:
        await conn.close()


async def fetch_mysql(target: ServerTarget, database: Optional[str], sql: str, timeout: float) -> List[Sequence[Any]]:
    conn = await asyncmy.connect(
        host=target.host,
        port=target.port,
        user=target.username,
        password=target.password,
        db=database,
        connect_timeout=timeout,
    )
    try:
        async with conn.cursor() as cursor:
            await cursor.execute(sql)
            return list(await cursor.fetchall())
    finally:
        await conn.ensure_closed()


Fetcher = Callable[[ServerTarget, Optional[str], str, float], Awaitable[List[Sequence[Any]]]]

FETCHERS: Dict[str, Fetcher] = {
    "postgresql": fetch_postgresql,
    "mysql": fetch_mysql,
}


def describe_failure(error: Exception, target: ServerTarget, database: Optional[str] = None) -> str:
    """Turn a driver error into a message an admin can act on."""
    if isinstance(error, ConnectionRefusedError):
        return f"Cannot connect to {target.host}:{target.port}. Server is not reachable."
    if isinstance(error, socket.gaierror):
        return f'Host "{target.host}" not found. Please check the hostname.'
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "Connection timeout. Server took too long to respond."

    code = error.args[0] if isinstance(error, MySQLError) and error.args else None
    if isinstance(error, asyncpg.InvalidAuthorizationSpecificationError) or code == MYSQL_ACCESS_DENIED:
        return "Authentication failed. Please check username and password."
    if database and (isinstance(error, asyncpg.InvalidCatalogNameError) or code == MYSQL_BAD_DATABASE):
        return f'Database "{database}" does not exist.'

    return str(error) or "Connection test failed"


class ServerChecker:
    """Runs short-lived queries against a database server."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, fetchers: Optional[Dict[str, Fetcher]] = None):
        self.timeout = timeout
        self.fetchers = fetchers if fetchers is not None else FETCHERS

    async def _fetch(self, target: ServerTarget, database: Optional[str], sql: str) -> List[Sequence[Any]]:
        fetch = self.fetchers.get(target.connection_type)
        if fetch is None:
            raise ValidationError("Unsupported connection type")

        try:
            return await fetch(target, database, sql, self.timeout)
        except DRIVER_ERRORS as e:
            logger.warning(
                f"{target.connection_type} server {target.host}:{target.port} "
                f"({database or 'default database'}) failed: {e}"
            )
            raise DownstreamServiceError(
                describe_failure(e, target, database),
                service=target.connection_type,
            ) from e

    async def test_server(self, target: ServerTarget, database: Optional[str] = None) -> str:
        """
        Connect and run ``SELECT 1``.

        Returns:
            str: Success message

        Raises:
            ValidationError: If the engine is not supported
            DownstreamServiceError: If the server cannot be reached or rejects the login
        """
        await self._fetch(target, database, "SELECT 1")
        if database:
            return f"Successfully connected to {database}"
        return f"Successfully connected to {ENGINE_NAMES[target.connection_type]}"

    async def list_databases(self, target: ServerTarget) -> List[str]:
        """List the user databases on a server, skipping system databases."""
        if target.connection_type not in LIST_DATABASES_SQL:
            raise ValidationError("Unsupported connection type")
        rows = await self._fetch(target, None, LIST_DATABASES_SQL[target.connection_type])
        return [row[0] for row in rows]


def get_server_checker() -> ServerChecker:
    """Get server checker instance."""
    return ServerChecker()
