import asyncio
import socket

import pytest

from flashquery.core.exceptions import DownstreamServiceError, ValidationError
from flashquery.services.connectivity import ServerChecker, ServerTarget, describe_failure


TARGET = ServerTarget(
    connection_type="mysql",
    host="mysql.internal",
    port=3306,
    username="reader",
    password="secret",
)


def test_describe_failure_messages():
    assert describe_failure(ConnectionRefusedError(111, "refused"), TARGET) == (
        "Cannot connect to mysql.internal:3306. Server is not reachable."
    )
    assert describe_failure(socket.gaierror(-2, "unknown"), TARGET) == (
        'Host "mysql.internal" not found. Please check the hostname.'
    )
    assert describe_failure(asyncio.TimeoutError(), TARGET) == "Connection timeout. Server took too long to respond."
    assert describe_failure(OSError("network is down"), TARGET) == "network is down"


@pytest.mark.asyncio
async def test_checker_dispatches_by_engine():
    seen = []

    async def fetch(target, database, sql, timeout):
        seen.append((target.connection_type, database, sql, timeout))
        return [("orders",), ("billing",)]

    checker = ServerChecker(timeout=2.0, fetchers={"mysql": fetch})

    assert await checker.test_server(TARGET) == "Successfully connected to MySQL"
    assert await checker.list_databases(TARGET) == ["orders", "billing"]
    assert seen[0] == ("mysql", None, "SELECT 1", 2.0)
    assert "information_schema.schemata" in seen[1][2]


@pytest.mark.asyncio
async def test_checker_wraps_driver_errors():
    async def fetch(target, database, sql, timeout):
        raise ConnectionRefusedError(111, "refused")

    checker = ServerChecker(fetchers={"mysql": fetch})

    with pytest.raises(DownstreamServiceError) as exc_info:
        await checker.test_server(TARGET, "orders")
    assert exc_info.value.message == "Cannot connect to mysql.internal:3306. Server is not reachable."
    assert exc_info.value.details == {"service": "mysql"}


@pytest.mark.asyncio
async def test_checker_rejects_unsupported_engine():
    checker = ServerChecker(fetchers={})
    mssql = ServerTarget(connection_type="mssql", host="sql.internal", port=1433, username="sa", password="x")

    with pytest.raises(ValidationError) as exc_info:
        await checker.test_server(mssql)
    assert exc_info.value.message == "Unsupported connection type"

    with pytest.raises(ValidationError):
        await checker.list_databases(mssql)
