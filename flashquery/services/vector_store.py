"""
Vector store client for table embeddings kept in Milvus.

Talks to the Milvus RESTful API (v2) over httpx. Every table of a synced
database is stored as one or more records carrying ``database_id``,
``table_name``, the embedded ``text`` and editable metadata
(``description``, ``field_descriptions``, ``skipped``, ``needs_sync``).
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from flashquery.core.config import settings
from flashquery.core.exceptions import DownstreamServiceError, NotFoundError

logger = logging.getLogger("flashquery.vectors")

# Largest result window a single Milvus query may return
MAX_QUERY_WINDOW = 16384


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def database_filter(database_id: str, table_name: Optional[str] = None) -> str:
    """Build the Milvus boolean expression selecting a database or one of its tables."""
    expr = f"database_id == {_quote(database_id)}"
    if table_name is not None:
        expr += f" && table_name == {_quote(table_name)}"
    return expr


def parse_field_descriptions(raw: Any) -> List[Dict[str, Any]]:
    """Field descriptions are stored as a JSON string of ``[{field_name, description}]``."""
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def format_vector(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shape a raw Milvus record for API responses.

    The embedded text is laid out as table line, description line, columns
    line; the dedicated ``description`` and ``schema`` fields win when set.
    """
    text = record.get("text") or ""
    lines = text.split("\n")
    table_line = lines[0] if lines else ""
    columns_line = lines[2] if len(lines) > 2 else ""
    description = record.get("description") or (lines[1] if len(lines) > 1 else "")
    field_descriptions = parse_field_descriptions(record.get("field_descriptions"))

    return {
        "id": record.get("id") or f"{record.get('database_id')}_{record.get('table_name')}",
        "table_name": record.get("table_name"),
        "description": description,
        "needs_sync": bool(record.get("needs_sync")),
        "skipped": bool(record.get("skipped")),
        "field_descriptions": field_descriptions,
        "fields_count": len(field_descriptions),
        "metadata": {
            "fullText": text,
            "tableLine": table_line,
            "descriptionLine": description,
            "columnsLine": record.get("schema") or columns_line,
        },
    }


class VectorStore:
    """
    Client for the table embedding collection.

    Args:
        base_url: Milvus REST endpoint, e.g. ``http://localhost:19530``
        collection: Collection holding table embeddings
        token: Optional bearer token (``user:password`` or API key)
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        base_url: str,
        collection: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.collection = collection
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(path, json=payload, headers=self._headers())
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise DownstreamServiceError(
                f"Vector store returned {e.response.status_code}: {e.response.text}",
                service="milvus",
            ) from e
        except httpx.HTTPError as e:
            raise DownstreamServiceError(f"Vector store request failed: {e}", service="milvus") from e
        except ValueError as e:
            raise DownstreamServiceError("Vector store returned invalid JSON", service="milvus") from e

        if body.get("code", 0) != 0:
            raise DownstreamServiceError(
                f"Vector store error: {body.get('message', 'unknown error')}",
                service="milvus",
            )
        return body.get("data")

    async def query(
        self,
        expr: str,
        *,
        output_fields: Optional[List[str]] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Run a filtered query against the collection."""
        payload: Dict[str, Any] = {
            "collectionName": self.collection,
            "filter": expr,
            "outputFields": output_fields or ["*"],
            "limit": limit,
        }
        if offset:
            payload["offset"] = offset
        return await self._post("/v2/vectordb/entities/query", payload) or []

    async def upsert(self, records: List[Dict[str, Any]]) -> None:
        """Insert or replace whole records."""
        await self._post(
            "/v2/vectordb/entities/upsert",
            {"collectionName": self.collection, "data": records},
        )

    async def count(self, expr: str) -> int:
        """Count records matching an expression."""
        rows = await self.query(expr, output_fields=["count(*)"], limit=1)
        if rows and rows[0].get("count(*)") is not None:
            return int(rows[0]["count(*)"])
        # Older servers reject count(*); fall back to fetching ids
        ids = await self.query(expr, output_fields=["id"], limit=MAX_QUERY_WINDOW)
        return len(ids)

    async def list_vectors(
        self,
        database_id: str,
        *,
        search: str = "",
        limit: int = 100,
        offset: int = 0
    ) -> Dict[str, Any]:
        """
        List the formatted vectors of a database.

        Without a search term pagination is done by Milvus. With one, the
        whole window is fetched and filtered by table name or text, since
        the query language has no substring match.

        Args:
            database_id: Database ID
            search: Case-insensitive filter on table name and text
            limit: Page size
            offset: Page offset

        Returns:
            Dict: vectors, total, hasData, tables and metadata
        """
        expr = database_filter(database_id)

        if not search:
            total = await self.count(expr)
            page = await self.query(expr, limit=limit, offset=offset) if total else []
        else:
            needle = search.lower()
            matches = [
                record
                for record in await self.query(expr, limit=MAX_QUERY_WINDOW)
                if needle in (record.get("table_name") or "").lower()
                or needle in (record.get("text") or "").lower()
            ]
            total = len(matches)
            page = matches[offset:offset + limit]

        tables: List[str] = []
        for record in page:
            if record.get("table_name") not in tables:
                tables.append(record.get("table_name"))

        logger.debug(f"Database {database_id}: {total} vectors, returning {len(page)}")

        return {
            "vectors": [format_vector(record) for record in page],
            "total": total,
            "hasData": total > 0,
            "tables": tables,
            "metadata": {"collection": self.collection, "database_id": database_id},
        }

    async def _table_records(self, database_id: str, table_name: str, limit: int = MAX_QUERY_WINDOW) -> List[Dict[str, Any]]:
        records = await self.query(database_filter(database_id, table_name), limit=limit)
        if not records:
            raise NotFoundError(f"No vector found for table {table_name} in database {database_id}")
        return records

    async def update_table_text(self, database_id: str, table_name: str, text: str) -> int:
        """
        Replace the embedded text of a table and flag it for re-embedding.

        Returns:
            int: Number of records updated
        """
        records = await self._table_records(database_id, table_name)
        await self.upsert([{**record, "text": text, "needs_sync": True} for record in records])
        logger.info(f"Updated text of table {table_name} in database {database_id}")
        return len(records)

    async def get_field_descriptions(self, database_id: str, table_name: str) -> Dict[str, Any]:
        """Get a table's field descriptions, schema and description."""
        records = await self._table_records(database_id, table_name, limit=1)
        record = records[0]
        field_descriptions = parse_field_descriptions(record.get("field_descriptions"))

        schema = record.get("schema") or ""
        if not isinstance(schema, str):
            schema = json.dumps(schema)

        return {
            "field_descriptions": field_descriptions,
            "schema": schema,
            "fields_count": len(field_descriptions),
            "table_description": record.get("description") or "",
        }

    async def update_field_descriptions(
        self,
        database_id: str,
        table_name: str,
        field_descriptions: List[Dict[str, Any]]
    ) -> int:
        """
        Replace a table's field descriptions and flag it for re-embedding.

        Returns:
            int: Number of field descriptions stored
        """
        records = await self._table_records(database_id, table_name)
        encoded = json.dumps(field_descriptions)
        await self.upsert([
            {**record, "field_descriptions": encoded, "needs_sync": True}
            for record in records
        ])
        logger.info(f"Updated {len(field_descriptions)} field descriptions of table {table_name}")
        return len(field_descriptions)

    async def set_table_skipped(self, database_id: str, table_name: str, skipped: bool) -> int:
        """
        Include or exclude a table from embedding.

        Returns:
            int: Number of records updated
        """
        records = await self._table_records(database_id, table_name)
        await self.upsert([{**record, "skipped": skipped} for record in records])
        logger.info(f"Set skipped={skipped} on table {table_name} in database {database_id}")
        return len(records)


def get_vector_store() -> VectorStore:
    """Get vector store client instance."""
    return VectorStore(
        base_url=settings.MILVUS_URL,
        collection=settings.MILVUS_COLLECTION_NAME,
        token=settings.MILVUS_TOKEN,
    )
