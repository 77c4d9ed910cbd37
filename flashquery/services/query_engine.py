"""
Client for the natural-language query engine.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from flashquery.core.config import settings
from flashquery.core.exceptions import DownstreamServiceError

logger = logging.getLogger("flashquery.query_engine")


class QueryEngineClient:
    """
    HTTP client for the query engine service.

    The engine generates embeddings for a database (``/sync_embeddings``)
    and answers questions over one or more databases (``/chat/completion``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    path,
                    json=payload,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise DownstreamServiceError(
                f"Query engine returned {e.response.status_code}: {e.response.text}",
                service="query_engine",
            ) from e
        except httpx.HTTPError as e:
            raise DownstreamServiceError(f"Query engine request failed: {e}", service="query_engine") from e
        except ValueError as e:
            raise DownstreamServiceError("Query engine returned invalid JSON", service="query_engine") from e

        if not isinstance(data, dict):
            raise DownstreamServiceError("Query engine returned unexpected payload", service="query_engine")
        return data

    async def sync_embeddings(self, database_id: str, force_regenerate: bool = False) -> Dict[str, Any]:
        """
        Generate or refresh the embeddings of a database.

        Returns:
            Dict: Engine statistics (tables_processed, embeddings_created,
            index_path, processing_time_ms, message)
        """
        logger.info(f"Requesting embedding sync for database {database_id}")
        return await self._post(
            "/sync_embeddings",
            {"db_id": database_id, "force_regenerate": force_regenerate},
        )

    async def chat_completion(
        self,
        *,
        database_ids: List[str],
        message: str,
        chat_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Answer a question over the given databases.

        Returns:
            Dict: ``message`` (assistant reply), ``sqlQuery``, ``queryResults``
            and ``filePath`` normalized from the engine response
        """
        data = await self._post(
            "/chat/completion",
            {
                "chatId": chat_id,
                "databaseIds": database_ids,
                "message": message,
                "stream": False,
            },
        )
        return {
            "message": data.get("response") or data.get("message") or "No response from AI",
            "sqlQuery": data.get("sqlQuery") or data.get("sql_query"),
            "queryResults": data.get("queryResults") or data.get("results"),
            "filePath": data.get("filePath") or data.get("file_path"),
            "raw": data,
        }

    async def stream_chat_completion(
        self,
        *,
        database_ids: List[str],
        message: str,
        chat_id: Optional[str] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Answer a question as a server-sent event stream.

        Yields the JSON object of every ``data:`` line. Text arrives in
        ``chunk``; the last event carries ``is_complete`` together with
        ``sql_query`` and ``file_path``.
        """
        payload = {
            "chatId": chat_id,
            "databaseIds": database_ids,
            "message": message,
            "stream": True,
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                async with client.stream(
                    "POST",
                    "/chat/completion",
                    json=payload,
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.is_error:
                        body = (await response.aread()).decode(errors="replace")
                        raise DownstreamServiceError(
                            f"Query engine returned {response.status_code}: {body}",
                            service="query_engine",
                        )
                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        try:
                            event = json.loads(line[6:])
                        except ValueError:
                            logger.warning(f"Skipping malformed stream line: {line}")
                            continue
                        if isinstance(event, dict):
                            yield event
        except httpx.HTTPError as e:
            raise DownstreamServiceError(f"Query engine request failed: {e}", service="query_engine") from e


def get_query_engine() -> QueryEngineClient:
    """Get query engine client instance."""
    return QueryEngineClient(
        base_url=settings.QUERY_ENGINE_URL,
        timeout=settings.QUERY_ENGINE_TIMEOUT,
    )
