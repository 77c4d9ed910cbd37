"""
API endpoints for running natural-language queries and reading their results.

Both endpoints accept a user session or an API key with ``query:read``.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from flashquery.api.v1.dependencies import ActorContext, require_permission
from flashquery.api.v1.endpoints.databases import get_accessible_database
from flashquery.core.exceptions import ValidationError
from flashquery.db.session import get_session
from flashquery.schemas.query import QueryRequest, QueryResultsRequest
from flashquery.services.api_keys import record_api_key_usage
from flashquery.services.object_store import ObjectStore, get_object_store, object_key_from_path
from flashquery.services.parquet import decode_parquet
from flashquery.services.query_engine import QueryEngineClient, get_query_engine
from flashquery.utils.error_handling import success_response
from flashquery.utils.request import get_client_ip

logger = logging.getLogger("flashquery.query")

router = APIRouter()

QUERY_PERMISSION = "query:read"
# Stored with each API key as the last query
USAGE_QUERY_LENGTH = 200


@router.post("/query")
async def run_query(
    query_in: QueryRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(require_permission(QUERY_PERMISSION)),
    query_engine: QueryEngineClient = Depends(get_query_engine)
):
    """
    Ask a question against one database.

    Session users need access to the database; API keys need a grant to
    their team. The database must have embeddings. API-key usage is
    recorded after the response is sent.
    """
    if not query_in.database_id or not (query_in.query or "").strip():
        raise ValidationError("Database ID and query are required")

    async with get_session() as session:
        database = await get_accessible_database(session, query_in.database_id, actor)

    if not database.embeddings_ready:
        raise ValidationError("Database embeddings not generated. Please sync the database first.")

    question = query_in.query.strip()
    reply = await query_engine.chat_completion(database_ids=[database.id], message=question)

    if not actor.is_session:
        background_tasks.add_task(
            record_api_key_usage,
            actor.api_key_id,
            user_id=None,
            user_name="API User",
            query_text=question[:USAGE_QUERY_LENGTH],
            ip_address=get_client_ip(request),
        )

    logger.info(f"Query on database {database.id} via {actor.auth_method.value}")
    return success_response(
        {
            "result": {
                "query": question,
                "databaseId": database.id,
                "response": reply["message"],
                "generatedSql": reply["sqlQuery"],
                "results": reply["queryResults"],
                "filePath": reply["filePath"],
            },
            "authMethod": actor.auth_method.value,
            "teamId": actor.team_id,
        },
        message="Query executed successfully",
    )


@router.post("/query-results")
async def get_query_results(
    results_in: QueryResultsRequest,
    actor: ActorContext = Depends(require_permission(QUERY_PERMISSION)),
    object_store: ObjectStore = Depends(get_object_store)
):
    """Fetch a parquet result file from the object store and return its rows."""
    if not (results_in.s3_path or "").strip():
        raise ValidationError("S3 path is required")

    key = object_key_from_path(results_in.s3_path)
    data = await object_store.get_object_bytes(key)
    decoded = decode_parquet(data)

    logger.debug(f"Decoded {len(decoded['rows'])} rows from {key}")
    return success_response({
        "rowCount": len(decoded["rows"]),
        "columns": decoded["columns"],
        "data": decoded["rows"],
        "s3Path": results_in.s3_path,
    })
