"""
API endpoints for browsing and editing a database's table embeddings.

Every edit flags the touched records ``needs_sync`` in the vector store and
moves a synced database back to ``yet_to_sync``.
"""
import logging

from fastapi import APIRouter, Depends, Path, Query

from flashquery.api.v1.dependencies import ActorContext, require_admin, require_user
from flashquery.api.v1.endpoints.databases import get_accessible_database
from flashquery.db.repositories.databases import DatabaseRepository
from flashquery.db.session import get_session
from flashquery.schemas.vector import FieldDescriptionsUpdate, SkipUpdate, VectorUpdate
from flashquery.services.vector_store import VectorStore, get_vector_store
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.vectors")

router = APIRouter()


async def check_database_access(database_id: str, actor: ActorContext) -> None:
    async with get_session() as session:
        await get_accessible_database(session, database_id, actor)


async def flag_database_for_sync(database_id: str) -> bool:
    async with get_session() as session:
        flagged = await DatabaseRepository(session).mark_needs_sync(database_id)
    if flagged:
        logger.info(f"Database {database_id} marked as needing sync")
    return flagged


@router.get("")
async def list_vectors(
    database_id: str = Path(..., description="Database ID"),
    search: str = Query("", description="Filter on table name or text"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: ActorContext = Depends(require_user),
    vector_store: VectorStore = Depends(get_vector_store)
):
    """List the table vectors of a database."""
    await check_database_access(database_id, actor)
    result = await vector_store.list_vectors(database_id, search=search.strip(), limit=limit, offset=offset)
    return success_response(result)


@router.put("/{vector_id}")
async def update_vector(
    vector_in: VectorUpdate,
    database_id: str = Path(..., description="Database ID"),
    vector_id: str = Path(..., description="Vector ID"),
    actor: ActorContext = Depends(require_user),
    vector_store: VectorStore = Depends(get_vector_store)
):
    """Replace the embedded description of a table."""
    await check_database_access(database_id, actor)
    updated = await vector_store.update_table_text(database_id, vector_in.table_name, vector_in.description)
    await flag_database_for_sync(database_id)

    return success_response(
        {
            "vectorId": vector_id,
            "description": vector_in.description,
            "needs_sync": True,
            "updatedCount": updated,
        },
        message="Vector description updated successfully",
    )


@router.get("/tables/{table_name}/fields")
async def get_field_descriptions(
    database_id: str = Path(..., description="Database ID"),
    table_name: str = Path(..., description="Table name"),
    actor: ActorContext = Depends(require_admin),
    vector_store: VectorStore = Depends(get_vector_store)
):
    result = await vector_store.get_field_descriptions(database_id, table_name)
    return success_response({"table_name": table_name, **result})


@router.put("/tables/{table_name}/fields")
async def update_field_descriptions(
    fields_in: FieldDescriptionsUpdate,
    database_id: str = Path(..., description="Database ID"),
    table_name: str = Path(..., description="Table name"),
    actor: ActorContext = Depends(require_admin),
    vector_store: VectorStore = Depends(get_vector_store)
):
    """Replace the field descriptions of a table."""
    field_descriptions = [field.model_dump() for field in fields_in.field_descriptions]
    count = await vector_store.update_field_descriptions(database_id, table_name, field_descriptions)
    await flag_database_for_sync(database_id)

    return success_response(
        {
            "table_name": table_name,
            "fields_count": count,
            "needs_sync": True,
        },
        message="Field descriptions updated successfully",
    )


@router.put("/tables/{table_name}/skip")
async def set_table_skipped(
    skip_in: SkipUpdate,
    database_id: str = Path(..., description="Database ID"),
    table_name: str = Path(..., description="Table name"),
    actor: ActorContext = Depends(require_user),
    vector_store: VectorStore = Depends(get_vector_store)
):
    """Include or exclude a table from embedding."""
    await check_database_access(database_id, actor)
    await vector_store.set_table_skipped(database_id, table_name, skip_in.skipped)
    await flag_database_for_sync(database_id)

    return success_response(
        {
            "databaseId": database_id,
            "tableName": table_name,
            "skipped": skip_in.skipped,
        },
        message=f"Table {'skipped' if skip_in.skipped else 'unskipped'} successfully",
    )
