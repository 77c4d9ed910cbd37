"""
API endpoints for database access grants (admin only).
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from flashquery.api.v1.dependencies import ActorContext, require_admin
from flashquery.core.exceptions import NotFoundError, ValidationError
from flashquery.db.repositories.access import AccessRepository
from flashquery.db.repositories.databases import DatabaseRepository
from flashquery.db.repositories.teams import TeamRepository
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_session
from flashquery.schemas.access import AccessCreate, AccessResponse, AccessType
from flashquery.schemas.base import dump_many
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.access")

router = APIRouter()


@router.get("")
async def list_access(
    database_id: Optional[str] = Query(None, alias="databaseId"),
    team_id: Optional[str] = Query(None, alias="teamId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    actor: ActorContext = Depends(require_admin)
):
    async with get_session() as session:
        grants = await AccessRepository(session).list(filters={
            "database_id": database_id,
            "team_id": team_id,
            "user_id": user_id,
        })

    return success_response({"access": dump_many(AccessResponse, grants)})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_access(
    access_in: AccessCreate,
    actor: ActorContext = Depends(require_admin)
):
    """
    Grant a team or a user access to several databases.

    Databases that are unknown or already granted are reported in ``errors``
    and skipped. If nothing could be created the request fails with 400.
    """
    created = 0
    errors: List[str] = []

    async with get_session() as session:
        if access_in.access_type == AccessType.TEAM:
            if not await TeamRepository(session).get_by_id(access_in.team_id):
                raise NotFoundError("Team not found")
        elif not await UserRepository(session).get_by_id(access_in.user_id):
            raise NotFoundError("User not found")

        access_repo = AccessRepository(session)
        database_repo = DatabaseRepository(session)

        for database_id in dict.fromkeys(access_in.database_ids):
            if not await database_repo.get_by_id(database_id):
                errors.append(f"Database {database_id} not found")
                continue

            existing = await access_repo.find_grant(
                database_id=database_id,
                team_id=access_in.team_id,
                user_id=access_in.user_id,
            )
            if existing:
                errors.append(f"Access already exists for database {database_id}")
                continue

            await access_repo.create(obj_in={
                "database_id": database_id,
                "access_type": access_in.access_type.value,
                "team_id": access_in.team_id,
                "user_id": access_in.user_id,
                "created_by": actor.user_id,
            })
            created += 1

    if not created:
        raise ValidationError(", ".join(errors) if errors else "Failed to create any access records")

    logger.info(f"{created} access record(s) created by {actor.user_id}")
    payload = {"created": created}
    if errors:
        payload["errors"] = errors
    return success_response(
        payload,
        message=f"Successfully created {created} access record(s)",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/{access_id}")
async def delete_access(
    access_id: str = Path(..., description="Access ID"),
    actor: ActorContext = Depends(require_admin)
):
    async with get_session() as session:
        deleted = await AccessRepository(session).delete(id=access_id)

    if not deleted:
        raise NotFoundError("Access record not found")

    return success_response(None, message="Access removed successfully")
