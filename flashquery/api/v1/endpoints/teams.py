"""
API endpoints for team management.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.api.v1.dependencies import ActorContext, require_admin
from flashquery.core.exceptions import NotFoundError, ValidationError
from flashquery.db.repositories.teams import TeamRepository
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_session
from flashquery.models.user import User
from flashquery.schemas.team import TeamCreate, TeamResponse, TeamUpdate
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.teams")

router = APIRouter()


async def resolve_members(session: AsyncSession, member_ids: List[str]) -> List[User]:
    """
    Load member users, preserving the requested order.

    Raises:
        ValidationError: If any ID does not belong to a user
    """
    unique_ids = list(dict.fromkeys(member_ids))
    users = await UserRepository(session).get_many(unique_ids)
    found = {user.id: user for user in users}

    missing = [member_id for member_id in unique_ids if member_id not in found]
    if missing:
        raise ValidationError(f"Unknown team members: {', '.join(missing)}")

    return [found[member_id] for member_id in unique_ids]


@router.get("")
async def list_teams(actor: ActorContext = Depends(require_admin)):
    """List all teams with their members."""
    async with get_session() as session:
        teams = await TeamRepository(session).list()
        payload = [TeamResponse.from_team(team) for team in teams]

    return success_response({"teams": payload})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    team_in: TeamCreate,
    actor: ActorContext = Depends(require_admin)
):
    """
    Create a team.

    ``members`` is a list of user IDs; the response carries the populated
    members and their count.
    """
    async with get_session() as session:
        members = await resolve_members(session, team_in.members)
        team = await TeamRepository(session).create_team(
            name=team_in.name,
            description=team_in.description.strip(),
            members=members,
            created_by=actor.user_id,
        )
        payload = TeamResponse.from_team(team)

    logger.info(f"Team {team.id} created by {actor.user_id} with {len(members)} members")
    return success_response(
        {"team": payload},
        message="Team created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{team_id}")
async def get_team(
    team_id: str = Path(..., description="Team ID"),
    actor: ActorContext = Depends(require_admin)
):
    async with get_session() as session:
        team = await TeamRepository(session).get_by_id(team_id)
        if not team:
            raise NotFoundError("Team not found")
        payload = TeamResponse.from_team(team)

    return success_response({"team": payload})


@router.put("/{team_id}")
async def update_team(
    team_in: TeamUpdate,
    team_id: str = Path(..., description="Team ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Update a team; ``members`` replaces the whole member list."""
    async with get_session() as session:
        team_repo = TeamRepository(session)
        if not await team_repo.get_by_id(team_id):
            raise NotFoundError("Team not found")

        members = None
        if team_in.members is not None:
            members = await resolve_members(session, team_in.members)

        team = await team_repo.update_team(
            team_id=team_id,
            name=team_in.name,
            description=team_in.description.strip() if team_in.description is not None else None,
            members=members,
        )
        payload = TeamResponse.from_team(team)

    return success_response({"team": payload}, message="Team updated successfully")


@router.delete("/{team_id}")
async def delete_team(
    team_id: str = Path(..., description="Team ID"),
    actor: ActorContext = Depends(require_admin)
):
    """Delete a team together with its access grants and API keys."""
    async with get_session() as session:
        deleted = await TeamRepository(session).delete_team(team_id=team_id)

    if not deleted:
        raise NotFoundError("Team not found")

    logger.info(f"Team {team_id} deleted by {actor.user_id}")
    return success_response(None, message="Team deleted successfully")
