"""
API endpoints for a team's API keys.

Keys can be managed by admins and by members of the owning team. The full
secret is returned exactly once, when the key is created.
"""
import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.api.v1.dependencies import ActorContext, require_user
from flashquery.core.exceptions import AuthorizationError, NotFoundError
from flashquery.db.repositories.api_keys import DEFAULT_PERMISSIONS, ApiKeyRepository
from flashquery.db.repositories.teams import TeamRepository
from flashquery.db.session import get_session
from flashquery.models.api_key import ApiKey
from flashquery.models.team import Team
from flashquery.schemas.api_key import ApiKeyCreate, ApiKeyResponse
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.api_keys")

router = APIRouter()


async def get_managed_team(session: AsyncSession, team_id: str, actor: ActorContext) -> Team:
    """
    Load a team the actor may manage keys for.

    Raises:
        NotFoundError: If the team does not exist
        AuthorizationError: If the actor is neither admin nor a member
    """
    team_repo = TeamRepository(session)
    team = await team_repo.get_by_id(team_id)
    if not team:
        raise NotFoundError("Team not found")

    if not actor.is_admin and not await team_repo.is_member(team_id=team_id, user_id=actor.user_id):
        raise AuthorizationError("You do not have access to this team")

    return team


async def get_team_key(session: AsyncSession, team_id: str, key_id: str) -> ApiKey:
    api_key = await ApiKeyRepository(session).get_by_id(key_id)
    if not api_key:
        raise NotFoundError("API key not found")
    if api_key.team_id != team_id:
        raise AuthorizationError("API key does not belong to this team")
    return api_key


@router.get("")
async def list_team_keys(
    team_id: str = Path(..., description="Team ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        await get_managed_team(session, team_id, actor)
        keys = await ApiKeyRepository(session).list_for_team(team_id)
        payload = [ApiKeyResponse.from_key(key) for key in keys]

    return success_response({"apiKeys": payload})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team_key(
    key_in: ApiKeyCreate,
    team_id: str = Path(..., description="Team ID"),
    actor: ActorContext = Depends(require_user)
):
    """Issue a key for the team and return its secret once."""
    if key_in.permissions is not None and not actor.is_admin:
        if set(key_in.permissions) - set(DEFAULT_PERMISSIONS):
            raise AuthorizationError("Only admins can grant additional API key permissions")

    async with get_session() as session:
        await get_managed_team(session, team_id, actor)
        api_key, secret = await ApiKeyRepository(session).create_key(
            team_id=team_id,
            name=key_in.name,
            created_by=actor.user_id,
            expires_in_days=key_in.expires_in_days,
            permissions=key_in.permissions,
        )
        payload = ApiKeyResponse.from_key(api_key)

    logger.info(f"API key {api_key.id} ({api_key.key_prefix}) issued for team {team_id} by {actor.user_id}")
    return success_response(
        {
            "apiKey": {**payload, "fullKey": secret},
            "warning": "Save this API key now. You will not be able to see it again.",
        },
        message="API key created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{key_id}")
async def get_team_key_details(
    team_id: str = Path(..., description="Team ID"),
    key_id: str = Path(..., description="API key ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        await get_managed_team(session, team_id, actor)
        api_key = await get_team_key(session, team_id, key_id)
        payload = ApiKeyResponse.from_key(api_key)

    return success_response({"apiKey": payload})


@router.delete("/{key_id}")
async def revoke_team_key(
    team_id: str = Path(..., description="Team ID"),
    key_id: str = Path(..., description="API key ID"),
    actor: ActorContext = Depends(require_user)
):
    """Revoke a key. The record is kept with ``isActive`` cleared."""
    async with get_session() as session:
        await get_managed_team(session, team_id, actor)
        await get_team_key(session, team_id, key_id)
        api_key = await ApiKeyRepository(session).revoke(key_id=key_id)
        payload = ApiKeyResponse.from_key(api_key)

    logger.info(f"API key {key_id} revoked by {actor.user_id}")
    return success_response({"apiKey": payload}, message="API key revoked successfully")
