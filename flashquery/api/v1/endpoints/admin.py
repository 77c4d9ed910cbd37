"""
Admin-wide API key overview.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from flashquery.api.v1.dependencies import ActorContext, require_admin
from flashquery.db.repositories.api_keys import ApiKeyRepository
from flashquery.db.session import get_session
from flashquery.schemas.api_key import ApiKeyResponse
from flashquery.utils.error_handling import success_response
from flashquery.utils.pagination import PaginationParams, page_info

router = APIRouter()


@router.get("/api-keys")
async def list_all_api_keys(
    pagination: PaginationParams = Depends(),
    team_id: Optional[str] = Query(None, alias="teamId", description="Filter by team"),
    is_active: Optional[bool] = Query(None, alias="isActive", description="Filter by active flag"),
    actor: ActorContext = Depends(require_admin)
):
    """
    List API keys across all teams with usage statistics.

    Statistics cover every key regardless of filters; ``expiredKeys`` counts
    keys still marked active whose expiry has passed.
    """
    async with get_session() as session:
        key_repo = ApiKeyRepository(session)
        keys, total = await key_repo.search(
            team_id=team_id,
            is_active=is_active,
            skip=pagination.skip,
            limit=pagination.limit,
        )
        statistics = await key_repo.statistics()
        payload = [ApiKeyResponse.from_key(key) for key in keys]

    return success_response({
        "apiKeys": payload,
        "pagination": page_info(total, pagination),
        "statistics": statistics,
    })
