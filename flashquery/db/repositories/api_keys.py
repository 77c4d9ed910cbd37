"""
API key repository: key issuance, lookup by prefix and usage accounting.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.core.security import encrypt_secret, generate_api_key, get_key_prefix
from flashquery.db.repositories.base import BaseRepository
from flashquery.models.api_key import ApiKey
from flashquery.utils.datetime import days_from_now, utc_now
from flashquery.utils.ids import IDPrefix

DEFAULT_PERMISSIONS = ["query:read"]


class ApiKeyRepository(BaseRepository[ApiKey]):
    """API key repository for database operations."""

    id_prefix = IDPrefix.API_KEY

    def __init__(self, session: AsyncSession):
        """Initialize with session and ApiKey model."""
        super().__init__(session=session, model=ApiKey)

    async def create_key(
        self,
        *,
        team_id: str,
        name: str,
        created_by: str,
        expires_in_days: int,
        permissions: Optional[List[str]] = None
    ) -> Tuple[ApiKey, str]:
        """
        Issue a new API key for a team.

        Args:
            team_id: Owning team
            name: Display name
            created_by: ID of the issuing user
            expires_in_days: Lifetime in days
            permissions: Permission scopes, defaults to ``["query:read"]``

        Returns:
            Tuple[ApiKey, str]: The stored record and the plaintext secret,
            which is not recoverable afterwards except by decryption
        """
        secret = generate_api_key()

        api_key = await self.create(obj_in={
            "encrypted_key": encrypt_secret(secret),
            "key_prefix": get_key_prefix(secret),
            "name": name,
            "team_id": team_id,
            "created_by": created_by,
            "expires_at": days_from_now(expires_in_days),
            "permissions": list(permissions) if permissions is not None else list(DEFAULT_PERMISSIONS),
        })

        return api_key, secret

    async def find_active_by_prefix(self, key_prefix: str) -> List[ApiKey]:
        """
        Get every active key sharing a public prefix.

        Args:
            key_prefix: First characters of the presented secret

        Returns:
            List[ApiKey]: Candidate records
        """
        result = await self.session.execute(
            select(ApiKey).where(ApiKey.key_prefix == key_prefix, ApiKey.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def list_for_team(self, team_id: str) -> List[ApiKey]:
        """List a team's keys, newest first."""
        return await self.list(filters={"team_id": team_id})

    async def revoke(self, *, key_id: str) -> Optional[ApiKey]:
        """Soft-revoke a key by clearing its active flag."""
        return await self.update(id=key_id, obj_in={"is_active": False})

    async def record_usage(
        self,
        *,
        key_id: str,
        used_at: datetime,
        user_id: Optional[str],
        user_name: Optional[str],
        query_text: Optional[str],
        ip_address: Optional[str]
    ) -> None:
        """
        Atomically bump the usage counter and overwrite last-used metadata.

        The increment happens inside the UPDATE statement so concurrent
        requests never lose a count.
        """
        await self.session.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(
                usage_count=ApiKey.usage_count + 1,
                last_used_at=used_at,
                last_used_by=user_id,
                last_user_name=user_name,
                last_query=query_text[:200] if query_text else None,
                last_ip_address=ip_address,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def search(
        self,
        *,
        team_id: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[ApiKey], int]:
        """
        List keys across teams with optional filters.

        Returns:
            Tuple[List[ApiKey], int]: One page of keys and the total match count
        """
        filters = {"team_id": team_id, "is_active": is_active}
        keys = await self.list(filters=filters, skip=skip, limit=limit)
        total = await self.count(filters=filters)
        return keys, total

    async def statistics(self) -> Dict[str, Any]:
        """
        Aggregate key statistics.

        Expired keys are those still marked active whose expiry has passed.
        """
        now = utc_now()
        total = await self.count()
        active = await self.count(filters={"is_active": True})

        usage = await self.session.execute(select(func.coalesce(func.sum(ApiKey.usage_count), 0)))
        expired = await self.session.execute(
            select(func.count()).select_from(ApiKey).where(
                ApiKey.is_active.is_(True),
                ApiKey.expires_at.is_not(None),
                ApiKey.expires_at < now,
            )
        )

        return {
            "totalKeys": total,
            "activeKeys": active,
            "totalUsage": int(usage.scalar_one() or 0),
            "expiredKeys": expired.scalar_one(),
        }
