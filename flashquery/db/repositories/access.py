"""
Access repository for database access grants.
"""
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.db.repositories.base import BaseRepository
from flashquery.models.access import Access
from flashquery.models.team import team_members
from flashquery.utils.ids import IDPrefix


class AccessRepository(BaseRepository[Access]):
    """Access repository for database operations."""

    id_prefix = IDPrefix.ACCESS

    def __init__(self, session: AsyncSession):
        """Initialize with session and Access model."""
        super().__init__(session=session, model=Access)

    async def find_grant(
        self,
        *,
        database_id: str,
        team_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Optional[Access]:
        """Find the grant of a database to a team or a user."""
        query = select(Access).where(Access.database_id == database_id)
        if team_id:
            query = query.where(Access.team_id == team_id)
        else:
            query = query.where(Access.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalars().first()

    def _user_grant_clause(self, user_id: str):
        user_teams = select(team_members.c.team_id).where(team_members.c.user_id == user_id)
        return or_(Access.user_id == user_id, Access.team_id.in_(user_teams))

    async def database_ids_for_user(self, user_id: str) -> List[str]:
        """
        Get the IDs of databases a user can reach, either granted to them
        directly or to any team they belong to.
        """
        result = await self.session.execute(
            select(Access.database_id).where(self._user_grant_clause(user_id)).distinct()
        )
        return list(result.scalars().all())

    async def database_ids_for_team(self, team_id: str) -> List[str]:
        """Get the IDs of databases granted to a team."""
        result = await self.session.execute(
            select(Access.database_id).where(Access.team_id == team_id).distinct()
        )
        return list(result.scalars().all())

    async def user_has_access(self, *, user_id: str, database_id: str) -> bool:
        """Check a user's direct or team grant on a database."""
        result = await self.session.execute(
            select(Access.id).where(
                Access.database_id == database_id,
                self._user_grant_clause(user_id),
            )
        )
        return result.first() is not None

    async def team_has_access(self, *, team_id: str, database_id: str) -> bool:
        """Check a team grant on a database."""
        return await self.find_grant(database_id=database_id, team_id=team_id) is not None
