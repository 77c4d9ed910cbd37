"""
Team repository for teams and their membership.
"""
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.db.repositories.base import BaseRepository
from flashquery.models.access import Access
from flashquery.models.api_key import ApiKey
from flashquery.models.team import Team, team_members
from flashquery.models.user import User
from flashquery.utils.ids import IDPrefix


class TeamRepository(BaseRepository[Team]):
    """Team repository for database operations."""

    id_prefix = IDPrefix.TEAM

    def __init__(self, session: AsyncSession):
        """Initialize with session and Team model."""
        super().__init__(session=session, model=Team)

    async def create_team(
        self,
        *,
        name: str,
        description: str,
        members: List[User],
        created_by: str
    ) -> Team:
        """
        Create a team with its initial members.

        Args:
            name: Team name
            description: Team description
            members: Member users (already resolved)
            created_by: ID of the creating admin

        Returns:
            Team: Created team
        """
        return await self.create(obj_in={
            "name": name,
            "description": description,
            "members": members,
            "created_by": created_by,
        })

    async def update_team(
        self,
        *,
        team_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        members: Optional[List[User]] = None
    ) -> Optional[Team]:
        """Update a team; ``members`` replaces the member list when given."""
        team = await self.get_by_id(team_id)
        if not team:
            return None

        if name is not None:
            team.name = name
        if description is not None:
            team.description = description
        if members is not None:
            team.members = members

        self.session.add(team)
        await self.session.commit()

        return await self.get_by_id(team_id)

    async def get_team_ids_for_user(self, user_id: str) -> List[str]:
        """Get the IDs of every team the user belongs to."""
        result = await self.session.execute(
            select(team_members.c.team_id).where(team_members.c.user_id == user_id)
        )
        return [row[0] for row in result.all()]

    async def is_member(self, *, team_id: str, user_id: str) -> bool:
        """Check whether a user belongs to a team."""
        result = await self.session.execute(
            select(team_members.c.team_id).where(
                team_members.c.team_id == team_id,
                team_members.c.user_id == user_id,
            )
        )
        return result.first() is not None

    async def delete_team(self, *, team_id: str) -> bool:
        """
        Delete a team and its access grants, revoking its API keys.

        Revoked keys keep their usage history but lose their team.

        Args:
            team_id: Team ID

        Returns:
            bool: True if deleted, False if not found
        """
        team = await self.get_by_id(team_id)
        if not team:
            return False

        for statement in (
            delete(Access).where(Access.team_id == team_id),
            update(ApiKey).where(ApiKey.team_id == team_id).values(is_active=False, team_id=None),
        ):
            await self.session.execute(statement.execution_options(synchronize_session=False))

        await self.session.delete(team)
        await self.session.commit()

        return True
