"""
Pydantic schemas for teams.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from flashquery.models.team import Team
from flashquery.schemas.base import CamelModel
from flashquery.schemas.user import UserSummary


def _clean_team_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Team name must be at least 2 characters")
    return v


class TeamCreate(CamelModel):
    """Schema for creating a team."""
    name: str
    description: str = ""
    members: List[str] = Field(default_factory=list, description="Member user IDs")

    validate_name = field_validator("name")(_clean_team_name)


class TeamUpdate(CamelModel):
    """Schema for updating a team; ``members`` replaces the member list."""
    name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[List[str]] = None

    validate_name = field_validator("name")(_clean_team_name)


class TeamSummary(CamelModel):
    id: str
    name: str


class TeamResponse(CamelModel):
    """Team with populated members."""
    id: str
    name: str
    description: str
    members: List[UserSummary]
    member_count: int
    created_by: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_team(cls, team: Team) -> Dict[str, Any]:
        """Build the wire shape of a team record."""
        return cls(
            id=team.id,
            name=team.name,
            description=team.description or "",
            members=[UserSummary.model_validate(member) for member in team.members],
            member_count=len(team.members),
            created_by=UserSummary.model_validate(team.creator) if team.creator else None,
            created_at=team.created_at,
            updated_at=team.updated_at,
        ).to_wire()
