"""
Pydantic schemas for database access grants.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from flashquery.schemas.base import CamelModel
from flashquery.schemas.database import DatabaseSummary
from flashquery.schemas.team import TeamSummary
from flashquery.schemas.user import UserSummary


class AccessType(str, Enum):
    TEAM = "team"
    INDIVIDUAL = "individual"


class AccessCreate(CamelModel):
    """Grant one team or one user access to several databases."""
    database_ids: List[str] = Field(..., min_length=1)
    access_type: AccessType
    team_id: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode="after")
    def check_grantee(self) -> "AccessCreate":
        """Exactly the grantee matching ``access_type`` must be set."""
        if self.access_type == AccessType.TEAM:
            if not self.team_id:
                raise ValueError("teamId is required for team access")
            self.user_id = None
        else:
            if not self.user_id:
                raise ValueError("userId is required for individual access")
            self.team_id = None
        return self


class AccessResponse(CamelModel):
    id: str
    database_id: str
    database: Optional[DatabaseSummary] = None
    access_type: AccessType
    team_id: Optional[str] = None
    team: Optional[TeamSummary] = None
    user_id: Optional[str] = None
    user: Optional[UserSummary] = None
    created_by: Optional[str] = None
    created_at: datetime
