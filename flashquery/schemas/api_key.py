"""
Pydantic schemas for team API keys.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from flashquery.core.config import settings
from flashquery.models.api_key import ApiKey
from flashquery.schemas.base import CamelModel
from flashquery.schemas.team import TeamSummary
from flashquery.schemas.user import UserSummary
from flashquery.utils.datetime import ensure_utc, is_past


class ApiKeyCreate(CamelModel):
    """Schema for issuing an API key."""
    name: str = Field(..., description="API key name")
    expires_in_days: int = Field(
        settings.API_KEY_DEFAULT_EXPIRY_DAYS,
        ge=1,
        le=3650,
        description="Lifetime in days",
    )
    permissions: Optional[List[str]] = Field(None, description="Permission scopes, admin only")

    @field_validator("name")
    def validate_name(cls, v: str) -> str:
        """Reject blank names."""
        v = v.strip()
        if not v:
            raise ValueError("API key name is required")
        return v

    @field_validator("permissions")
    def validate_permissions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        scopes = [scope.strip() for scope in v if scope.strip()]
        if not scopes:
            raise ValueError("At least one permission is required")
        return scopes


class ApiKeyResponse(CamelModel):
    """API key metadata; the secret itself is never included."""
    id: str
    name: str
    key_prefix: str
    team_id: Optional[str] = None
    team: Optional[TeamSummary] = None
    created_by: Optional[UserSummary] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    is_expired: bool
    permissions: List[str]
    usage_count: int
    last_used_at: Optional[datetime] = None
    last_used_by: Optional[str] = None
    last_user_name: Optional[str] = None
    last_query: Optional[str] = None
    last_ip_address: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_key(cls, api_key: ApiKey) -> Dict[str, Any]:
        """Build the wire shape of an API key record."""
        return cls(
            id=api_key.id,
            name=api_key.name,
            key_prefix=api_key.key_prefix,
            team_id=api_key.team_id,
            team=TeamSummary.model_validate(api_key.team) if api_key.team else None,
            created_by=UserSummary.model_validate(api_key.creator) if api_key.creator else None,
            expires_at=ensure_utc(api_key.expires_at),
            is_active=api_key.is_active,
            is_expired=is_past(api_key.expires_at),
            permissions=api_key.permissions or [],
            usage_count=api_key.usage_count or 0,
            last_used_at=ensure_utc(api_key.last_used_at),
            last_used_by=api_key.last_used_by,
            last_user_name=api_key.last_user_name,
            last_query=api_key.last_query,
            last_ip_address=api_key.last_ip_address,
            created_at=api_key.created_at,
        ).to_wire()
