"""
Pydantic schemas for user-related API operations.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from flashquery.schemas.base import CamelModel


class UserRole(str, Enum):
    """User role enum."""
    ADMIN = "admin"
    USER = "user"


def _clean_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Name must be at least 2 characters")
    return v


class UserCreate(CamelModel):
    """Schema for creating a new user."""
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password")
    role: UserRole = Field(UserRole.USER, description="User role")

    validate_name = field_validator("name")(_clean_name)


class UserUpdate(CamelModel):
    """Schema for an admin updating a user."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)

    validate_name = field_validator("name")(_clean_name)


class ProfileUpdate(CamelModel):
    """Schema for a user updating their own profile."""
    name: str
    email: EmailStr

    validate_name = field_validator("name")(_clean_name)


class PasswordChange(CamelModel):
    """Schema for a user changing their own password."""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class LoginRequest(CamelModel):
    """Credentials for session login."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserSummary(CamelModel):
    """Embedded user reference."""
    id: str
    name: str
    email: str


class UserPublic(UserSummary):
    """Schema for user response."""
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime
