"""
Database models for user management.
"""
from sqlalchemy import Boolean, Column, String

from flashquery.models.base import Base


class User(Base):
    """User model for authentication and authorization."""

    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="user", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
