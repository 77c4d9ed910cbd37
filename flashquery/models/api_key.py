"""
Database model for team-scoped API keys.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from flashquery.models.base import Base


class ApiKey(Base):
    """
    API key for programmatic access on behalf of a team.

    The full secret is only stored encrypted; ``key_prefix`` is the public part
    used to locate candidate records. Keys are revoked by clearing ``is_active``
    and are never physically removed, not even when their team is deleted.
    """

    __tablename__ = "api_key"

    encrypted_key = Column(String, nullable=False)
    key_prefix = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    team_id = Column(String, ForeignKey("team.id", ondelete="SET NULL"), index=True, nullable=True)
    created_by = Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    permissions = Column(JSON, default=lambda: ["query:read"], nullable=False)

    # Usage
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    last_used_by = Column(String, nullable=True)
    last_user_name = Column(String, nullable=True)
    last_query = Column(String(200), nullable=True)
    last_ip_address = Column(String, nullable=True)

    # Relationships
    team = relationship("Team", lazy="selectin")
    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")
