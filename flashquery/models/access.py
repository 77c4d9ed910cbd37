"""
Database model for database access grants.
"""
from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from flashquery.models.base import Base


class Access(Base):
    """Grants a team or a single user access to a database."""

    __table_args__ = (
        UniqueConstraint("database_id", "team_id", name="uq_access_database_team"),
        UniqueConstraint("database_id", "user_id", name="uq_access_database_user"),
    )

    database_id = Column(String, ForeignKey("database.id", ondelete="CASCADE"), index=True, nullable=False)
    access_type = Column(String, nullable=False)
    team_id = Column(String, ForeignKey("team.id", ondelete="CASCADE"), index=True, nullable=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=True)
    created_by = Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    database = relationship("Database", lazy="selectin")
    team = relationship("Team", lazy="selectin")
    user = relationship("User", foreign_keys=[user_id], lazy="selectin")
