"""
Database models for teams and team membership.
"""
from sqlalchemy import Column, ForeignKey, String, Table, Text
from sqlalchemy.orm import relationship

from flashquery.models.base import Base


team_members = Table(
    "team_members",
    Base.metadata,
    Column("team_id", String, ForeignKey("team.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class Team(Base):
    """A group of users sharing database access and API keys."""

    name = Column(String, nullable=False)
    description = Column(Text, default="", nullable=False)
    created_by = Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    members = relationship("User", secondary=team_members, lazy="selectin", order_by="User.name")
    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")
