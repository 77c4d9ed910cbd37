"""
Database model for registered databases and their embedding sync state.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from flashquery.models.base import Base


class Database(Base):
    """A database on a connection, queryable once its embeddings are synced."""

    __table_args__ = (
        UniqueConstraint("connection_id", "database_name", name="uq_database_connection_name"),
    )

    connection_id = Column(String, ForeignKey("connection.id", ondelete="CASCADE"), index=True, nullable=False)
    database_name = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)

    connection_status = Column(String, default="disconnected", nullable=False)
    last_connection_test = Column(DateTime(timezone=True), nullable=True)

    sync_status = Column(String, default="yet_to_sync", nullable=False)
    sync_last_at = Column(DateTime(timezone=True), nullable=True)
    sync_error_message = Column(Text, nullable=True)
    embeddings_ready = Column(Boolean, default=False, nullable=False)
    sync_metadata = Column("metadata", JSON, default=dict, nullable=False)

    created_by = Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    connection = relationship("Connection", lazy="selectin")
