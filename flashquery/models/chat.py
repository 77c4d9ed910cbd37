"""
Database models for chats and chat messages.
"""
from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Table, Text
from sqlalchemy.orm import relationship

from flashquery.models.base import Base


chat_databases = Table(
    "chat_databases",
    Base.metadata,
    Column("chat_id", String, ForeignKey("chat.id", ondelete="CASCADE"), primary_key=True),
    Column("database_id", String, ForeignKey("database.id", ondelete="CASCADE"), primary_key=True),
)


class Chat(Base):
    """A conversation over one or more databases, owned by a single user."""

    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String, default="New Chat", nullable=False)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    databases = relationship("Database", secondary=chat_databases, lazy="selectin")


class Message(Base):
    """A user utterance paired with the assistant reply and generated query."""

    chat_id = Column(String, ForeignKey("chat.id", ondelete="CASCADE"), index=True, nullable=False)
    user_message = Column(Text, nullable=False)
    assistant_message = Column(Text, default="", nullable=False)
    sql_query = Column(Text, nullable=True)
    query_results = Column(JSON, nullable=True)
    file_path = Column(String, nullable=True)
    message_metadata = Column("metadata", JSON, default=dict, nullable=False)
