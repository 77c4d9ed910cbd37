"""
Database model for customer database server connections.
"""
from sqlalchemy import Column, ForeignKey, Integer, String

from flashquery.models.base import Base


class Connection(Base):
    """Credentials for a database server; the password is stored encrypted."""

    name = Column(String, nullable=False)
    connection_type = Column(String, nullable=False)
    host = Column(String, nullable=False)
    port = Column(Integer, nullable=False)
    username = Column(String, nullable=False)
    encrypted_password = Column(String, nullable=False)
    created_by = Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
