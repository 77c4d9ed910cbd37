"""
Pydantic schemas for database server connections.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from flashquery.schemas.base import CamelModel


class ConnectionType(str, Enum):
    """Supported database engines."""
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    MONGODB = "mongodb"
    MSSQL = "mssql"


class ConnectionCreate(CamelModel):
    """Schema for creating a connection."""
    name: str = Field(..., min_length=1)
    connection_type: ConnectionType
    host: str = Field(..., min_length=1)
    port: int = Field(..., gt=0, lt=65536)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ConnectionUpdate(CamelModel):
    """Schema for updating a connection; a blank password keeps the old one."""
    name: Optional[str] = Field(None, min_length=1)
    connection_type: Optional[ConnectionType] = None
    host: Optional[str] = Field(None, min_length=1)
    port: Optional[int] = Field(None, gt=0, lt=65536)
    username: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = None


class ConnectionSummary(CamelModel):
    id: str
    name: str
    connection_type: ConnectionType
    host: str


class ConnectionResponse(ConnectionSummary):
    """Connection without its password."""
    port: int
    username: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ConnectionTest(CamelModel):
    """Credentials to try before a connection is saved."""
    connection_type: ConnectionType
    host: str = Field(..., min_length=1)
    port: int = Field(..., gt=0, lt=65536)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    database_name: Optional[str] = None
