"""
Pydantic schemas for registered databases and embedding sync.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from flashquery.schemas.base import CamelModel
from flashquery.schemas.connection import ConnectionSummary


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class DatabaseCreate(CamelModel):
    """Schema for registering a database on a connection."""
    connection_id: str = Field(..., min_length=1)
    database_name: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    enabled: bool = True
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED


class DatabaseUpdate(CamelModel):
    """Schema for updating a database."""
    display_name: Optional[str] = Field(None, min_length=1)
    enabled: Optional[bool] = None
    connection_status: Optional[ConnectionStatus] = None


class DatabaseSummary(CamelModel):
    id: str
    database_name: str
    display_name: str


class DatabaseResponse(DatabaseSummary):
    """Database with connection reference and sync state."""
    connection_id: str
    connection: Optional[ConnectionSummary] = None
    enabled: bool
    connection_status: str
    last_connection_test: Optional[datetime] = None
    sync_status: str
    sync_last_at: Optional[datetime] = None
    sync_error_message: Optional[str] = None
    embeddings_ready: bool
    sync_metadata: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SyncRequest(CamelModel):
    """Trigger an embedding sync for a database."""
    database_id: str = Field(..., min_length=1)
    force_regenerate: bool = False


class DatabaseTestRequest(CamelModel):
    database_id: Optional[str] = None
