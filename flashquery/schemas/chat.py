"""
Pydantic schemas for chats and chat messages.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from flashquery.schemas.base import CamelModel
from flashquery.schemas.database import DatabaseSummary


class ChatCreate(CamelModel):
    database_ids: List[str] = Field(..., min_length=1)
    title: Optional[str] = None


class ChatUpdate(CamelModel):
    title: str = Field(..., min_length=1)


class MessageCreate(CamelModel):
    message: str = Field(..., min_length=1)
    stream: bool = False


class LastMessage(CamelModel):
    message: str
    role: str
    created_at: datetime


class ChatResponse(CamelModel):
    id: str
    user_id: str
    title: str
    databases: List[DatabaseSummary]
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    message_count: Optional[int] = None
    last_message: Optional[LastMessage] = None


class MessageResponse(CamelModel):
    id: str
    chat_id: str
    user_message: str
    assistant_message: str
    sql_query: Optional[str] = None
    query_results: Optional[Any] = None
    file_path: Optional[str] = None
    message_metadata: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
    created_at: datetime
