"""
Pydantic schemas for query execution and query result retrieval.
"""
from typing import Optional

from flashquery.schemas.base import CamelModel


class QueryRequest(CamelModel):
    # Presence is checked by the route so the error message names both fields
    database_id: Optional[str] = None
    query: Optional[str] = None


class QueryResultsRequest(CamelModel):
    s3_path: Optional[str] = None
