"""
Pydantic schemas for table vectors and field descriptions.

These keep the snake_case names used by the embedding records themselves.
"""
from typing import List

from pydantic import BaseModel, Field, StrictBool


class FieldDescription(BaseModel):
    field_name: str
    description: str = ""


class VectorUpdate(BaseModel):
    description: str
    table_name: str = Field(..., min_length=1)


class FieldDescriptionsUpdate(BaseModel):
    field_descriptions: List[FieldDescription]


class SkipUpdate(BaseModel):
    skipped: StrictBool
