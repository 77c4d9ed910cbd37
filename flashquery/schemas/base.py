"""
Shared pydantic base for API schemas.
"""
from typing import Any, Dict, List

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Schema whose fields travel as camelCase on the wire."""

    class Config:
        """Pydantic config."""
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

    def to_wire(self) -> Dict[str, Any]:
        """Dump with camelCase keys and JSON-compatible values."""
        return self.model_dump(by_alias=True, mode="json")


def dump_many(schema: type, items: List[Any]) -> List[Dict[str, Any]]:
    """Validate ORM objects against ``schema`` and dump them for the wire."""
    return [schema.model_validate(item).to_wire() for item in items]
