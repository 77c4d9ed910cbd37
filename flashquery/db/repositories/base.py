"""
Base repository with common database operations.
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.models.base import Base
from flashquery.utils.ids import IDPrefix, generate_prefixed_id

# Define generic type for models
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Generic repository pattern implementation for database access.
    """

    id_prefix: Optional[IDPrefix] = None

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Initialize repository with session and model.

        Args:
            session: Database session
            model: SQLAlchemy model class
        """
        self.session = session
        self.model = model

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """
        Get a record by ID.

        Eager relationships are reloaded so records returned after a write
        reflect the stored state.

        Args:
            id: Record ID

        Returns:
            ModelType: Found record or None
        """
        query = (
            select(self.model)
            .where(self.model.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_attribute(self, attr_name: str, attr_value: Any) -> Optional[ModelType]:
        """
        Get a record by a specific attribute.

        Args:
            attr_name: Attribute name
            attr_value: Attribute value

        Returns:
            ModelType: Found record or None
        """
        query = select(self.model).where(getattr(self.model, attr_name) == attr_value)
        result = await self.session.execute(query)
        return result.scalars().first()

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for attr_name, attr_value in filters.items():
                if hasattr(self.model, attr_name) and attr_value is not None:
                    query = query.where(getattr(self.model, attr_name) == attr_value)
        return query

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        newest_first: bool = True
    ) -> List[ModelType]:
        """
        Get a list of records with optional filtering.

        Args:
            filters: Optional equality filters as dict
            skip: Number of records to skip
            limit: Maximum number of records to return (None for all)
            newest_first: Order by creation time descending

        Returns:
            List[ModelType]: List of records
        """
        query = self._apply_filters(select(self.model), filters)

        order = self.model.created_at.desc() if newest_first else self.model.created_at.asc()
        query = query.order_by(order).offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(self, *, obj_in: Dict[str, Any]) -> ModelType:
        """
        Create a new record.

        Args:
            obj_in: Column values for the new record

        Returns:
            ModelType: Created record
        """
        db_obj = self.model(**obj_in)

        # Generate ID if not provided
        if not db_obj.id and self.id_prefix is not None:
            db_obj.id = generate_prefixed_id(self.id_prefix)

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.commit()

        return await self.get_by_id(db_obj.id)

    async def update(
        self,
        *,
        id: str,
        obj_in: Dict[str, Any]
    ) -> Optional[ModelType]:
        """
        Update a record.

        None values are ignored.

        Args:
            id: Record ID
            obj_in: Data to update record with

        Returns:
            ModelType: Updated record or None
        """
        db_obj = await self.get_by_id(id)
        if not db_obj:
            return None

        update_data = {k: v for k, v in obj_in.items() if v is not None}

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        self.session.add(db_obj)
        await self.session.commit()

        return await self.get_by_id(id)

    async def delete(self, *, id: str) -> bool:
        """
        Delete a record.

        Args:
            id: Record ID

        Returns:
            bool: True if deleted, False if not found
        """
        db_obj = await self.get_by_id(id)
        if not db_obj:
            return False

        await self.session.delete(db_obj)
        await self.session.commit()

        return True

    async def count(self, *, filters: Optional[Dict[str, Any]] = None) -> int:
        """
        Count records with optional filtering.

        Args:
            filters: Optional filters as dict

        Returns:
            int: Number of records
        """
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.session.execute(query)
        return result.scalar_one()
