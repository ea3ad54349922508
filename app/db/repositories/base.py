"""
Shared repository capabilities.

Repositories expose the same small set of operations (get_by_id, create,
list) through the Repository protocol. They get them by holding a ModelCrud
helper rather than by inheriting from a common base class.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.models.base import Base

logger = logging.getLogger("prospectr.db")

ModelType = TypeVar("ModelType", bound=Base)


class Repository(Protocol[ModelType]):
    """Capabilities every repository provides."""

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        ...

    async def create(self, *, obj_in: Union[BaseModel, Dict[str, Any]]) -> ModelType:
        ...

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ModelType]:
        ...


@asynccontextmanager
async def timed_operation(name: str, error_message: str) -> AsyncIterator[None]:
    """
    Log the duration of a storage operation and translate driver errors.

    Args:
        name: Operation name used in log lines
        error_message: Message of the DatabaseError raised on failure
    """
    start_time = time.monotonic()
    try:
        yield
    except SQLAlchemyError as e:
        duration = time.monotonic() - start_time
        logger.error(f"{name} failed after {duration:.3f}s: {e}")
        raise DatabaseError(error_message, details={"operation": name}) from e
    duration = time.monotonic() - start_time
    logger.debug(f"{name} completed in {duration:.3f}s")


class ModelCrud(Generic[ModelType]):
    """
    Common CRUD operations for one model, bound to a session.

    Writes are flushed, not committed; the caller's session scope owns the
    transaction.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Initialize with session and model.

        Args:
            session: Database session
            model: SQLAlchemy model class
        """
        self.session = session
        self.model = model
        self.name = model.__name__

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """
        Get a record by ID.

        Args:
            id: Record ID

        Returns:
            ModelType: Found record or None
        """
        async with timed_operation(f"{self.name}.get_by_id", f"Failed to load {self.name}"):
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ModelType]:
        """
        Get a list of records with optional equality filters.

        Args:
            filters: Optional filters as dict
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List[ModelType]: List of records
        """
        query = self._apply_filters(select(self.model), filters)
        query = query.order_by(self.model.created_at).offset(skip).limit(limit)

        async with timed_operation(f"{self.name}.list", f"Failed to list {self.name}"):
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def count(self, *, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records with optional equality filters."""
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)

        async with timed_operation(f"{self.name}.count", f"Failed to count {self.name}"):
            result = await self.session.execute(query)
            return result.scalar_one()

    async def create(self, *, obj_in: Union[BaseModel, Dict[str, Any]]) -> ModelType:
        """
        Create a new record.

        Args:
            obj_in: Data to create record with

        Returns:
            ModelType: Created record
        """
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        db_obj = self.model(**obj_in_data)

        async with timed_operation(f"{self.name}.create", f"Failed to create {self.name}"):
            self.session.add(db_obj)
            await self.session.flush()
            await self.session.refresh(db_obj)

        logger.info(f"Created {self.name} {db_obj.id}")
        return db_obj

    async def update(self, db_obj: ModelType, values: Dict[str, Any]) -> ModelType:
        """Set attributes on a loaded record and flush."""
        for field, value in values.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        async with timed_operation(f"{self.name}.update", f"Failed to update {self.name}"):
            await self.session.flush()
        return db_obj

    async def delete(self, db_obj: ModelType) -> None:
        """Delete a loaded record and flush."""
        async with timed_operation(f"{self.name}.delete", f"Failed to delete {self.name}"):
            await self.session.delete(db_obj)
            await self.session.flush()

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        for attr_name, attr_value in (filters or {}).items():
            if hasattr(self.model, attr_name) and attr_value is not None:
                query = query.where(getattr(self.model, attr_name) == attr_value)
        return query
