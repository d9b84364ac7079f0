from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    Writes are flushed, not committed; the calling service commits once so a
    multi-row change (an override and its audit log) lands together.
    SQLAlchemy failures surface as ``DatabaseError``.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _fail(self, operation: str, error: SQLAlchemyError) -> DatabaseError:
        self.logger.error(f"Error {operation} {self.model.__name__}: {error}", exc_info=True)
        return DatabaseError(f"Failed {operation} {self.model.__name__}", original_error=error)

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a record by its ID.

        Args:
            id: The UUID of the record

        Returns:
            The record if found, None otherwise
        """
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._fail("retrieving", e) from e

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 200,
        filters: Optional[Dict[str, Any]] = None,
        include_archived: bool = False,
    ) -> List[ModelType]:
        """Get records with optional pagination and equality filters.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            filters: Dictionary of field_name: value to filter by
            include_archived: Whether to return archived rows

        Returns:
            List of records
        """
        try:
            query = self._filtered(select(self.model), filters, include_archived)
            result = await self.session.execute(query.offset(skip).limit(limit))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def create(self, **kwargs) -> ModelType:
        """Add a new record and flush it so generated ids are populated."""
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            return instance
        except SQLAlchemyError as e:
            raise self._fail("creating", e) from e

    async def update(self, instance: ModelType, **kwargs) -> ModelType:
        """Apply field changes to a loaded record and flush."""
        try:
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            if hasattr(instance, "updated_at"):
                setattr(instance, "updated_at", datetime.now(timezone.utc))
            await self.session.flush()
            return instance
        except SQLAlchemyError as e:
            raise self._fail("updating", e) from e

    async def archive(self, instance: ModelType, archived_by: Optional[UUID] = None) -> ModelType:
        """Archive a record in place. Rows are never deleted."""
        changes: Dict[str, Any] = {"archived_at": datetime.now(timezone.utc)}
        if archived_by is not None and hasattr(instance, "updated_by"):
            changes["updated_by"] = archived_by
        return await self.update(instance, **changes)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching filters."""
        try:
            query = self._filtered(select(func.count()).select_from(self.model), filters, True)
            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise self._fail("counting", e) from e

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._fail("committing", e) from e

    def _filtered(self, query, filters: Optional[Dict[str, Any]], include_archived: bool):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    query = query.where(getattr(self.model, field) == value)
        if not include_archived and hasattr(self.model, "archived_at"):
            query = query.where(self.model.archived_at.is_(None))
        return query
