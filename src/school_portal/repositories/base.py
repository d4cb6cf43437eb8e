"""Base repository with common CRUD operations.

Provides a generic async repository pattern for SQLAlchemy models.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_portal.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic async repository with common CRUD operations.

    Provides standard database operations for SQLAlchemy models:
    - get_by_id: Retrieve single record by primary key
    - get_all: Retrieve all records with optional pagination
    - get_by_filter: Retrieve records matching filter criteria
    - create: Insert new record

    Example:
        repo = WorkflowRecordRepository(session)
        record = await repo.get_by_id("s1::jss1a::maths::first_term::2024/2025")
        pending = await repo.get_by_filter(kind="report_card", status="pending")
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with async session.

        @param session - SQLAlchemy async session
        """
        self.session = session

    async def get_by_id(self, id: Any) -> ModelType | None:
        """Get record by primary key.

        @param id - Primary key value
        @returns Model instance or None if not found
        """
        return await self.session.get(self.model, id)

    async def get_all(
        self,
        *,
        skip: int = 0,
        limit: int | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelType]:
        """Get all records with pagination.

        @param skip - Number of records to skip (offset)
        @param limit - Maximum number of records to return (None = no limit)
        @param order_by - Column to order by
        @returns List of model instances
        """
        stmt = select(self.model)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_by_filter(
        self,
        *,
        order_by: Any | None = None,
        **filters: Any,
    ) -> Sequence[ModelType]:
        """Get records matching filter criteria.

        @param order_by - Column to order by
        @param filters - Key-value pairs for filtering (column=value)
        @returns List of matching model instances
        """
        stmt = select(self.model)
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create(self, obj_in: dict[str, Any] | ModelType) -> ModelType:
        """Create new record.

        @param obj_in - Dictionary or model instance with data
        @returns Created model instance
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = obj_in
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj
