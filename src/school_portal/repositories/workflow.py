"""Workflow record stores: in-process and SQL-backed."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_portal.models.workflow import WorkflowRecordRow
from school_portal.repositories.base import BaseRepository
from school_portal.services.workflow.errors import StaleVersion, UpstreamFailure
from school_portal.services.workflow.schemas import (
    WorkflowKind,
    WorkflowRecord,
    record_from_data,
)
from school_portal.services.workflow.store import Write

logger = logging.getLogger(__name__)


def _matches(record: WorkflowRecord, filters: dict[str, Any]) -> bool:
    for key, value in filters.items():
        if value is None:
            continue
        if getattr(record, key, None) != value:
            return False
    return True


class InMemoryWorkflowStore:
    """Workflow store held in process memory.

    One lock serialises writes so a batch is checked and applied as a unit.
    """

    def __init__(self) -> None:
        self._records: dict[str, WorkflowRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, record_id: str) -> WorkflowRecord | None:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def upsert(self, record: WorkflowRecord, expected_version: int) -> WorkflowRecord:
        saved = await self.upsert_many([(record, expected_version)])
        return saved[0]

    async def upsert_many(self, writes: Sequence[Write]) -> list[WorkflowRecord]:
        async with self._lock:
            for record, expected in writes:
                current = self._records.get(record.id)
                actual = current.version if current else 0
                if actual != expected:
                    raise StaleVersion(record.id, expected, actual)

            for record, _ in writes:
                self._records[record.id] = record.model_copy(deep=True)

        return [record.model_copy(deep=True) for record, _ in writes]

    # Kept last: the name shadows the builtin in this class body
    async def list(self, kind: WorkflowKind, **filters: Any) -> list[WorkflowRecord]:
        return [
            record.model_copy(deep=True)
            for record_id, record in sorted(self._records.items())
            if record.kind == kind and _matches(record, filters)
        ]


class WorkflowRecordRepository(BaseRepository[WorkflowRecordRow]):
    """Repository for WorkflowRecordRow database operations."""

    model = WorkflowRecordRow

    FILTER_COLUMNS = ("status", "class_name", "term", "session", "exam_id", "student_id")

    @staticmethod
    def to_columns(record: WorkflowRecord) -> dict[str, Any]:
        """Column values for a record, including the serialized payload.

        @param record - Workflow record
        @returns Column name to value mapping
        """
        data = record.model_dump(mode="json")
        return {
            "id": record.id,
            "kind": data["kind"],
            "status": data["status"],
            "class_name": data.get("class_name"),
            "term": data.get("term"),
            "session": data.get("session"),
            "exam_id": data.get("exam_id"),
            "student_id": data.get("student_id"),
            "version": record.version,
            "data": data,
        }

    async def list_records(self, kind: str, **filters: Any) -> Sequence[WorkflowRecordRow]:
        """List rows of a kind filtered on indexed columns.

        @param kind - Workflow kind value
        @param filters - Column filters; unknown keys are ignored here
        @returns Matching rows ordered by id
        """
        column_filters = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in filters.items()
            if key in self.FILTER_COLUMNS
        }
        return await self.get_by_filter(
            order_by=self.model.id, kind=kind, **column_filters
        )

    async def update_if_version(
        self, record: WorkflowRecord, expected_version: int
    ) -> bool:
        """Overwrite a row only if it is still at the expected version.

        @param record - New record state
        @param expected_version - Version the caller read
        @returns True if a row was updated
        """
        values = self.to_columns(record)
        values.pop("id")
        stmt = (
            update(self.model)
            .where(self.model.id == record.id, self.model.version == expected_version)
            .values(**values)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def current_version(self, record_id: str) -> int:
        """Stored version of a row, 0 if missing."""
        stmt = select(self.model.version).where(self.model.id == record_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0


class SqlWorkflowStore:
    """Workflow store backed by the ``workflow_records`` table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """Initialize store.

        @param session_factory - Factory for creating database sessions
        """
        self._session_factory = session_factory

    async def get(self, record_id: str) -> WorkflowRecord | None:
        try:
            async with self._session_factory() as session:
                row = await WorkflowRecordRepository(session).get_by_id(record_id)
                return record_from_data(row.data) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read workflow record {record_id}: {e}")
            raise UpstreamFailure(f"Record store unavailable: {e}") from e

    async def upsert(self, record: WorkflowRecord, expected_version: int) -> WorkflowRecord:
        saved = await self.upsert_many([(record, expected_version)])
        return saved[0]

    async def upsert_many(self, writes: Sequence[Write]) -> list[WorkflowRecord]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    repo = WorkflowRecordRepository(session)
                    for record, expected in writes:
                        if expected == 0:
                            try:
                                async with session.begin_nested():
                                    await repo.create(repo.to_columns(record))
                            except IntegrityError:
                                actual = await repo.current_version(record.id)
                                raise StaleVersion(record.id, expected, actual)
                        elif not await repo.update_if_version(record, expected):
                            actual = await repo.current_version(record.id)
                            raise StaleVersion(record.id, expected, actual)
        except SQLAlchemyError as e:
            logger.error(f"Failed to write {len(writes)} workflow records: {e}")
            raise UpstreamFailure(f"Record store unavailable: {e}") from e

        return [record.model_copy(deep=True) for record, _ in writes]

    # Kept last: the name shadows the builtin in this class body
    async def list(self, kind: WorkflowKind, **filters: Any) -> list[WorkflowRecord]:
        try:
            async with self._session_factory() as session:
                rows = await WorkflowRecordRepository(session).list_records(
                    kind.value, **filters
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list {kind.value} records: {e}")
            raise UpstreamFailure(f"Record store unavailable: {e}") from e

        records = [record_from_data(row.data) for row in rows]
        return [record for record in records if _matches(record, filters)]
