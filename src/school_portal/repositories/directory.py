"""Directory lookups backed by the students, parent_accounts and exam_schedules tables."""

import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_portal.models.directory import ExamScheduleRow, ParentAccountRow, StudentRow
from school_portal.repositories.base import BaseRepository
from school_portal.services.directory.schemas import (
    ExamSchedule,
    ParentAccount,
    StudentProfile,
    canonical_student_id,
)
from school_portal.services.workflow.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class StudentRepository(BaseRepository[StudentRow]):
    """Repository for StudentRow database operations."""

    model = StudentRow

    async def find(self, student_id: str) -> StudentRow | None:
        """Get a student by id, tolerating prefixed or zero-padded ids.

        @param student_id - Student ID as supplied by the caller
        @returns Matching row or None
        """
        row = await self.get_by_id(student_id)
        if row is not None:
            return row
        target = canonical_student_id(student_id)
        for candidate in await self.get_all(order_by=self.model.id):
            if canonical_student_id(candidate.id) == target:
                return candidate
        return None


class ParentAccountRepository(BaseRepository[ParentAccountRow]):
    """Repository for ParentAccountRow database operations."""

    model = ParentAccountRow


class ExamScheduleRepository(BaseRepository[ExamScheduleRow]):
    """Repository for ExamScheduleRow database operations."""

    model = ExamScheduleRow


class SqlDirectory:
    """Directory that reads from the portal database.

    Rows are validated into directory schemas on the way out, so malformed
    data surfaces here rather than in the workflow services.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """Initialize directory.

        @param session_factory - Factory for creating database sessions
        """
        self._session_factory = session_factory

    async def lookup_student(self, student_id: str) -> StudentProfile | None:
        try:
            async with self._session_factory() as session:
                row = await StudentRepository(session).find(student_id)
        except SQLAlchemyError as e:
            logger.error(f"Student lookup failed for {student_id}: {e}")
            raise UpstreamFailure(f"Directory unavailable: {e}") from e

        if row is None:
            return None
        return StudentProfile(
            id=row.id,
            name=row.name,
            class_name=row.class_name,
            parent_name=row.parent_name,
            parent_email=row.parent_email,
            guardian_phone=row.guardian_phone,
        )

    async def lookup_parent_accounts(self, student_id: str) -> list[ParentAccount]:
        try:
            async with self._session_factory() as session:
                rows = await ParentAccountRepository(session).get_all(
                    order_by=ParentAccountRow.id
                )
        except SQLAlchemyError as e:
            logger.error(f"Parent lookup failed for {student_id}: {e}")
            raise UpstreamFailure(f"Directory unavailable: {e}") from e

        accounts = [
            ParentAccount(
                id=row.id,
                name=row.name,
                email=row.email,
                phone=row.phone,
                student_ids=row.student_ids or [],
            )
            for row in rows
        ]
        return [account for account in accounts if account.is_linked_to(student_id)]

    async def lookup_exam(self, exam_id: str) -> ExamSchedule | None:
        try:
            async with self._session_factory() as session:
                row = await ExamScheduleRepository(session).get_by_id(exam_id)
        except SQLAlchemyError as e:
            logger.error(f"Exam lookup failed for {exam_id}: {e}")
            raise UpstreamFailure(f"Directory unavailable: {e}") from e

        if row is None:
            return None
        return ExamSchedule(
            id=row.id,
            subject=row.subject,
            class_id=row.class_id,
            class_name=row.class_name,
            term=row.term,
            session=row.session,
            exam_date=row.exam_date,
        )
