"""Exam result recording and publication."""

import logging
from datetime import datetime

from school_portal.services.directory.memory import Directory
from school_portal.services.directory.schemas import ExamSchedule, canonical_student_id
from school_portal.services.grading.calculator import (
    GradeCalculator,
    GradeDistribution,
    summarize_distribution,
)
from school_portal.services.workflow.engine import ApprovalWorkflowEngine, TransitionStep
from school_portal.services.workflow.errors import (
    NotFound,
    ResultValidationError,
    UpstreamFailure,
    WorkflowError,
)
from school_portal.services.workflow.schemas import (
    Actor,
    ExamResultInput,
    ExamResultRecord,
    ExamResultStatus,
    build_record_id,
)

logger = logging.getLogger(__name__)


def result_record_id(exam_id: str, student_id: str) -> str:
    """Record id of one student's result for an exam.

    Spellings of the same student id ("student_007", "7") share one record.
    """
    return build_record_id(exam_id, canonical_student_id(student_id))


class ExamResultWorkflow:
    """Per-student exam results: pending, published or withheld."""

    def __init__(
        self,
        engine: ApprovalWorkflowEngine,
        directory: Directory,
        calculator: GradeCalculator | None = None,
    ):
        """Initialize exam result workflow.

        Args:
            engine: Engine configured with the exam result definition
            directory: Source of exam schedules
            calculator: Grading rules (defaults to the standard maximums)
        """
        self.engine = engine
        self.directory = directory
        self.calculator = calculator or GradeCalculator()

    async def _lookup_exam(self, exam_id: str, action: str, actor: Actor) -> ExamSchedule:
        try:
            exam = await self.directory.lookup_exam(exam_id)
        except WorkflowError as e:
            self.engine.record_rejection(action, actor, e)
            raise
        except Exception as e:
            logger.error(f"Exam lookup failed for {exam_id}: {e}")
            error = UpstreamFailure(f"Directory unavailable: {e}", exam_id=exam_id)
            self.engine.record_rejection(action, actor, error)
            raise error from e

        if exam is None:
            error = NotFound(f"Exam {exam_id} not found", exam_id=exam_id)
            self.engine.record_rejection(action, actor, error)
            raise error
        return exam

    def validate_rows(self, rows: list[ExamResultInput]) -> list[str]:
        """Problems with a batch of result rows; empty when the batch is valid."""
        errors: list[str] = []
        seen: dict[str, int] = {}
        for index, row in enumerate(rows):
            key = canonical_student_id(row.student_id)
            if key in seen:
                errors.append(
                    f"row {index}: duplicate student {row.student_id} (first at row {seen[key]})"
                )
            else:
                seen[key] = index

            scores = row.model_dump(include={"ca1", "ca2", "assignment", "exam"})
            for component in self.calculator.out_of_bounds(scores):
                errors.append(
                    f"row {index}: {component} for student {row.student_id} must be "
                    f"between 0 and {self.calculator.maximums[component]}"
                )
        return errors

    async def save_results(
        self,
        exam_id: str,
        rows: list[ExamResultInput],
        actor: Actor,
        auto_publish: bool = False,
    ) -> list[ExamResultRecord]:
        """Record scores for an exam, all rows or none.

        Each row is graded and stored as pending, or published straight away
        when ``auto_publish`` is set. Existing rows for the same students are
        updated.

        Args:
            exam_id: Exam schedule ID
            rows: One entry per student
            actor: Teacher or administrator recording the scores
            auto_publish: Publish every row immediately

        Returns:
            Saved records in row order

        Raises:
            NotFound: If the exam is unknown
            ResultValidationError: If any row is invalid; nothing is written
            UpstreamFailure: If the directory or store cannot be reached
        """
        action = "record_and_publish" if auto_publish else "record"
        exam = await self._lookup_exam(exam_id, action, actor)

        errors = self.validate_rows(rows)
        if errors:
            error = ResultValidationError(errors)
            self.engine.record_rejection(action, actor, error)
            raise error

        steps = [self._record_step(exam, row, auto_publish) for row in rows]
        records = await self.engine.run_batch(
            action,
            actor,
            steps,
            notification={
                "title": "Exam results published" if auto_publish else "Exam results saved",
                "message": f"{len(steps)} {exam.subject} results recorded for {exam.class_name}",
                "audience": ["admin", "teacher", "student", "parent"]
                if auto_publish
                else ["admin", "teacher"],
                "type": "success" if auto_publish else "info",
                "metadata": {"exam_id": exam.id, "subject": exam.subject},
            },
        )
        logger.info(
            f"Saved {len(records)} results for exam {exam_id} (auto_publish={auto_publish})",
            extra={"exam_id": exam_id},
        )
        return records

    def _record_step(
        self, exam: ExamSchedule, row: ExamResultInput, publish: bool
    ) -> TransitionStep:
        breakdown = self.calculator.breakdown(
            row.model_dump(include={"ca1", "ca2", "assignment", "exam"})
        )

        def create(now: datetime) -> ExamResultRecord:
            return ExamResultRecord(
                id=result_record_id(exam.id, row.student_id),
                exam_id=exam.id,
                student_id=row.student_id,
                subject=exam.subject,
                class_name=exam.class_name,
                term=exam.term,
                session=exam.session,
            )

        def mutate(record: ExamResultRecord, now: datetime) -> None:
            record.student_name = row.student_name or record.student_name
            record.ca1 = breakdown.ca1
            record.ca2 = breakdown.ca2
            record.assignment = breakdown.assignment
            record.exam = breakdown.exam
            record.total = breakdown.total
            record.grade = breakdown.grade
            record.remark = breakdown.remark
            record.position = row.position
            record.total_students = row.total_students
            record.remarks = row.remarks
            record.feedback = None
            record.published_at = now if publish else None

        return TransitionStep(
            record_id=result_record_id(exam.id, row.student_id),
            create=create,
            mutate=mutate,
            details={"total": breakdown.total, "grade": breakdown.grade},
        )

    async def publish_all(self, exam_id: str, actor: Actor) -> list[ExamResultRecord]:
        """Publish every pending result of an exam.

        Published and withheld rows are left alone, so calling this again
        writes nothing.

        Returns:
            Rows published by this call
        """
        pending = await self.engine.list_records(
            exam_id=exam_id, status=ExamResultStatus.PENDING
        )
        if not pending:
            logger.info(f"No pending results to publish for exam {exam_id}")
            return []

        def mutate(record: ExamResultRecord, now: datetime) -> None:
            record.published_at = now

        steps = [
            TransitionStep(record_id=record.id, current=record, mutate=mutate)
            for record in pending
        ]
        return await self.engine.run_batch(
            "publish",
            actor,
            steps,
            notification={
                "title": "Exam results published",
                "message": f"{len(steps)} results published for exam {exam_id}",
                "audience": ["student", "parent"],
                "type": "success",
                "metadata": {"exam_id": exam_id},
            },
        )

    async def withhold(
        self,
        exam_id: str,
        student_id: str,
        actor: Actor,
        reason: str,
        expected_version: int | None = None,
    ) -> ExamResultRecord:
        """Hold back one student's result.

        Raises:
            NotFound: If there is no result for the student
            FeedbackRequired: If the reason is blank
        """
        cleaned = (reason or "").strip()

        def mutate(record: ExamResultRecord, now: datetime) -> None:
            record.feedback = cleaned or None

        return await self.engine.run(
            result_record_id(exam_id, student_id),
            "withhold",
            actor,
            expected_version=expected_version,
            mutate=mutate,
            details={"reason": cleaned},
        )

    async def reinstate(
        self,
        exam_id: str,
        student_id: str,
        actor: Actor,
        expected_version: int | None = None,
    ) -> ExamResultRecord:
        """Return a withheld result to pending."""

        def mutate(record: ExamResultRecord, now: datetime) -> None:
            record.feedback = None
            record.published_at = None

        return await self.engine.run(
            result_record_id(exam_id, student_id),
            "reinstate",
            actor,
            expected_version=expected_version,
            mutate=mutate,
        )

    async def list_results(
        self, exam_id: str, status: ExamResultStatus | None = None
    ) -> list[ExamResultRecord]:
        """Results of an exam, best position first."""
        records = await self.engine.list_records(exam_id=exam_id, status=status)
        return sorted(
            records,
            key=lambda r: (r.position is None, r.position or 0, r.student_name, r.student_id),
        )

    async def grade_summary(self, exam_id: str) -> GradeDistribution:
        """Grade distribution over the exam's published results."""
        published = await self.engine.list_records(
            exam_id=exam_id, status=ExamResultStatus.PUBLISHED
        )
        return summarize_distribution([record.total for record in published])
