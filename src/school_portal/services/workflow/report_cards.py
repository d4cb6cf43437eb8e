"""Report card review workflow.

Teachers submit a class's results per subject; administrators approve them
(publishing to parents) or send them back with feedback.
"""

import logging
from datetime import datetime, timezone

from school_portal.services.workflow.engine import ApprovalWorkflowEngine, TransitionStep
from school_portal.services.workflow.errors import NotFound, WorkflowError
from school_portal.services.workflow.recipients import RecipientResolver, previous_recipients
from school_portal.services.workflow.schemas import (
    Actor,
    Recipient,
    ReportCardBatchSubmit,
    ReportCardRecord,
    ReportCardScope,
    ReportCardStatus,
    WorkflowSummary,
    normalize_term_label,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _scope_metadata(record: ReportCardRecord) -> dict[str, str]:
    return {
        "student_id": record.student_id,
        "class_name": record.class_name,
        "subject": record.subject,
        "term": record.term,
        "session": record.session,
    }


def _card_notification(
    record: ReportCardRecord | None,
    title: str,
    template: str,
    *,
    audience: list[str],
    kind: str,
) -> dict | None:
    if record is None:
        return None
    return {
        "title": title,
        "message": template.format(name=record.student_name or record.student_id),
        "audience": audience,
        "type": kind,
        "metadata": _scope_metadata(record),
    }


def _withdraw(record: ReportCardRecord, now: datetime) -> None:
    record.submitted_at = None
    record.feedback = None
    record.published_to = []


class ReportCardWorkflow:
    """Report card transitions on top of the generic engine."""

    def __init__(
        self,
        engine: ApprovalWorkflowEngine,
        resolver: RecipientResolver | None = None,
    ):
        """Initialize report card workflow.

        Args:
            engine: Engine configured with the report card definition
            resolver: Recipient resolver used when approval names no recipients
        """
        self.engine = engine
        self.resolver = resolver

    async def get_record(self, scope: ReportCardScope) -> ReportCardRecord | None:
        """Get the record for a scope, if any."""
        return await self.engine.get(scope.record_id)

    async def submit(
        self,
        scope: ReportCardScope,
        author: Actor,
        student_name: str | None = None,
        expected_version: int | None = None,
    ) -> ReportCardRecord:
        """Submit a student's report card for review.

        Creates the record at ``pending`` on first submission, or moves a
        ``draft``/``revoked`` record (or an edited ``approved`` one) back to
        ``pending``.

        Args:
            scope: Student, class, subject, term and session
            author: Submitting teacher
            student_name: Display name stored on the record
            expected_version: Version the caller last saw

        Returns:
            Updated record

        Raises:
            InvalidTransition: If the record is already pending, or approved
                without pending edits
        """
        return await self.engine.run(
            scope.record_id,
            "submit",
            author,
            expected_version=expected_version,
            **self._submit_step(scope, author, student_name),
        )

    async def submit_batch(
        self, batch: ReportCardBatchSubmit, author: Actor
    ) -> list[ReportCardRecord]:
        """Submit every listed student of a class for one subject.

        Every scope is checked before anything is written; if one student's
        record cannot be submitted, none are.

        Args:
            batch: Class, subject, period and students
            author: Submitting teacher

        Returns:
            Updated records in student order
        """
        steps: list[TransitionStep] = []
        seen: set[str] = set()
        for student in batch.students:
            scope = ReportCardScope(
                student_id=student.id,
                class_name=batch.class_name,
                subject=batch.subject,
                term=batch.term,
                session=batch.session,
            )
            if scope.record_id in seen:
                logger.debug(f"Skipping repeated student {student.id} in batch")
                continue
            seen.add(scope.record_id)
            steps.append(
                TransitionStep(
                    record_id=scope.record_id,
                    **self._submit_step(scope, author, student.name or None),
                )
            )

        notification = {
            "title": "Report cards submitted",
            "message": (
                f"{author.name} submitted {batch.class_name} "
                f"{batch.subject} results for approval"
            ),
            "audience": ["admin", "super-admin"],
            "type": "info",
            "metadata": {
                "class_name": batch.class_name,
                "subject": batch.subject,
                "term": batch.term,
                "session": batch.session,
            },
        }
        records = await self.engine.run_batch(
            "submit", author, steps, notification=notification
        )
        logger.info(
            f"Submitted {len(records)} report cards for "
            f"{batch.class_name} {batch.subject}",
            extra={"class_name": batch.class_name, "teacher_id": author.id},
        )
        return records

    def _submit_step(
        self, scope: ReportCardScope, author: Actor, student_name: str | None
    ) -> dict:
        def create(now: datetime) -> ReportCardRecord:
            return ReportCardRecord(
                id=scope.record_id,
                student_id=scope.student_id,
                student_name=student_name or "",
                class_name=scope.class_name,
                subject=scope.subject,
                term=scope.term,
                session=scope.session,
            )

        def mutate(record: ReportCardRecord, now: datetime) -> None:
            record.submitted_at = now
            record.feedback = None
            record.teacher_id = author.id
            record.teacher_name = author.name
            if student_name:
                record.student_name = student_name

        return {"create": create, "mutate": mutate}

    async def approve_and_publish(
        self,
        scope: ReportCardScope,
        admin: Actor,
        recipients: list[Recipient] | None = None,
        expected_version: int | None = None,
    ) -> ReportCardRecord:
        """Approve a pending report card and publish it to parents.

        Args:
            scope: Record scope
            admin: Approving administrator
            recipients: Explicit audience; resolved from the directory if None
            expected_version: Version the caller last saw

        Returns:
            Approved record

        Raises:
            NotFound: If nothing was submitted for the scope
            InvalidTransition: If the record is not pending
            RecipientsRequired: If the audience is empty
            UpstreamFailure: If the directory cannot be read
        """
        current = await self.engine.get(scope.record_id)

        if (
            recipients is None
            and self.resolver is not None
            and current is not None
            and current.status == ReportCardStatus.PENDING
        ):
            try:
                recipients = await self.resolver.resolve(
                    current.student_id, prior=previous_recipients(current)
                )
            except WorkflowError as e:
                self.engine.record_rejection("approve", admin, e, record_id=scope.record_id)
                raise

        audience = _dedupe(recipients or [])

        def mutate(record: ReportCardRecord, now: datetime) -> None:
            record.approved_at = now
            record.published_at = now
            record.published_to = audience
            record.requires_republish = False
            record.feedback = None

        return await self.engine.run(
            scope.record_id,
            "approve",
            admin,
            expected_version=expected_version,
            current=current,
            mutate=mutate,
            details={"recipients": [r.model_dump(mode="json") for r in audience]},
            notification=_card_notification(
                current,
                "Report card published",
                "{name}'s result has been published to parents",
                audience=["teacher", "parent"],
                kind="success",
            ),
        )

    async def revoke(
        self,
        scope: ReportCardScope,
        admin: Actor,
        feedback: str,
        expected_version: int | None = None,
    ) -> ReportCardRecord:
        """Send a pending or approved report card back to its teacher.

        Raises:
            NotFound: If nothing was submitted for the scope
            InvalidTransition: If the record is draft or already revoked
            FeedbackRequired: If feedback is blank
        """
        reason = (feedback or "").strip()

        def mutate(record: ReportCardRecord, now: datetime) -> None:
            record.feedback = reason or None
            record.published_to = []

        current = await self.engine.get(scope.record_id)
        return await self.engine.run(
            scope.record_id,
            "revoke",
            admin,
            expected_version=expected_version,
            current=current,
            mutate=mutate,
            details={"feedback": reason},
            notification=_card_notification(
                current,
                "Report card needs revision",
                "{name}'s result was returned for correction",
                audience=["teacher"],
                kind="warning",
            ),
        )

    async def reset(
        self,
        scope: ReportCardScope,
        actor: Actor,
        expected_version: int | None = None,
    ) -> ReportCardRecord:
        """Withdraw a pending or revoked submission back to draft."""
        return await self.engine.run(
            scope.record_id,
            "reset",
            actor,
            expected_version=expected_version,
            mutate=_withdraw,
        )

    async def reset_batch(
        self,
        teacher_id: str,
        class_name: str,
        subject: str,
        term: str,
        session: str,
        actor: Actor,
    ) -> list[ReportCardRecord]:
        """Withdraw everything a teacher submitted for a class and subject.

        Drafts are skipped. The rest go back to draft together; if one of
        them cannot be reset (an approved card, say), none are.

        Args:
            teacher_id: Teacher whose submission is withdrawn
            class_name: Class name
            subject: Subject
            term: Term, normalised before matching
            session: Academic session
            actor: User performing the withdrawal

        Returns:
            Reset records in id order

        Raises:
            NotFound: If the teacher has nothing submitted for the scope
            InvalidTransition: If any matching record cannot be reset
        """
        term = normalize_term_label(term)
        records = await self.engine.list_records(
            teacher_id=teacher_id,
            class_name=class_name,
            subject=subject,
            term=term,
            session=session,
        )
        submitted = sorted(
            (r for r in records if r.status != ReportCardStatus.DRAFT), key=lambda r: r.id
        )
        if not submitted:
            error = NotFound(
                f"No {class_name} {subject} submission by {teacher_id} for {term} {session}",
                teacher_id=teacher_id,
            )
            self.engine.record_rejection("reset", actor, error)
            raise error

        steps = [
            TransitionStep(
                record_id=record.id,
                current=record,
                mutate=_withdraw,
                details={"teacher_id": teacher_id},
            )
            for record in submitted
        ]
        reset = await self.engine.run_batch(
            "reset",
            actor,
            steps,
            notification={
                "title": "Report card submission withdrawn",
                "message": f"{class_name} {subject} results were withdrawn for editing",
                "audience": ["admin", "super-admin", "teacher"],
                "type": "info",
                "metadata": {
                    "class_name": class_name,
                    "subject": subject,
                    "term": term,
                    "session": session,
                },
            },
        )
        logger.info(
            f"Reset {len(reset)} report cards for {class_name} {subject}",
            extra={"class_name": class_name, "teacher_id": teacher_id},
        )
        return reset

    async def mark_content_edited(
        self, scope: ReportCardScope, actor: Actor
    ) -> ReportCardRecord:
        """Flag that the scores behind an approved report card changed.

        Only approved records are affected; they keep their status until they
        are resubmitted and approved again. Other records are returned as-is.

        Raises:
            NotFound: If there is no record for the scope
        """
        current = await self.engine.get(scope.record_id)
        if current is None:
            raise NotFound(f"No report card record {scope.record_id}", record_id=scope.record_id)
        if current.status != ReportCardStatus.APPROVED or current.requires_republish:
            return current

        def mutate(record: ReportCardRecord, now: datetime) -> None:
            record.requires_republish = True

        return await self.engine.run(
            scope.record_id, "edit", actor, current=current, mutate=mutate
        )

    async def query_by_status_and_class(
        self,
        status: ReportCardStatus | None = None,
        class_name: str | None = None,
    ) -> list[ReportCardRecord]:
        """Records matching a status and class.

        Without a status, drafts are left out: only submitted work is actionable.
        Ordered by submission time, then id.
        """
        records = await self.engine.list_records(status=status, class_name=class_name)
        if status is None:
            records = [r for r in records if r.status != ReportCardStatus.DRAFT]
        return sorted(records, key=lambda r: (r.submitted_at or _EPOCH, r.id))

    async def records_for_period(self, term: str, session: str) -> list[ReportCardRecord]:
        """All records for a term and session."""
        return await self.engine.list_records(
            term=normalize_term_label(term), session=session
        )

    @staticmethod
    def summarize(records: list[ReportCardRecord]) -> WorkflowSummary:
        """Roll a set of records up into one status.

        Any revoked record wins, then any pending one; only a fully approved
        set counts as approved.
        """
        if not records:
            return WorkflowSummary(status=ReportCardStatus.DRAFT)

        revoked = next((r for r in records if r.status == ReportCardStatus.REVOKED), None)
        if revoked is not None:
            return WorkflowSummary(
                status=ReportCardStatus.REVOKED,
                message=revoked.feedback,
                submitted_at=revoked.submitted_at,
            )
        if any(r.status == ReportCardStatus.PENDING for r in records):
            return WorkflowSummary(
                status=ReportCardStatus.PENDING, submitted_at=records[0].submitted_at
            )
        if all(r.status == ReportCardStatus.APPROVED for r in records):
            return WorkflowSummary(
                status=ReportCardStatus.APPROVED, submitted_at=records[0].submitted_at
            )
        return WorkflowSummary(status=ReportCardStatus.DRAFT)

    async def has_access(self, parent_id: str, scope: ReportCardScope) -> bool:
        """Whether a parent may view the published report card."""
        record = await self.engine.get(scope.record_id)
        if record is None or record.status != ReportCardStatus.APPROVED:
            return False
        target = parent_id.strip().lower()
        return any(r.parent_id.strip().lower() == target for r in record.published_to)


def _dedupe(recipients: list[Recipient]) -> list[Recipient]:
    unique: list[Recipient] = []
    seen: set[str] = set()
    for recipient in recipients:
        key = recipient.parent_id.strip().lower()
        if key not in seen:
            seen.add(key)
            unique.append(recipient)
    return unique
