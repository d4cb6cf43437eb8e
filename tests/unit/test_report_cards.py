"""Tests for the report card review workflow."""

from datetime import datetime, timezone

import pytest

from factories import (
    ADMIN,
    OTHER_ADMIN,
    TEACHER,
    make_services,
    make_settings,
    scope_for,
)
from school_portal.services.audit import AuditAction, AuditQuery
from school_portal.services.workflow import (
    FeedbackRequired,
    InvalidTransition,
    NotFound,
    RecipientsRequired,
    ReportCardWorkflow,
    StaleVersion,
)
from school_portal.services.workflow.schemas import (
    Recipient,
    ReportCardBatchSubmit,
    ReportCardRecord,
    ReportCardScope,
    ReportCardStatus,
)

PARENT_ONE = Recipient(parent_id="P1", name="Parent One")


class TestSubmit:
    """Tests for report card submission."""

    def setup_method(self):
        """Set up test fixtures."""
        self.services = make_services()
        self.workflow = self.services.report_cards

    @pytest.mark.asyncio
    async def test_first_submission_creates_pending_record(self):
        """Submitting an unknown scope creates it at pending."""
        record = await self.workflow.submit(scope_for(), TEACHER, student_name="Ada Obi")

        assert record.id == "s1::jss1a::mathematics::first_term::2024/2025"
        assert record.status == ReportCardStatus.PENDING
        assert record.submitted_at is not None
        assert record.feedback is None
        assert record.version == 1
        assert record.teacher_id == "T1"
        assert record.actor_name == "Mr Teacher"
        assert record.student_name == "Ada Obi"

    @pytest.mark.asyncio
    async def test_student_id_spellings_share_a_record(self):
        """A student submitted as "student_007" and as "7" has one record."""
        await self.workflow.submit(scope_for("student_007"), TEACHER)

        with pytest.raises(InvalidTransition):
            await self.workflow.submit(scope_for("7"), TEACHER)

        record = await self.workflow.get_record(scope_for("7"))
        assert record.student_id == "student_007"
        assert record.version == 1

    @pytest.mark.asyncio
    async def test_submission_records_history(self):
        """The engine appends one history entry per transition."""
        record = await self.workflow.submit(scope_for(), TEACHER)

        assert len(record.history) == 1
        entry = record.history[0]
        assert entry.action == "submit"
        assert entry.from_status is None
        assert entry.to_status == "pending"
        assert entry.actor_id == "T1"
        assert entry.version == 1

    @pytest.mark.asyncio
    async def test_term_is_normalised_in_scope(self):
        """A lower-case term lands on the same record as the canonical label."""
        scope = ReportCardScope(
            student_id=" S1 ",
            class_name="JSS1A",
            subject="Mathematics",
            term="first",
            session="2024/2025",
        )
        record = await self.workflow.submit(scope, TEACHER)
        same = await self.workflow.get_record(scope_for())

        assert same is not None
        assert same.id == record.id

    @pytest.mark.asyncio
    async def test_resubmitting_pending_is_rejected(self):
        """Strict policy: a pending record cannot be submitted again."""
        await self.workflow.submit(scope_for(), TEACHER)

        with pytest.raises(InvalidTransition):
            await self.workflow.submit(scope_for(), TEACHER)

        record = await self.workflow.get_record(scope_for())
        assert record.version == 1

    @pytest.mark.asyncio
    async def test_resubmitting_approved_without_edits_is_rejected(self):
        """An approved record needs pending edits before it can be resubmitted."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        with pytest.raises(InvalidTransition):
            await self.workflow.submit(scope_for(), TEACHER)

    @pytest.mark.asyncio
    async def test_resubmitting_edited_approved_record(self):
        """An approved record flagged for republish goes back to pending."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])
        edited = await self.workflow.mark_content_edited(scope_for(), TEACHER)

        assert edited.status == ReportCardStatus.APPROVED
        assert edited.requires_republish is True

        record = await self.workflow.submit(scope_for(), TEACHER)

        assert record.status == ReportCardStatus.PENDING
        assert record.version == 4

    @pytest.mark.asyncio
    async def test_resubmitting_revoked_clears_feedback(self):
        """Resubmission after a revoke clears the feedback."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.revoke(scope_for(), ADMIN, "Scores missing")

        record = await self.workflow.submit(scope_for(), TEACHER)

        assert record.status == ReportCardStatus.PENDING
        assert record.feedback is None

    @pytest.mark.asyncio
    async def test_stale_expected_version_is_rejected(self):
        """A caller holding an old version cannot mutate the record."""
        await self.workflow.submit(scope_for(), TEACHER)

        with pytest.raises(StaleVersion) as exc_info:
            await self.workflow.approve_and_publish(
                scope_for(), ADMIN, [PARENT_ONE], expected_version=0
            )

        assert exc_info.value.expected == 0
        assert exc_info.value.actual == 1
        record = await self.workflow.get_record(scope_for())
        assert record.status == ReportCardStatus.PENDING

    @pytest.mark.asyncio
    async def test_version_check_can_be_disabled(self):
        """With enforcement off, expected versions are ignored."""
        services = make_services(make_settings(enforce_version_check=False))
        await services.report_cards.submit(scope_for(), TEACHER)

        record = await services.report_cards.approve_and_publish(
            scope_for(), ADMIN, [PARENT_ONE], expected_version=7
        )

        assert record.status == ReportCardStatus.APPROVED


class TestSubmitBatch:
    """Tests for whole-class submission."""

    def setup_method(self):
        """Set up test fixtures."""
        self.services = make_services()
        self.workflow = self.services.report_cards

    def _batch(self, *student_ids: str) -> ReportCardBatchSubmit:
        return ReportCardBatchSubmit(
            class_name="JSS1A",
            subject="Mathematics",
            term="first",
            session="2024/2025",
            students=[{"id": sid, "name": f"Student {sid}"} for sid in student_ids],
        )

    @pytest.mark.asyncio
    async def test_batch_submits_every_student(self):
        """Each student gets a pending record."""
        records = await self.workflow.submit_batch(self._batch("S1", "S3"), TEACHER)

        assert [r.student_id for r in records] == ["S1", "S3"]
        assert all(r.status == ReportCardStatus.PENDING for r in records)
        assert all(r.term == "First Term" for r in records)

    @pytest.mark.asyncio
    async def test_batch_skips_repeated_students(self):
        """A student listed twice is submitted once."""
        records = await self.workflow.submit_batch(self._batch("S1", "S1"), TEACHER)

        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self):
        """One invalid scope stops the whole batch."""
        await self.workflow.submit(scope_for("S1"), TEACHER)

        with pytest.raises(InvalidTransition):
            await self.workflow.submit_batch(self._batch("S3", "S1"), TEACHER)

        assert await self.workflow.get_record(scope_for("S3")) is None

    @pytest.mark.asyncio
    async def test_batch_notifies_admins(self):
        """Subscribers receive one event listing every record."""
        events = []

        async def capture(event):
            events.append(event)

        self.services.broadcaster.subscribe("report_card_workflow.updated", capture)
        await self.workflow.submit_batch(self._batch("S1", "S3"), TEACHER)

        assert len(events) == 1
        payload = events[0].payload
        assert payload["action"] == "submit"
        assert len(payload["record_ids"]) == 2
        assert payload["notification"]["title"] == "Report cards submitted"
        assert payload["notification"]["audience"] == ["admin", "super-admin"]
        assert payload["notification"]["message"].startswith("Mr Teacher submitted JSS1A")

    @pytest.mark.asyncio
    async def test_batch_notification_names_the_submitter(self):
        """The message names whoever actually submitted the class."""
        events = []

        async def capture(event):
            events.append(event)

        self.services.broadcaster.subscribe("report_card_workflow.updated", capture)
        records = await self.workflow.submit_batch(self._batch("S1"), OTHER_ADMIN)

        assert records[0].teacher_id == "A2"
        assert events[0].payload["notification"]["message"] == (
            "Mr Principal submitted JSS1A Mathematics results for approval"
        )


class TestResetBatch:
    """Tests for withdrawing a whole class submission."""

    def setup_method(self):
        """Set up test fixtures."""
        self.services = make_services()
        self.workflow = self.services.report_cards

    async def _submit_class(self, *student_ids: str, author=TEACHER, subject="Mathematics"):
        batch = ReportCardBatchSubmit(
            class_name="JSS1A",
            subject=subject,
            term="First Term",
            session="2024/2025",
            students=[{"id": sid} for sid in student_ids],
        )
        return await self.workflow.submit_batch(batch, author)

    async def _reset(self, teacher_id="T1", subject="Mathematics", actor=TEACHER):
        return await self.workflow.reset_batch(
            teacher_id, "JSS1A", subject, "first", "2024/2025", actor
        )

    @pytest.mark.asyncio
    async def test_reset_batch_withdraws_teacher_submission(self):
        """Pending and revoked records of the teacher go back to draft."""
        submitted = await self._submit_class("S1", "S3")
        await self.workflow.revoke(scope_for("S3"), ADMIN, "Check CA2")

        records = await self._reset()

        assert [r.student_id for r in records] == ["S1", "S3"]
        assert all(r.status == ReportCardStatus.DRAFT for r in records)
        assert all(r.submitted_at is None and r.feedback is None for r in records)
        assert records[0].version == submitted[0].version + 1
        assert records[0].history[-1].action == "reset"

    @pytest.mark.asyncio
    async def test_reset_batch_leaves_other_scopes(self):
        """Other teachers and other subjects are not touched."""
        await self._submit_class("S1")
        await self._submit_class("S3", author=ADMIN)
        await self._submit_class("S1", subject="English")

        records = await self._reset()

        assert [r.id for r in records] == [scope_for("S1").record_id]
        other_teacher = await self.workflow.get_record(scope_for("S3"))
        other_subject = await self.workflow.get_record(scope_for("S1", subject="English"))
        assert other_teacher.status == ReportCardStatus.PENDING
        assert other_subject.status == ReportCardStatus.PENDING

    @pytest.mark.asyncio
    async def test_reset_batch_is_all_or_nothing(self):
        """An approved card in the class blocks the whole withdrawal."""
        await self._submit_class("S1", "S3")
        await self.workflow.approve_and_publish(scope_for("S1"), ADMIN, [PARENT_ONE])

        with pytest.raises(InvalidTransition):
            await self._reset()

        pending = await self.workflow.get_record(scope_for("S3"))
        assert pending.status == ReportCardStatus.PENDING

    @pytest.mark.asyncio
    async def test_reset_batch_skips_drafts(self):
        """Records already back at draft are left out."""
        await self._submit_class("S1", "S3")
        await self.workflow.reset(scope_for("S1"), TEACHER)

        records = await self._reset()

        assert [r.student_id for r in records] == ["S3"]

    @pytest.mark.asyncio
    async def test_reset_batch_without_submission(self):
        """Nothing to withdraw is not found, and the refusal is audited."""
        with pytest.raises(NotFound):
            await self._reset()

        entries = self.services.audit_logger.query(
            AuditQuery(actions=[AuditAction.TRANSITION_REJECTED])
        )
        assert entries[0].error_code == "not_found"


class TestApproveAndRevoke:
    """Tests for approval, revocation and reset."""

    def setup_method(self):
        """Set up test fixtures."""
        self.services = make_services()
        self.workflow = self.services.report_cards

    @pytest.mark.asyncio
    async def test_approve_with_explicit_recipients(self):
        """Approval publishes to the given recipients and bumps the version."""
        pending = await self.workflow.submit(scope_for(), TEACHER)

        record = await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        assert record.status == ReportCardStatus.APPROVED
        assert [r.parent_id for r in record.published_to] == ["P1"]
        assert record.version == pending.version + 1
        assert record.approved_at is not None
        assert record.published_at is not None
        assert record.actor_id == "A1"
        assert record.requires_republish is False

    @pytest.mark.asyncio
    async def test_approve_resolves_recipients_from_directory(self):
        """Without explicit recipients the linked parent account is used."""
        await self.workflow.submit(scope_for("S1"), TEACHER)

        record = await self.workflow.approve_and_publish(scope_for("S1"), ADMIN)

        assert [r.parent_id for r in record.published_to] == ["P1"]

    @pytest.mark.asyncio
    async def test_approve_falls_back_to_student_contact(self):
        """A student without a parent account is reached through their contact."""
        await self.workflow.submit(scope_for("S3"), TEACHER)

        record = await self.workflow.approve_and_publish(scope_for("S3"), ADMIN)

        assert [r.parent_id for r in record.published_to] == ["contact:ade@example.com"]
        assert record.published_to[0].name == "Mr Ade"

    @pytest.mark.asyncio
    async def test_approve_without_any_audience_is_rejected(self):
        """Unknown students with no contact cannot be published."""
        await self.workflow.submit(scope_for("S9"), TEACHER)

        with pytest.raises(RecipientsRequired):
            await self.workflow.approve_and_publish(scope_for("S9"), ADMIN)

        record = await self.workflow.get_record(scope_for("S9"))
        assert record.status == ReportCardStatus.PENDING

    @pytest.mark.asyncio
    async def test_approve_with_empty_recipient_list_is_rejected(self):
        """An explicit empty audience is not resolved, it is refused."""
        await self.workflow.submit(scope_for(), TEACHER)

        with pytest.raises(RecipientsRequired):
            await self.workflow.approve_and_publish(scope_for(), ADMIN, [])

    @pytest.mark.asyncio
    async def test_approve_deduplicates_recipients(self):
        """Recipients are unique by parent id, ignoring case."""
        await self.workflow.submit(scope_for(), TEACHER)
        twice = [PARENT_ONE, Recipient(parent_id="p1", name="Parent One")]

        record = await self.workflow.approve_and_publish(scope_for(), ADMIN, twice)

        assert len(record.published_to) == 1

    @pytest.mark.asyncio
    async def test_approve_requires_pending(self):
        """Approving a missing or approved record fails."""
        with pytest.raises(NotFound):
            await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        with pytest.raises(InvalidTransition):
            await self.workflow.approve_and_publish(scope_for(), OTHER_ADMIN, [PARENT_ONE])

    @pytest.mark.asyncio
    async def test_revoke_approved_record(self):
        """Revoking stores the feedback and withdraws access."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        record = await self.workflow.revoke(scope_for(), ADMIN, "  Fix math total ")

        assert record.status == ReportCardStatus.REVOKED
        assert record.feedback == "Fix math total"
        assert record.published_to == []

    @pytest.mark.asyncio
    async def test_revoke_requires_feedback(self):
        """Blank feedback is refused and nothing is written."""
        await self.workflow.submit(scope_for(), TEACHER)

        with pytest.raises(FeedbackRequired):
            await self.workflow.revoke(scope_for(), ADMIN, "   ")

        record = await self.workflow.get_record(scope_for())
        assert record.status == ReportCardStatus.PENDING
        assert record.version == 1

    @pytest.mark.asyncio
    async def test_revoke_revoked_record_is_rejected(self):
        """A revoked record cannot be revoked again."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.revoke(scope_for(), ADMIN, "Redo")

        with pytest.raises(InvalidTransition):
            await self.workflow.revoke(scope_for(), ADMIN, "Again")

    @pytest.mark.asyncio
    async def test_republish_keeps_previous_recipients(self):
        """Re-approval after an edit keeps recipients granted earlier."""
        await self.workflow.submit(scope_for(), TEACHER)
        guardian = Recipient(parent_id="G1", name="Guardian", email="g1@example.com")
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE, guardian])
        await self.workflow.mark_content_edited(scope_for(), TEACHER)
        await self.workflow.submit(scope_for(), TEACHER)

        record = await self.workflow.approve_and_publish(scope_for(), ADMIN)

        assert [r.parent_id for r in record.published_to] == ["P1", "G1"]

    @pytest.mark.asyncio
    async def test_reset_returns_to_draft(self):
        """Reset clears the submission."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.revoke(scope_for(), ADMIN, "Start over")

        record = await self.workflow.reset(scope_for(), TEACHER)

        assert record.status == ReportCardStatus.DRAFT
        assert record.submitted_at is None
        assert record.feedback is None

    @pytest.mark.asyncio
    async def test_reset_approved_is_rejected(self):
        """Approved work must be revoked, not reset."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        with pytest.raises(InvalidTransition):
            await self.workflow.reset(scope_for(), TEACHER)

    @pytest.mark.asyncio
    async def test_rejections_are_audited(self):
        """A refused transition leaves a failed audit entry."""
        await self.workflow.submit(scope_for(), TEACHER)
        with pytest.raises(FeedbackRequired):
            await self.workflow.revoke(scope_for(), ADMIN, "")

        entries = self.services.audit_logger.query(
            AuditQuery(actions=[AuditAction.TRANSITION_REJECTED])
        )

        assert len(entries) == 1
        assert entries[0].success is False
        assert entries[0].error_code == "feedback_required"
        assert entries[0].actor_id == "A1"

    @pytest.mark.asyncio
    async def test_transitions_are_audited(self):
        """Every successful transition is audited with its statuses."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])

        entries = self.services.audit_logger.query(AuditQuery(resource_id=scope_for().record_id))

        assert [e.action for e in entries] == [
            AuditAction.REPORT_CARD_APPROVED,
            AuditAction.REPORT_CARD_SUBMITTED,
        ]
        assert entries[0].from_status == "pending"
        assert entries[0].to_status == "approved"


class TestContentEdits:
    """Tests for the republish flag."""

    def setup_method(self):
        """Set up test fixtures."""
        self.workflow = make_services().report_cards

    @pytest.mark.asyncio
    async def test_mark_edited_missing_record(self):
        """There must be a record to flag."""
        with pytest.raises(NotFound):
            await self.workflow.mark_content_edited(scope_for(), TEACHER)

    @pytest.mark.asyncio
    async def test_mark_edited_pending_is_untouched(self):
        """Edits before approval need no republish."""
        await self.workflow.submit(scope_for(), TEACHER)

        record = await self.workflow.mark_content_edited(scope_for(), TEACHER)

        assert record.requires_republish is False
        assert record.version == 1

    @pytest.mark.asyncio
    async def test_mark_edited_twice_writes_once(self):
        """An already flagged record is not written again."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])
        first = await self.workflow.mark_content_edited(scope_for(), TEACHER)

        second = await self.workflow.mark_content_edited(scope_for(), TEACHER)

        assert first.version == 3
        assert second.version == 3

    @pytest.mark.asyncio
    async def test_republish_flag_cleared_by_approval(self):
        """Only a successful publish clears the flag."""
        await self.workflow.submit(scope_for(), TEACHER)
        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])
        await self.workflow.mark_content_edited(scope_for(), TEACHER)

        pending = await self.workflow.submit(scope_for(), TEACHER)
        assert pending.requires_republish is True

        record = await self.workflow.approve_and_publish(scope_for(), ADMIN)
        assert record.requires_republish is False


class TestQueries:
    """Tests for listing, summaries and parent access."""

    def setup_method(self):
        """Set up test fixtures."""
        self.workflow = make_services().report_cards

    @pytest.mark.asyncio
    async def test_query_excludes_drafts_by_default(self):
        """Only submitted work is actionable."""
        await self.workflow.submit(scope_for("S1"), TEACHER)
        await self.workflow.submit(scope_for("S3"), TEACHER)
        await self.workflow.reset(scope_for("S3"), TEACHER)

        records = await self.workflow.query_by_status_and_class(class_name="JSS1A")
        drafts = await self.workflow.query_by_status_and_class(status=ReportCardStatus.DRAFT)

        assert [r.student_id for r in records] == ["S1"]
        assert [r.student_id for r in drafts] == ["S3"]

    @pytest.mark.asyncio
    async def test_query_orders_by_submission(self):
        """Earlier submissions come first."""
        await self.workflow.submit(scope_for("S3"), TEACHER)
        await self.workflow.submit(scope_for("S1"), TEACHER)

        records = await self.workflow.query_by_status_and_class(
            status=ReportCardStatus.PENDING
        )

        assert [r.student_id for r in records] == ["S3", "S1"]

    @pytest.mark.asyncio
    async def test_query_by_other_class(self):
        """Class filter is exact."""
        await self.workflow.submit(scope_for(), TEACHER)

        assert await self.workflow.query_by_status_and_class(class_name="JSS2B") == []

    @pytest.mark.asyncio
    async def test_records_for_period(self):
        """Period lookups normalise the term."""
        await self.workflow.submit(scope_for("S1"), TEACHER)
        await self.workflow.submit(scope_for("S1", subject="English"), TEACHER)

        records = await self.workflow.records_for_period("first", "2024/2025")
        other = await self.workflow.records_for_period("Second Term", "2024/2025")

        assert len(records) == 2
        assert other == []

    @pytest.mark.asyncio
    async def test_has_access_follows_publication(self):
        """Parents see approved cards published to them, until revoked."""
        await self.workflow.submit(scope_for(), TEACHER)
        assert await self.workflow.has_access("P1", scope_for()) is False

        await self.workflow.approve_and_publish(scope_for(), ADMIN, [PARENT_ONE])
        assert await self.workflow.has_access(" p1 ", scope_for()) is True
        assert await self.workflow.has_access("P2", scope_for()) is False

        await self.workflow.revoke(scope_for(), ADMIN, "Wrong subject")
        assert await self.workflow.has_access("P1", scope_for()) is False


class TestSummarize:
    """Tests for the roll-up status."""

    def _record(self, student_id: str, status: ReportCardStatus, **fields) -> ReportCardRecord:
        return ReportCardRecord(
            id=scope_for(student_id).record_id,
            student_id=student_id,
            class_name="JSS1A",
            subject="Mathematics",
            term="First Term",
            session="2024/2025",
            status=status,
            **fields,
        )

    def test_empty_is_draft(self):
        """No records means nothing was submitted."""
        assert ReportCardWorkflow.summarize([]).status == ReportCardStatus.DRAFT

    def test_revoked_wins(self):
        """Any revoked record makes the set revoked, with its feedback."""
        summary = ReportCardWorkflow.summarize(
            [
                self._record("S1", ReportCardStatus.APPROVED),
                self._record("S3", ReportCardStatus.REVOKED, feedback="Check totals"),
                self._record("S4", ReportCardStatus.PENDING),
            ]
        )

        assert summary.status == ReportCardStatus.REVOKED
        assert summary.message == "Check totals"

    def test_pending_before_approved(self):
        """A partly approved set is still pending."""
        submitted = datetime(2024, 11, 1, tzinfo=timezone.utc)
        summary = ReportCardWorkflow.summarize(
            [
                self._record("S1", ReportCardStatus.PENDING, submitted_at=submitted),
                self._record("S3", ReportCardStatus.APPROVED),
            ]
        )

        assert summary.status == ReportCardStatus.PENDING
        assert summary.submitted_at == submitted

    def test_all_approved(self):
        """Only a fully approved set counts as approved."""
        summary = ReportCardWorkflow.summarize(
            [
                self._record("S1", ReportCardStatus.APPROVED),
                self._record("S3", ReportCardStatus.APPROVED),
            ]
        )
        mixed = ReportCardWorkflow.summarize(
            [
                self._record("S1", ReportCardStatus.APPROVED),
                self._record("S3", ReportCardStatus.DRAFT),
            ]
        )

        assert summary.status == ReportCardStatus.APPROVED
        assert mixed.status == ReportCardStatus.DRAFT
