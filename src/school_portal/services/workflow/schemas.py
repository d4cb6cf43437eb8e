"""Workflow record schemas."""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from school_portal.services.directory.schemas import canonical_student_id

TERM_LABELS = {
    "first": "First Term",
    "first term": "First Term",
    "second": "Second Term",
    "second term": "Second Term",
    "third": "Third Term",
    "third term": "Third Term",
}


def normalize_term_label(term: str | None) -> str:
    """Map free-form term input onto its canonical label.

    @param term - Raw term, e.g. "first", "FIRST TERM" or "summer school"
    @returns "First Term" for empty input, a known label, or the title-cased input
    """
    if not term or not term.strip():
        return "First Term"
    cleaned = term.strip()
    return TERM_LABELS.get(cleaned.lower(), cleaned.title())


def build_record_id(*segments: str) -> str:
    """Join scope segments into a stable record id."""
    return "::".join(re.sub(r"\s+", "_", str(segment)).lower() for segment in segments)


class WorkflowKind(str, Enum):
    """Artifact types that go through an approval workflow."""

    REPORT_CARD = "report_card"
    CALENDAR = "calendar"
    EXAM_RESULT = "exam_result"


class ReportCardStatus(str, Enum):
    """Report card review status."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REVOKED = "revoked"


class CalendarStatus(str, Enum):
    """School calendar status."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PUBLISHED = "published"


class ExamResultStatus(str, Enum):
    """Per-student exam result status."""

    PENDING = "pending"
    PUBLISHED = "published"
    WITHHELD = "withheld"


class CalendarCategory(str, Enum):
    """Calendar event categories."""

    ACADEMIC = "academic"
    HOLIDAY = "holiday"
    EVENT = "event"
    MEETING = "meeting"
    EXAMINATION = "examination"


class CalendarAudience(str, Enum):
    """Who a calendar event is meant for."""

    ALL = "all"
    STUDENTS = "students"
    PARENTS = "parents"
    TEACHERS = "teachers"


class Actor(BaseModel):
    """Identity of the user performing an action. Trusted as given."""

    id: str = Field(..., min_length=1, description="User ID")
    name: str = Field(..., min_length=1, description="Display name")
    role: str = Field(default="admin", description="Portal role")


class Recipient(BaseModel):
    """Parent or guardian a report card is published to."""

    parent_id: str = Field(..., min_length=1, description="Parent account or contact ID")
    name: str = Field(..., description="Parent display name")
    email: str | None = Field(None, description="Contact email")


class TransitionEntry(BaseModel):
    """One step of a record's audit trail."""

    action: str = Field(..., description="Transition name")
    from_status: str | None = Field(None, description="Status before the transition")
    to_status: str = Field(..., description="Status after the transition")
    actor_id: str = Field(..., description="Acting user ID")
    actor_name: str = Field(..., description="Acting user name")
    at: datetime = Field(..., description="Transition timestamp")
    version: int = Field(..., ge=1, description="Record version after the transition")
    details: dict[str, Any] = Field(default_factory=dict, description="Transition inputs")


class WorkflowRecord(BaseModel):
    """State shared by every approvable artifact."""

    id: str = Field(..., description="Deterministic record ID")
    kind: WorkflowKind = Field(..., description="Artifact type")
    status: str = Field(..., description="Current status")

    submitted_at: datetime | None = Field(None, description="Last submission time")
    approved_at: datetime | None = Field(None, description="Last approval time")
    published_at: datetime | None = Field(None, description="Last publication time")
    created_at: datetime | None = Field(None, description="Creation time")
    updated_at: datetime | None = Field(None, description="Last mutation time")

    feedback: str | None = Field(None, description="Reason given on revoke/withhold")
    actor_id: str | None = Field(None, description="Actor of the last transition")
    actor_name: str | None = Field(None, description="Name of the last actor")

    published_to: list[Recipient] = Field(
        default_factory=list, description="Recipients of the current publication"
    )
    requires_republish: bool = Field(
        default=False, description="Content changed after approval or publication"
    )
    version: int = Field(default=0, ge=0, description="Bumped on every mutation")
    history: list[TransitionEntry] = Field(default_factory=list, description="Audit trail")

    def audience(self) -> list[Any]:
        """Who currently sees this artifact."""
        return list(self.published_to)


class ReportCardRecord(WorkflowRecord):
    """Review state of one student's report card for a subject and term."""

    kind: WorkflowKind = WorkflowKind.REPORT_CARD
    status: ReportCardStatus = ReportCardStatus.DRAFT

    student_id: str = Field(..., description="Student ID")
    student_name: str = Field(default="", description="Student name")
    class_name: str = Field(..., description="Class name")
    subject: str = Field(..., description="Subject")
    term: str = Field(..., description="Normalised term label")
    session: str = Field(..., description="Academic session, e.g. 2024/2025")
    teacher_id: str | None = Field(None, description="Submitting teacher ID")
    teacher_name: str | None = Field(None, description="Submitting teacher name")


class CalendarEvent(BaseModel):
    """An entry on the school calendar."""

    id: str = Field(..., description="Event ID")
    title: str = Field(..., description="Event title")
    description: str = Field(..., description="Event description")
    start_date: date = Field(..., description="First day")
    end_date: date | None = Field(None, description="Last day")
    category: CalendarCategory = Field(default=CalendarCategory.ACADEMIC)
    audience: CalendarAudience = Field(default=CalendarAudience.ALL)
    location: str | None = Field(None, description="Venue")
    is_full_day: bool = Field(default=True, description="Runs the whole day")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")


class CalendarRecord(WorkflowRecord):
    """The school calendar and its approval state."""

    kind: WorkflowKind = WorkflowKind.CALENDAR
    status: CalendarStatus = CalendarStatus.DRAFT

    title: str = Field(default="School Calendar", description="Calendar title")
    term: str = Field(default="First Term", description="Term label")
    session: str = Field(default="", description="Academic session")
    events: list[CalendarEvent] = Field(default_factory=list, description="Events by start date")
    approved_by: str | None = Field(None, description="Approver name")
    approval_notes: str | None = Field(None, description="Submission, approval or change-request note")
    published_audiences: list[CalendarAudience] = Field(
        default_factory=list, description="Audiences reached by the current publication"
    )

    def audience(self) -> list[Any]:
        return list(self.published_audiences)


class ExamResultRecord(WorkflowRecord):
    """One student's result for one exam."""

    kind: WorkflowKind = WorkflowKind.EXAM_RESULT
    status: ExamResultStatus = ExamResultStatus.PENDING

    exam_id: str = Field(..., description="Exam schedule ID")
    student_id: str = Field(..., description="Student ID")
    student_name: str = Field(default="", description="Student name")
    class_name: str = Field(default="", description="Class name")
    subject: str = Field(default="", description="Subject")
    term: str = Field(default="", description="Term label")
    session: str = Field(default="", description="Academic session")

    ca1: int = Field(default=0, ge=0)
    ca2: int = Field(default=0, ge=0)
    assignment: int = Field(default=0, ge=0)
    exam: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0, le=100)
    grade: str = Field(default="F")
    remark: str = Field(default="")
    position: int | None = Field(None, ge=1)
    total_students: int | None = Field(None, ge=0)
    remarks: str | None = Field(None, description="Teacher's remarks")

    def audience(self) -> list[Any]:
        return [self.student_id] if self.status == ExamResultStatus.PUBLISHED else []


class ReportCardScope(BaseModel):
    """Composite key of a report card workflow record."""

    student_id: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    term: str = Field(default="First Term")
    session: str = Field(..., min_length=1)

    @field_validator("student_id", mode="before")
    @classmethod
    def _coerce_student_id(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("term", mode="before")
    @classmethod
    def _normalize_term(cls, value: Any) -> str:
        return normalize_term_label(value)

    @property
    def record_id(self) -> str:
        return build_record_id(
            canonical_student_id(self.student_id),
            self.class_name,
            self.subject,
            self.term,
            self.session,
        )


class StudentEntry(BaseModel):
    """Student included in a batch submission."""

    id: str = Field(..., min_length=1)
    name: str = Field(default="")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value).strip()


class ClassSubjectPeriod(BaseModel):
    """A class's subject for one term and session."""

    class_name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    term: str = Field(default="First Term")
    session: str = Field(..., min_length=1)

    @field_validator("term", mode="before")
    @classmethod
    def _normalize_term(cls, value: Any) -> str:
        return normalize_term_label(value)


class ReportCardBatchSubmit(ClassSubjectPeriod):
    """Teacher submission of a whole class for one subject."""

    students: list[StudentEntry] = Field(..., min_length=1)


class ReportCardBatchReset(ClassSubjectPeriod):
    """Withdrawal of a teacher's whole class submission."""

    teacher_id: str | None = Field(
        None, min_length=1, description="Submitting teacher; the caller when omitted"
    )


class WorkflowSummary(BaseModel):
    """Roll-up status of a set of report card records."""

    status: ReportCardStatus
    message: str | None = None
    submitted_at: datetime | None = None


class CalendarEventInput(BaseModel):
    """Create or update a calendar event."""

    id: str | None = Field(None, description="Existing event ID to update")
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="Scheduled school programme", max_length=2000)
    start_date: date
    end_date: date | None = None
    category: CalendarCategory = CalendarCategory.ACADEMIC
    audience: CalendarAudience = CalendarAudience.ALL
    location: str | None = None
    is_full_day: bool = True

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ExamResultInput(BaseModel):
    """Raw scores for one student. Bounds are checked against the grading maximums."""

    student_id: str = Field(..., min_length=1)
    student_name: str = Field(default="")
    ca1: float = 0
    ca2: float = 0
    assignment: float = 0
    exam: float = 0
    position: int | None = Field(None, ge=1)
    total_students: int | None = Field(None, ge=0)
    remarks: str | None = None

    @field_validator("student_id", mode="before")
    @classmethod
    def _coerce_student_id(cls, value: Any) -> str:
        return str(value).strip()


RECORD_TYPES: dict[WorkflowKind, type[WorkflowRecord]] = {
    WorkflowKind.REPORT_CARD: ReportCardRecord,
    WorkflowKind.CALENDAR: CalendarRecord,
    WorkflowKind.EXAM_RESULT: ExamResultRecord,
}


def record_from_data(data: dict[str, Any]) -> WorkflowRecord:
    """Rebuild a typed record from its serialized form."""
    record_type = RECORD_TYPES[WorkflowKind(data["kind"])]
    return record_type.model_validate(data)
