"""Schemas for the workflow audit trail."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditCategory(str, Enum):
    """Categories of audit events."""

    REPORT_CARD = "REPORT_CARD"  # Report card reviews
    CALENDAR = "CALENDAR"  # School calendar edits and approvals
    EXAM_RESULT = "EXAM_RESULT"  # Exam result publication
    SYSTEM = "SYSTEM"  # Startup, shutdown


class AuditAction(str, Enum):
    """Specific audit actions."""

    # Report cards
    REPORT_CARD_SUBMITTED = "REPORT_CARD_SUBMITTED"
    REPORT_CARD_APPROVED = "REPORT_CARD_APPROVED"
    REPORT_CARD_REVOKED = "REPORT_CARD_REVOKED"
    REPORT_CARD_RESET = "REPORT_CARD_RESET"
    REPORT_CARD_EDITED = "REPORT_CARD_EDITED"

    # Calendar
    CALENDAR_EDITED = "CALENDAR_EDITED"
    CALENDAR_SUBMITTED = "CALENDAR_SUBMITTED"
    CALENDAR_APPROVED = "CALENDAR_APPROVED"
    CALENDAR_CHANGES_REQUESTED = "CALENDAR_CHANGES_REQUESTED"
    CALENDAR_PUBLISHED = "CALENDAR_PUBLISHED"
    CALENDAR_RESET = "CALENDAR_RESET"

    # Exam results
    RESULT_RECORDED = "RESULT_RECORDED"
    RESULT_PUBLISHED = "RESULT_PUBLISHED"
    RESULT_WITHHELD = "RESULT_WITHHELD"
    RESULT_REINSTATED = "RESULT_REINSTATED"

    # Rejected requests
    TRANSITION_REJECTED = "TRANSITION_REJECTED"

    # System
    SYSTEM_STARTUP = "SYSTEM_STARTUP"
    SYSTEM_SHUTDOWN = "SYSTEM_SHUTDOWN"


class AuditSeverity(str, Enum):
    """Severity levels for audit events."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AuditEntry(BaseModel):
    """Audit log entry."""

    entry_id: str = Field(..., description="Unique entry ID")
    timestamp: datetime = Field(..., description="Event timestamp")
    category: AuditCategory = Field(..., description="Event category")
    action: AuditAction = Field(..., description="Specific action")
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO, description="Event severity"
    )

    # Actor information
    actor_id: str | None = Field(None, description="User ID that triggered")
    actor_name: str | None = Field(None, description="User display name")
    actor_role: str | None = Field(None, description="Portal role of the actor")

    # Resource information
    resource_id: str | None = Field(None, description="Workflow record ID")
    from_status: str | None = Field(None, description="Status before the action")
    to_status: str | None = Field(None, description="Status after the action")
    version: int | None = Field(None, description="Record version after the action")

    # Event details
    description: str = Field(..., description="Human-readable description")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional data")

    # Outcome
    success: bool = Field(default=True, description="Whether action succeeded")
    error_code: str | None = Field(None, description="Workflow error code if rejected")
    error_message: str | None = Field(None, description="Error if failed")


class AuditQuery(BaseModel):
    """Query parameters for audit log search."""

    start_time: datetime | None = Field(None, description="Start of time range")
    end_time: datetime | None = Field(None, description="End of time range")
    categories: list[AuditCategory] | None = Field(None, description="Filter categories")
    actions: list[AuditAction] | None = Field(None, description="Filter actions")
    actor_id: str | None = Field(None, description="Filter by actor")
    resource_id: str | None = Field(None, description="Filter by record ID")
    success: bool | None = Field(None, description="Filter by success/failure")
    limit: int = Field(default=100, ge=1, le=1000, description="Max results")
    offset: int = Field(default=0, ge=0, description="Pagination offset")


class AuditStats(BaseModel):
    """Audit statistics."""

    total_entries: int = Field(..., description="Total entries")
    entries_by_category: dict[str, int] = Field(..., description="Count by category")
    entries_by_action: dict[str, int] = Field(..., description="Count by action")
    success_rate: float = Field(..., description="Success rate percentage")
    unique_actors: int = Field(..., description="Unique actor count")
    time_range_start: datetime | None = Field(None, description="Earliest entry")
    time_range_end: datetime | None = Field(None, description="Latest entry")
