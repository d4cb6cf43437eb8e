"""Database models for the school portal."""

from school_portal.models.base import Base, TimestampMixin
from school_portal.models.directory import ExamScheduleRow, ParentAccountRow, StudentRow
from school_portal.models.workflow import WorkflowRecordRow

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Workflow
    "WorkflowRecordRow",
    # Directory
    "StudentRow",
    "ParentAccountRow",
    "ExamScheduleRow",
]
