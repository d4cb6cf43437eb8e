"""Repository layer for database operations.

This module provides async repository implementations using SQLAlchemy 2.x
together with the store and directory adapters built on them.
"""

from school_portal.repositories.base import BaseRepository
from school_portal.repositories.directory import (
    ExamScheduleRepository,
    ParentAccountRepository,
    SqlDirectory,
    StudentRepository,
)
from school_portal.repositories.workflow import (
    InMemoryWorkflowStore,
    SqlWorkflowStore,
    WorkflowRecordRepository,
)
from school_portal.services.workflow.store import WorkflowStore

__all__ = [
    "BaseRepository",
    "WorkflowRecordRepository",
    "StudentRepository",
    "ParentAccountRepository",
    "ExamScheduleRepository",
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "SqlWorkflowStore",
    "SqlDirectory",
]
