"""Student, parent and exam directory module."""

from school_portal.services.directory.memory import (
    Directory,
    DirectoryLoadError,
    InMemoryDirectory,
)
from school_portal.services.directory.schemas import (
    ExamSchedule,
    ParentAccount,
    StudentProfile,
    canonical_student_id,
)

__all__ = [
    "Directory",
    "DirectoryLoadError",
    "InMemoryDirectory",
    "ExamSchedule",
    "ParentAccount",
    "StudentProfile",
    "canonical_student_id",
]
