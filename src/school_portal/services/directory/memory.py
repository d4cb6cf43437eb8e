"""In-memory directory backed by validated entries."""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from school_portal.services.directory.schemas import (
    ExamSchedule,
    ParentAccount,
    StudentProfile,
    canonical_student_id,
)

logger = logging.getLogger(__name__)


class DirectoryLoadError(ValueError):
    """Raw directory data contained malformed entries."""

    def __init__(self, errors: list[str]):
        super().__init__("Invalid directory entries: " + "; ".join(errors))
        self.errors = errors


class Directory(Protocol):
    """Read-only lookups used by recipient resolution and exam results."""

    async def lookup_student(self, student_id: str) -> StudentProfile | None: ...

    async def lookup_parent_accounts(self, student_id: str) -> list[ParentAccount]: ...

    async def lookup_exam(self, exam_id: str) -> ExamSchedule | None: ...


class InMemoryDirectory:
    """Directory held in process memory.

    Entries are validated on the way in; lookups never see malformed data.
    """

    def __init__(
        self,
        students: list[StudentProfile] | None = None,
        parents: list[ParentAccount] | None = None,
        exams: list[ExamSchedule] | None = None,
    ):
        self._students: dict[str, StudentProfile] = {}
        self._parents: list[ParentAccount] = []
        self._exams: dict[str, ExamSchedule] = {}
        for student in students or []:
            self.add_student(student)
        for parent in parents or []:
            self.add_parent(parent)
        for exam in exams or []:
            self.add_exam(exam)

    def add_student(self, student: StudentProfile) -> None:
        self._students[canonical_student_id(student.id)] = student

    def add_parent(self, parent: ParentAccount) -> None:
        self._parents = [p for p in self._parents if p.id != parent.id]
        self._parents.append(parent)

    def add_exam(self, exam: ExamSchedule) -> None:
        self._exams[exam.id] = exam

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InMemoryDirectory":
        """Build a directory from raw ``students``/``parents``/``exams`` lists.

        @param payload - Decoded JSON with camelCase or snake_case keys
        @returns Populated directory
        @raises DirectoryLoadError listing every malformed entry
        """
        errors: list[str] = []
        parsed: dict[str, list[Any]] = {"students": [], "parents": [], "exams": []}
        schemas = {"students": StudentProfile, "parents": ParentAccount, "exams": ExamSchedule}

        for section, schema in schemas.items():
            entries = payload.get(section, [])
            if not isinstance(entries, list):
                errors.append(f"{section}: expected a list")
                continue
            for index, entry in enumerate(entries):
                try:
                    parsed[section].append(schema.model_validate(entry))
                except ValidationError as e:
                    fields = ", ".join(
                        ".".join(str(part) for part in err["loc"]) for err in e.errors()
                    )
                    errors.append(f"{section}[{index}]: invalid {fields}")

        if errors:
            raise DirectoryLoadError(errors)

        logger.info(
            f"Loaded directory: {len(parsed['students'])} students, "
            f"{len(parsed['parents'])} parents, {len(parsed['exams'])} exams"
        )
        return cls(parsed["students"], parsed["parents"], parsed["exams"])

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryDirectory":
        """Load a directory from a JSON seed file."""
        with open(path, encoding="utf-8") as f:
            return cls.from_payload(json.load(f))

    async def lookup_student(self, student_id: str) -> StudentProfile | None:
        return self._students.get(canonical_student_id(student_id))

    async def lookup_parent_accounts(self, student_id: str) -> list[ParentAccount]:
        return [parent for parent in self._parents if parent.is_linked_to(student_id)]

    async def lookup_exam(self, exam_id: str) -> ExamSchedule | None:
        return self._exams.get(exam_id)
