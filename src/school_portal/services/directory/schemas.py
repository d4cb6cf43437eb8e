"""Student, parent and exam directory schemas."""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

STUDENT_ID_PREFIX = "student_"


def canonical_student_id(value: Any) -> str:
    """Normalise a student id for comparison.

    "Student_007", " 7 " and 7 all become "7".
    """
    text = str(value).strip().lower()
    if text.startswith(STUDENT_ID_PREFIX):
        text = text[len(STUDENT_ID_PREFIX):]
    if text.isdigit():
        text = str(int(text))
    return text


class _DirectoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before", check_fields=False)
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, str)) and str(value).strip():
            return str(value).strip()
        return value


class StudentProfile(_DirectoryEntry):
    """A student as the directory knows them."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    class_name: str | None = Field(None, alias="className")
    parent_name: str | None = Field(None, alias="parentName")
    parent_email: str | None = Field(None, alias="parentEmail")
    guardian_phone: str | None = Field(None, alias="guardianPhone")


class ParentAccount(_DirectoryEntry):
    """A parent login linked to one or more students."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str | None = None
    phone: str | None = None
    student_ids: list[str] = Field(default_factory=list, alias="studentIds")

    @field_validator("student_ids", mode="before")
    @classmethod
    def _coerce_student_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    def is_linked_to(self, student_id: str) -> bool:
        """Whether this account is linked to the student, tolerating id formats."""
        target = canonical_student_id(student_id)
        return any(canonical_student_id(linked) == target for linked in self.student_ids)


class ExamSchedule(_DirectoryEntry):
    """Scheduled exam that results are recorded against."""

    id: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    class_id: str | None = Field(None, alias="classId")
    class_name: str = Field(default="", alias="className")
    term: str = Field(..., min_length=1)
    session: str = Field(..., min_length=1)
    exam_date: date | None = Field(None, alias="examDate")
