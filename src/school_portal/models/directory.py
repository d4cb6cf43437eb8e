"""Directory models: students, parent accounts and exam schedules."""

from datetime import date
from typing import Optional

from sqlalchemy import JSON, Date, String
from sqlalchemy.orm import Mapped, mapped_column

from school_portal.models.base import Base, TimestampMixin


class StudentRow(Base, TimestampMixin):
    """Students table."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    class_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    parent_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    parent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    guardian_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class ParentAccountRow(Base, TimestampMixin):
    """Parent accounts table."""

    __tablename__ = "parent_accounts"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    student_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class ExamScheduleRow(Base, TimestampMixin):
    """Exam schedules table."""

    __tablename__ = "exam_schedules"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    class_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    class_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    term: Mapped[str] = mapped_column(String(50), nullable=False)
    session: Mapped[str] = mapped_column(String(20), nullable=False)
    exam_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
