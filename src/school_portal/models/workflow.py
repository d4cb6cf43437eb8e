"""Workflow record model."""

from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from school_portal.models.base import Base, TimestampMixin


class WorkflowRecordRow(Base, TimestampMixin):
    """Workflow records table.

    The full record lives in ``data``; the remaining columns duplicate the
    fields that queries filter on.
    """

    __tablename__ = "workflow_records"

    # Primary key
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Filter columns
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    class_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    term: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    session: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    exam_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    student_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Serialized record
    data: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("idx_workflow_kind_class", "kind", "class_name"),
        Index("idx_workflow_period", "kind", "term", "session"),
        CheckConstraint(
            "kind IN ('report_card', 'calendar', 'exam_result')",
            name="ck_workflow_kind",
        ),
        CheckConstraint("version >= 1", name="ck_workflow_version"),
    )
