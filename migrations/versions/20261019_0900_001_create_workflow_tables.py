"""Create workflow and directory tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the following tables:
- workflow_records: Report card, calendar and exam result workflow records
- students: Student profiles with guardian contact
- parent_accounts: Parent accounts and their linked students
- exam_schedules: Exams that results are recorded against
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ========================================
    # 1. workflow_records table
    # ========================================
    op.create_table(
        "workflow_records",
        # Primary key
        sa.Column("id", sa.String(255), nullable=False),
        # Filter columns
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("class_name", sa.String(100), nullable=True),
        sa.Column("term", sa.String(50), nullable=True),
        sa.Column("session", sa.String(20), nullable=True),
        sa.Column("exam_id", sa.String(100), nullable=True),
        sa.Column("student_id", sa.String(100), nullable=True),
        # Optimistic concurrency
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        # Serialized record
        sa.Column("data", sa.JSON(), nullable=False),
        *_timestamps(),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "kind IN ('report_card', 'calendar', 'exam_result')",
            name="ck_workflow_kind",
        ),
        sa.CheckConstraint("version >= 1", name="ck_workflow_version"),
    )
    op.create_index("ix_workflow_records_kind", "workflow_records", ["kind"])
    op.create_index("ix_workflow_records_status", "workflow_records", ["status"])
    op.create_index("ix_workflow_records_exam_id", "workflow_records", ["exam_id"])
    op.create_index("idx_workflow_kind_class", "workflow_records", ["kind", "class_name"])
    op.create_index("idx_workflow_period", "workflow_records", ["kind", "term", "session"])

    # ========================================
    # 2. students table
    # ========================================
    op.create_table(
        "students",
        sa.Column("id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("class_name", sa.String(100), nullable=True),
        sa.Column("parent_name", sa.String(200), nullable=True),
        sa.Column("parent_email", sa.String(255), nullable=True),
        sa.Column("guardian_phone", sa.String(50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_students_class_name", "students", ["class_name"])

    # ========================================
    # 3. parent_accounts table
    # ========================================
    op.create_table(
        "parent_accounts",
        sa.Column("id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("student_ids", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ========================================
    # 4. exam_schedules table
    # ========================================
    op.create_table(
        "exam_schedules",
        sa.Column("id", sa.String(100), nullable=False),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("class_id", sa.String(100), nullable=True),
        sa.Column("class_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("term", sa.String(50), nullable=False),
        sa.Column("session", sa.String(20), nullable=False),
        sa.Column("exam_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("exam_schedules")
    op.drop_table("parent_accounts")
    op.drop_index("ix_students_class_name", table_name="students")
    op.drop_table("students")
    op.drop_index("idx_workflow_period", table_name="workflow_records")
    op.drop_index("idx_workflow_kind_class", table_name="workflow_records")
    op.drop_index("ix_workflow_records_exam_id", table_name="workflow_records")
    op.drop_index("ix_workflow_records_status", table_name="workflow_records")
    op.drop_index("ix_workflow_records_kind", table_name="workflow_records")
    op.drop_table("workflow_records")
