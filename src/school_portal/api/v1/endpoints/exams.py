"""Exam result API endpoints."""

from dataclasses import asdict
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from school_portal.api.deps import ADMIN_ROLES, STAFF_ROLES, Services, require_roles
from school_portal.services.workflow.schemas import (
    Actor,
    ExamResultInput,
    ExamResultRecord,
    ExamResultStatus,
)

router = APIRouter(prefix="/exams", tags=["Exam Results"])

Staff = Annotated[Actor, Depends(require_roles(*STAFF_ROLES))]
Admin = Annotated[Actor, Depends(require_roles(*ADMIN_ROLES))]


class SaveResultsRequest(BaseModel):
    """Scores for every student sitting an exam."""

    results: list[ExamResultInput] = Field(..., min_length=1)
    publish: bool = Field(default=False, description="Publish every row immediately")


class WithholdRequest(BaseModel):
    """Hold back a student's result."""

    reason: str = Field(..., description="Why the result is withheld")
    expected_version: int | None = Field(None, ge=0)


@router.get("/{exam_id}/results", response_model=list[ExamResultRecord])
async def list_exam_results(
    exam_id: str,
    actor: Staff,
    services: Services,
    status: ExamResultStatus | None = Query(None, description="Filter by status"),
) -> list[ExamResultRecord]:
    """List results of an exam, best position first."""
    return await services.exam_results.list_results(exam_id, status=status)


@router.get("/{exam_id}/results/summary")
async def get_grade_summary(
    exam_id: str,
    actor: Staff,
    services: Services,
) -> dict[str, Any]:
    """Grade distribution and pass rate of the published results."""
    summary = await services.exam_results.grade_summary(exam_id)
    return {"exam_id": exam_id, **asdict(summary)}


@router.post("/{exam_id}/results", response_model=list[ExamResultRecord])
async def save_exam_results(
    exam_id: str,
    request: SaveResultsRequest,
    actor: Staff,
    services: Services,
) -> list[ExamResultRecord]:
    """Record scores for an exam; every row is validated before anything is saved.

    Requires: teacher, admin or super_admin role
    """
    return await services.exam_results.save_results(
        exam_id, request.results, actor, auto_publish=request.publish
    )


@router.post("/{exam_id}/results/publish", response_model=list[ExamResultRecord])
async def publish_exam_results(
    exam_id: str,
    actor: Admin,
    services: Services,
) -> list[ExamResultRecord]:
    """Publish every pending result of an exam. Returns the rows published now."""
    return await services.exam_results.publish_all(exam_id, actor)


@router.post(
    "/{exam_id}/results/{student_id}/withhold", response_model=ExamResultRecord
)
async def withhold_exam_result(
    exam_id: str,
    student_id: str,
    request: WithholdRequest,
    actor: Admin,
    services: Services,
) -> ExamResultRecord:
    """Withhold one student's result."""
    return await services.exam_results.withhold(
        exam_id,
        student_id,
        actor,
        request.reason,
        expected_version=request.expected_version,
    )


@router.post(
    "/{exam_id}/results/{student_id}/reinstate", response_model=ExamResultRecord
)
async def reinstate_exam_result(
    exam_id: str,
    student_id: str,
    actor: Admin,
    services: Services,
    expected_version: int | None = Query(None, ge=0),
) -> ExamResultRecord:
    """Return a withheld result to pending."""
    return await services.exam_results.reinstate(
        exam_id, student_id, actor, expected_version=expected_version
    )
