"""Report card review API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from school_portal.api.deps import ADMIN_ROLES, STAFF_ROLES, Services, require_roles
from school_portal.services.workflow.schemas import (
    Actor,
    Recipient,
    ReportCardBatchReset,
    ReportCardBatchSubmit,
    ReportCardRecord,
    ReportCardScope,
    ReportCardStatus,
    WorkflowSummary,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/report-cards", tags=["Report Cards"])

Staff = Annotated[Actor, Depends(require_roles(*STAFF_ROLES))]
Admin = Annotated[Actor, Depends(require_roles(*ADMIN_ROLES))]


# Request models
class VersionedRequest(BaseModel):
    """Scope plus the version the client last saw."""

    scope: ReportCardScope
    expected_version: int | None = Field(None, ge=0, description="Last seen version")


class SubmitRequest(VersionedRequest):
    """Submit one student's report card."""

    student_name: str | None = Field(None, description="Display name for the record")


class ApproveRequest(VersionedRequest):
    """Approve and publish a report card."""

    recipients: list[Recipient] | None = Field(
        None, description="Explicit audience; resolved from the directory when omitted"
    )


class RevokeRequest(VersionedRequest):
    """Send a report card back to its teacher."""

    feedback: str = Field(..., description="What needs correcting")


class PeriodOverview(BaseModel):
    """Records for a term and session with their roll-up status."""

    summary: WorkflowSummary
    records: list[ReportCardRecord]


# Endpoints
@router.get("", response_model=list[ReportCardRecord])
async def list_report_cards(
    actor: Staff,
    services: Services,
    status: ReportCardStatus | None = Query(None, description="Filter by status"),
    class_name: str | None = Query(None, description="Filter by class"),
) -> list[ReportCardRecord]:
    """List submitted report cards.

    Drafts are included only when asked for by status.

    Requires: teacher, admin or super_admin role
    """
    return await services.report_cards.query_by_status_and_class(
        status=status, class_name=class_name
    )


@router.get("/period", response_model=PeriodOverview)
async def get_period_overview(
    actor: Staff,
    services: Services,
    term: str = Query(..., description="Term label"),
    session: str = Query(..., description="Academic session"),
) -> PeriodOverview:
    """Records for a term and session, rolled up into one status."""
    records = await services.report_cards.records_for_period(term, session)
    return PeriodOverview(
        summary=services.report_cards.summarize(records),
        records=records,
    )


@router.get("/record", response_model=ReportCardRecord)
async def get_report_card(
    actor: Staff,
    services: Services,
    scope: Annotated[ReportCardScope, Query()],
) -> ReportCardRecord:
    """Get the workflow record of one scope."""
    record = await services.report_cards.get_record(scope)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No report card record {scope.record_id}",
        )
    return record


@router.get("/access")
async def check_parent_access(
    services: Services,
    scope: Annotated[ReportCardScope, Query()],
    parent_id: str = Query(..., min_length=1, description="Parent account ID"),
) -> dict:
    """Whether a parent may view a published report card."""
    allowed = await services.report_cards.has_access(parent_id, scope)
    return {"record_id": scope.record_id, "parent_id": parent_id, "allowed": allowed}


@router.post("/submit", response_model=ReportCardRecord)
async def submit_report_card(
    request: SubmitRequest,
    actor: Staff,
    services: Services,
) -> ReportCardRecord:
    """Submit a report card for review.

    Requires: teacher, admin or super_admin role
    """
    return await services.report_cards.submit(
        request.scope,
        actor,
        student_name=request.student_name,
        expected_version=request.expected_version,
    )


@router.post("/submit-batch", response_model=list[ReportCardRecord])
async def submit_class(
    batch: ReportCardBatchSubmit,
    actor: Staff,
    services: Services,
) -> list[ReportCardRecord]:
    """Submit a whole class for one subject; all students or none."""
    return await services.report_cards.submit_batch(batch, actor)


@router.post("/approve", response_model=ReportCardRecord)
async def approve_report_card(
    request: ApproveRequest,
    actor: Admin,
    services: Services,
) -> ReportCardRecord:
    """Approve a pending report card and publish it to parents.

    Requires: admin or super_admin role
    """
    return await services.report_cards.approve_and_publish(
        request.scope,
        actor,
        recipients=request.recipients,
        expected_version=request.expected_version,
    )


@router.post("/revoke", response_model=ReportCardRecord)
async def revoke_report_card(
    request: RevokeRequest,
    actor: Admin,
    services: Services,
) -> ReportCardRecord:
    """Return a report card to its teacher with feedback.

    Requires: admin or super_admin role
    """
    return await services.report_cards.revoke(
        request.scope,
        actor,
        request.feedback,
        expected_version=request.expected_version,
    )


@router.post("/reset", response_model=ReportCardRecord)
async def reset_report_card(
    request: VersionedRequest,
    actor: Staff,
    services: Services,
) -> ReportCardRecord:
    """Withdraw a pending or revoked report card back to draft."""
    return await services.report_cards.reset(
        request.scope, actor, expected_version=request.expected_version
    )


@router.post("/mark-edited", response_model=ReportCardRecord)
async def mark_report_card_edited(
    scope: ReportCardScope,
    actor: Staff,
    services: Services,
) -> ReportCardRecord:
    """Flag that the scores behind an approved report card changed."""
    return await services.report_cards.mark_content_edited(scope, actor)


@router.post("/reset-batch", response_model=list[ReportCardRecord])
async def reset_class_submission(
    request: ReportCardBatchReset,
    actor: Staff,
    services: Services,
) -> list[ReportCardRecord]:
    """Withdraw a teacher's whole class submission for one subject.

    Teachers may only withdraw their own submissions; administrators may
    withdraw anyone's.
    """
    teacher_id = request.teacher_id or actor.id
    if teacher_id != actor.id and actor.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can withdraw another teacher's submission",
        )
    return await services.report_cards.reset_batch(
        teacher_id,
        request.class_name,
        request.subject,
        request.term,
        request.session,
        actor,
    )
