"""School calendar API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from school_portal.api.deps import ADMIN_ROLES, CurrentActor, Services, require_roles
from school_portal.services.workflow.schemas import (
    Actor,
    CalendarEventInput,
    CalendarRecord,
)

router = APIRouter(prefix="/calendar", tags=["Calendar"])

Admin = Annotated[Actor, Depends(require_roles(*ADMIN_ROLES))]
ExpectedVersion = Annotated[
    int | None, Query(ge=0, description="Version the client last saw")
]


class CalendarDetailsRequest(BaseModel):
    """Change the calendar's title, term or session."""

    title: str | None = Field(None, max_length=200)
    term: str | None = None
    session: str | None = None


class CalendarNoteRequest(BaseModel):
    """A note attached to a review step."""

    note: str | None = Field(None, max_length=2000)


@router.get("", response_model=CalendarRecord)
async def get_calendar(actor: CurrentActor, services: Services) -> CalendarRecord:
    """Get the school calendar."""
    return await services.calendar.get_calendar()


@router.post("/events", response_model=CalendarRecord)
async def upsert_calendar_event(
    event: CalendarEventInput,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Add an event, or replace the event with the given id.

    Requires: admin or super_admin role
    """
    return await services.calendar.upsert_event(
        event, actor, expected_version=expected_version
    )


@router.delete("/events/{event_id}", response_model=CalendarRecord)
async def remove_calendar_event(
    event_id: str,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Remove an event from the calendar."""
    return await services.calendar.remove_event(
        event_id, actor, expected_version=expected_version
    )


@router.patch("", response_model=CalendarRecord)
async def update_calendar_details(
    request: CalendarDetailsRequest,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Change the calendar's title, term or session."""
    return await services.calendar.set_details(
        actor,
        title=request.title,
        term=request.term,
        session=request.session,
        expected_version=expected_version,
    )


@router.post("/submit", response_model=CalendarRecord)
async def submit_calendar(
    request: CalendarNoteRequest,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Send the calendar for approval."""
    return await services.calendar.submit_for_approval(
        actor, note=request.note, expected_version=expected_version
    )


@router.post("/approve", response_model=CalendarRecord)
async def approve_calendar(
    request: CalendarNoteRequest,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Approve a calendar awaiting approval."""
    return await services.calendar.approve(
        actor, note=request.note, expected_version=expected_version
    )


@router.post("/request-changes", response_model=CalendarRecord)
async def request_calendar_changes(
    request: CalendarNoteRequest,
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Return a calendar awaiting approval to draft. A note is required."""
    return await services.calendar.request_changes(
        actor, request.note or "", expected_version=expected_version
    )


@router.post("/publish", response_model=CalendarRecord)
async def publish_calendar(
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Publish an approved calendar."""
    return await services.calendar.publish(actor, expected_version=expected_version)


@router.post("/reset", response_model=CalendarRecord)
async def reset_calendar(
    actor: Admin,
    services: Services,
    expected_version: ExpectedVersion = None,
) -> CalendarRecord:
    """Clear the calendar back to an empty draft.

    Requires: admin or super_admin role
    """
    return await services.calendar.reset(actor, expected_version=expected_version)
