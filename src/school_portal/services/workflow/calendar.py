"""School calendar approval workflow."""

import logging
from datetime import datetime
from uuid import uuid4

from school_portal.services.workflow.engine import ApprovalWorkflowEngine
from school_portal.services.workflow.errors import (
    EventsRequired,
    FeedbackRequired,
    InvalidTransition,
    NotFound,
)
from school_portal.services.workflow.schemas import (
    Actor,
    CalendarEvent,
    CalendarEventInput,
    CalendarRecord,
    CalendarStatus,
    normalize_term_label,
)

logger = logging.getLogger(__name__)

EVENT_ID_PREFIX = "event_"


def _new_event_id() -> str:
    return f"{EVENT_ID_PREFIX}{uuid4().hex[:12]}"


def _mark_edited(record: CalendarRecord) -> None:
    """Apply the side effects every content edit has.

    A live calendar stays live but needs republishing. Approved content that
    changes must be reviewed again. A pending submission is withdrawn. Only
    a published calendar gains the republish flag.
    """
    record.approval_notes = None
    if record.status == CalendarStatus.PUBLISHED:
        record.requires_republish = True
    elif record.status == CalendarStatus.APPROVED:
        record.submitted_at = None
        record.approved_at = None
        record.approved_by = None
    elif record.status == CalendarStatus.PENDING_APPROVAL:
        record.submitted_at = None


class CalendarWorkflow:
    """Edits, review and publication of the school calendar."""

    def __init__(self, engine: ApprovalWorkflowEngine, calendar_id: str = "school_calendar"):
        """Initialize calendar workflow.

        Args:
            engine: Engine configured with the calendar definition
            calendar_id: Record id of the singleton calendar
        """
        self.engine = engine
        self.calendar_id = calendar_id

    def _empty(self, now: datetime) -> CalendarRecord:
        return CalendarRecord(id=self.calendar_id)

    async def get_calendar(self) -> CalendarRecord:
        """The calendar, or an unsaved empty draft if nobody has edited it yet."""
        record = await self.engine.get(self.calendar_id)
        return record if record is not None else self._empty(datetime.now())

    async def upsert_event(
        self,
        event: CalendarEventInput,
        actor: Actor,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Add an event, or replace the one with the same id.

        Events stay sorted by start date.

        Raises:
            InvalidTransition: If the event already holds exactly these values
        """
        event_id = event.id or _new_event_id()
        fields = event.model_dump(exclude={"id"})

        def mutate(record: CalendarRecord, now: datetime) -> None:
            existing = next((e for e in record.events if e.id == event_id), None)
            if existing is not None and existing.model_dump(include=set(fields)) == fields:
                raise InvalidTransition("upsert_event", record.status.value, record.id)
            _mark_edited(record)
            if existing is not None:
                replacement = existing.model_copy(update={**fields, "updated_at": now})
                record.events = [
                    replacement if e.id == event_id else e for e in record.events
                ]
            else:
                record.events.append(
                    CalendarEvent(id=event_id, created_at=now, updated_at=now, **fields)
                )
            record.events.sort(key=lambda e: e.start_date)

        return await self.engine.run(
            self.calendar_id,
            "upsert_event",
            actor,
            expected_version=expected_version,
            create=self._empty,
            mutate=mutate,
            details={"event_id": event_id, "title": event.title},
        )

    async def remove_event(
        self,
        event_id: str,
        actor: Actor,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Remove an event.

        Raises:
            NotFound: If the calendar has no such event
        """

        def mutate(record: CalendarRecord, now: datetime) -> None:
            if not any(e.id == event_id for e in record.events):
                raise NotFound(f"Calendar event {event_id} not found", event_id=event_id)
            _mark_edited(record)
            record.events = [e for e in record.events if e.id != event_id]

        return await self.engine.run(
            self.calendar_id,
            "remove_event",
            actor,
            expected_version=expected_version,
            create=self._empty,
            mutate=mutate,
            details={"event_id": event_id},
        )

    async def set_details(
        self,
        actor: Actor,
        title: str | None = None,
        term: str | None = None,
        session: str | None = None,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Change the calendar's title, term or session.

        Blank values keep the current setting.

        Raises:
            InvalidTransition: If nothing would change
        """

        def mutate(record: CalendarRecord, now: datetime) -> None:
            next_title = title.strip() if title and title.strip() else record.title
            next_term = normalize_term_label(term) if term and term.strip() else record.term
            next_session = session.strip() if session and session.strip() else record.session
            if (next_title, next_term, next_session) == (
                record.title,
                record.term,
                record.session,
            ):
                raise InvalidTransition("set_details", record.status.value, record.id)
            _mark_edited(record)
            record.title = next_title
            record.term = next_term
            record.session = next_session

        return await self.engine.run(
            self.calendar_id,
            "set_details",
            actor,
            expected_version=expected_version,
            create=self._empty,
            mutate=mutate,
            details={"title": title, "term": term, "session": session},
        )

    async def submit_for_approval(
        self,
        actor: Actor,
        note: str | None = None,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Send the calendar for approval.

        Allowed from draft, or from published once it has been edited.

        Raises:
            InvalidTransition: From any other status
            EventsRequired: If the calendar has no events
        """
        cleaned = (note or "").strip() or None

        def mutate(record: CalendarRecord, now: datetime) -> None:
            if not record.events:
                raise EventsRequired(
                    "Add at least one event before submitting the calendar",
                    record_id=record.id,
                )
            record.submitted_at = now
            record.approval_notes = cleaned

        return await self.engine.run(
            self.calendar_id,
            "submit_for_approval",
            actor,
            expected_version=expected_version,
            mutate=mutate,
            details={"note": cleaned},
        )

    async def approve(
        self,
        actor: Actor,
        note: str | None = None,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Approve a calendar awaiting approval."""
        cleaned = (note or "").strip() or None

        def mutate(record: CalendarRecord, now: datetime) -> None:
            record.approved_at = now
            record.approved_by = actor.name
            record.approval_notes = cleaned

        return await self.engine.run(
            self.calendar_id,
            "approve",
            actor,
            expected_version=expected_version,
            mutate=mutate,
            details={"note": cleaned},
        )

    async def request_changes(
        self,
        actor: Actor,
        note: str,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Return a calendar awaiting approval to draft with a note.

        Raises:
            FeedbackRequired: If the note is blank
        """
        cleaned = (note or "").strip()

        def mutate(record: CalendarRecord, now: datetime) -> None:
            if not cleaned:
                raise FeedbackRequired(
                    "A note is required when requesting calendar changes",
                    record_id=record.id,
                )
            record.approval_notes = cleaned
            record.submitted_at = None

        return await self.engine.run(
            self.calendar_id,
            "request_changes",
            actor,
            expected_version=expected_version,
            mutate=mutate,
            details={"note": cleaned},
        )

    async def publish(
        self,
        actor: Actor,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Publish an approved calendar to the audiences its events target.

        Raises:
            InvalidTransition: Unless the calendar is approved
        """

        def mutate(record: CalendarRecord, now: datetime) -> None:
            record.published_at = now
            record.published_audiences = sorted(
                {event.audience for event in record.events}, key=lambda a: a.value
            )
            record.requires_republish = False

        record = await self.engine.run(
            self.calendar_id,
            "publish",
            actor,
            expected_version=expected_version,
            mutate=mutate,
        )
        logger.info(
            f"Published calendar {record.id} to "
            f"{', '.join(a.value for a in record.published_audiences)}"
        )
        return record

    async def reset(
        self,
        actor: Actor,
        expected_version: int | None = None,
    ) -> CalendarRecord:
        """Start the calendar over as an empty draft.

        The record is kept and its version bumped; its history stays intact.
        A published calendar stops being published.
        """

        def mutate(record: CalendarRecord, now: datetime) -> None:
            blank = self._empty(now)
            record.title = blank.title
            record.term = blank.term
            record.session = blank.session
            record.events = []
            record.submitted_at = None
            record.approved_at = None
            record.approved_by = None
            record.approval_notes = None
            record.published_at = None
            record.published_audiences = []
            record.requires_republish = False
            record.feedback = None

        record = await self.engine.run(
            self.calendar_id,
            "reset",
            actor,
            expected_version=expected_version,
            create=self._empty,
            mutate=mutate,
            notification={
                "title": "School calendar reset",
                "message": "The school calendar was cleared and returned to draft",
                "audience": ["admin", "super-admin"],
                "type": "warning",
            },
        )
        logger.warning(
            f"Calendar {record.id} reset by {actor.id} (v{record.version})",
            extra={"record_id": record.id, "actor_id": actor.id},
        )
        return record
