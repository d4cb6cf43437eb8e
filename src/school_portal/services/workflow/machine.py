"""Transition tables for the three approval workflows.

Each workflow is a ``WorkflowDefinition``: its status enum, the moves every
action allows, and the statuses that carry extra obligations (a reason, an
audience). The engine consults the definition; it never hard-codes a status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from school_portal.services.workflow.errors import (
    FeedbackRequired,
    InvalidTransition,
    RecipientsRequired,
)
from school_portal.services.workflow.schemas import (
    CalendarStatus,
    ExamResultStatus,
    ReportCardStatus,
    WorkflowKind,
    WorkflowRecord,
)

# Source key for "no record yet".
NEW = None


@dataclass(frozen=True)
class Transition:
    """Moves an action allows, keyed by source status.

    ``republish_only`` sources are allowed only while the record carries the
    republish flag.
    """

    moves: Mapping[str | None, str]
    republish_only: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def between(
        cls,
        sources: tuple[str | None, ...],
        target: str,
        republish_only: tuple[str, ...] = (),
    ) -> "Transition":
        return cls(
            moves={source: target for source in sources + republish_only},
            republish_only=frozenset(republish_only),
        )


@dataclass(frozen=True)
class WorkflowDefinition:
    """A parameterised approval state machine."""

    kind: WorkflowKind
    statuses: type[Enum]
    transitions: Mapping[str, Transition]
    event_name: str
    feedback_statuses: frozenset[str] = field(default_factory=frozenset)
    audience_statuses: frozenset[str] = field(default_factory=frozenset)

    def target_for(self, action: str, record: WorkflowRecord | None) -> Enum:
        """Status ``action`` leads to from the record's current status.

        @param action - Transition name
        @param record - Current record, or None if it does not exist yet
        @returns Target status
        @raises InvalidTransition if the action is unknown or not allowed here
        """
        current = _status_value(record.status) if record else NEW
        record_id = record.id if record else None

        transition = self.transitions.get(action)
        if transition is None or current not in transition.moves:
            raise InvalidTransition(action, current, record_id)
        if current in transition.republish_only and not record.requires_republish:
            raise InvalidTransition(action, current, record_id)
        return self.statuses(transition.moves[current])

    def check_invariants(self, record: WorkflowRecord) -> None:
        """Reject a record state that would break the workflow's obligations.

        @raises FeedbackRequired if the status needs a reason and none is set
        @raises RecipientsRequired if the status needs an audience and it is empty
        """
        status = _status_value(record.status)
        if status in self.feedback_statuses and not (record.feedback or "").strip():
            raise FeedbackRequired(
                f"A reason is required to move {record.id} to {status}",
                record_id=record.id,
            )
        if status in self.audience_statuses and not record.audience():
            raise RecipientsRequired(
                f"Record {record.id} cannot be {status} without an audience",
                record_id=record.id,
            )


def _status_value(status: Enum | str) -> str:
    return status.value if isinstance(status, Enum) else status


_RC = ReportCardStatus

REPORT_CARD_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.REPORT_CARD,
    statuses=ReportCardStatus,
    event_name="report_card_workflow.updated",
    transitions={
        "submit": Transition.between(
            (NEW, _RC.DRAFT.value, _RC.REVOKED.value),
            _RC.PENDING.value,
            republish_only=(_RC.APPROVED.value,),
        ),
        "approve": Transition.between((_RC.PENDING.value,), _RC.APPROVED.value),
        "revoke": Transition.between(
            (_RC.PENDING.value, _RC.APPROVED.value), _RC.REVOKED.value
        ),
        "reset": Transition.between(
            (_RC.PENDING.value, _RC.REVOKED.value), _RC.DRAFT.value
        ),
        "edit": Transition.between((_RC.APPROVED.value,), _RC.APPROVED.value),
    },
    feedback_statuses=frozenset({_RC.REVOKED.value}),
    audience_statuses=frozenset({_RC.APPROVED.value}),
)


_CAL = CalendarStatus

# Edits keep a published calendar live; anything not yet live goes back to draft.
_CALENDAR_EDIT = Transition(
    moves={
        NEW: _CAL.DRAFT.value,
        _CAL.DRAFT.value: _CAL.DRAFT.value,
        _CAL.PENDING_APPROVAL.value: _CAL.DRAFT.value,
        _CAL.APPROVED.value: _CAL.DRAFT.value,
        _CAL.PUBLISHED.value: _CAL.PUBLISHED.value,
    }
)

CALENDAR_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.CALENDAR,
    statuses=CalendarStatus,
    event_name="school_calendar.updated",
    transitions={
        "upsert_event": _CALENDAR_EDIT,
        "remove_event": _CALENDAR_EDIT,
        "set_details": _CALENDAR_EDIT,
        "submit_for_approval": Transition.between(
            (_CAL.DRAFT.value,),
            _CAL.PENDING_APPROVAL.value,
            republish_only=(_CAL.PUBLISHED.value,),
        ),
        "approve": Transition.between(
            (_CAL.PENDING_APPROVAL.value,), _CAL.APPROVED.value
        ),
        "request_changes": Transition.between(
            (_CAL.PENDING_APPROVAL.value,), _CAL.DRAFT.value
        ),
        "publish": Transition.between((_CAL.APPROVED.value,), _CAL.PUBLISHED.value),
        "reset": Transition.between(
            (
                NEW,
                _CAL.DRAFT.value,
                _CAL.PENDING_APPROVAL.value,
                _CAL.APPROVED.value,
                _CAL.PUBLISHED.value,
            ),
            _CAL.DRAFT.value,
        ),
    },
    audience_statuses=frozenset({_CAL.PUBLISHED.value}),
)


_EX = ExamResultStatus
_EXAM_SOURCES = (NEW, _EX.PENDING.value, _EX.PUBLISHED.value, _EX.WITHHELD.value)

EXAM_RESULT_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.EXAM_RESULT,
    statuses=ExamResultStatus,
    event_name="exam_results.updated",
    transitions={
        "record": Transition.between(_EXAM_SOURCES, _EX.PENDING.value),
        "record_and_publish": Transition.between(_EXAM_SOURCES, _EX.PUBLISHED.value),
        "publish": Transition.between((_EX.PENDING.value,), _EX.PUBLISHED.value),
        "withhold": Transition.between(
            (_EX.PENDING.value, _EX.PUBLISHED.value), _EX.WITHHELD.value
        ),
        "reinstate": Transition.between((_EX.WITHHELD.value,), _EX.PENDING.value),
    },
    feedback_statuses=frozenset({_EX.WITHHELD.value}),
    audience_statuses=frozenset({_EX.PUBLISHED.value}),
)
