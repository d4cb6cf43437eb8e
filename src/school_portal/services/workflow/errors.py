"""Workflow error taxonomy.

Every error is a ``ValueError`` so callers that only care about "the request
was wrong" can keep catching that; the ``code`` attribute tells the kinds apart.
"""

from typing import Any


class WorkflowError(ValueError):
    """Base class for workflow failures. Nothing has been written when raised."""

    code = "workflow_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidTransition(WorkflowError):
    """Requested action is not reachable from the record's current status."""

    code = "invalid_transition"

    def __init__(self, action: str, current: str | None, record_id: str | None = None):
        super().__init__(
            f"Cannot {action} record {record_id or '<new>'} from status {current or '<none>'}",
            action=action,
            current=current,
            record_id=record_id,
        )
        self.action = action
        self.current = current


class FeedbackRequired(WorkflowError):
    """A revoke, withhold or change request came without a reason."""

    code = "feedback_required"


class RecipientsRequired(WorkflowError):
    """A publish would leave the artifact with nobody to show it to."""

    code = "recipients_required"


class EventsRequired(WorkflowError):
    """A calendar was submitted for approval without any events."""

    code = "events_required"


class ResultValidationError(WorkflowError):
    """One or more exam result rows failed validation; the batch was rejected."""

    code = "invalid_results"

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors), errors=errors)
        self.errors = errors


class StaleVersion(WorkflowError):
    """The record changed since the caller last read it."""

    code = "stale_version"

    def __init__(self, record_id: str, expected: int | None, actual: int | None):
        super().__init__(
            f"Record {record_id} is at version {actual}, expected {expected}",
            record_id=record_id,
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


class NotFound(WorkflowError):
    """No record exists where the operation needs one."""

    code = "not_found"


class UpstreamFailure(WorkflowError):
    """The record store or the directory could not be reached."""

    code = "upstream_failure"
