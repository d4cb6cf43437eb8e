"""Approval workflow module."""

from school_portal.services.workflow.calendar import CalendarWorkflow
from school_portal.services.workflow.engine import ApprovalWorkflowEngine, TransitionStep
from school_portal.services.workflow.errors import (
    EventsRequired,
    FeedbackRequired,
    InvalidTransition,
    NotFound,
    RecipientsRequired,
    ResultValidationError,
    StaleVersion,
    UpstreamFailure,
    WorkflowError,
)
from school_portal.services.workflow.exam_results import ExamResultWorkflow
from school_portal.services.workflow.machine import (
    CALENDAR_WORKFLOW,
    EXAM_RESULT_WORKFLOW,
    REPORT_CARD_WORKFLOW,
    Transition,
    WorkflowDefinition,
)
from school_portal.services.workflow.recipients import RecipientResolver
from school_portal.services.workflow.report_cards import ReportCardWorkflow
from school_portal.services.workflow.services import (
    WorkflowServices,
    build_workflow_services,
)
from school_portal.services.workflow.store import WorkflowStore

__all__ = [
    # Engine
    "ApprovalWorkflowEngine",
    "TransitionStep",
    "Transition",
    "WorkflowDefinition",
    "REPORT_CARD_WORKFLOW",
    "CALENDAR_WORKFLOW",
    "EXAM_RESULT_WORKFLOW",
    "WorkflowStore",
    # Flavours
    "ReportCardWorkflow",
    "CalendarWorkflow",
    "ExamResultWorkflow",
    "RecipientResolver",
    "WorkflowServices",
    "build_workflow_services",
    # Errors
    "WorkflowError",
    "InvalidTransition",
    "FeedbackRequired",
    "RecipientsRequired",
    "EventsRequired",
    "ResultValidationError",
    "StaleVersion",
    "NotFound",
    "UpstreamFailure",
]
