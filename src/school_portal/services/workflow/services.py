"""Assembly of the three workflow services around shared collaborators."""

from dataclasses import dataclass

from school_portal.core.config import Settings
from school_portal.services.audit.logger import AuditLogger
from school_portal.services.directory.memory import Directory
from school_portal.services.grading.calculator import GradeCalculator
from school_portal.services.notifications.broadcaster import ChangeBroadcaster, log_notification
from school_portal.services.workflow.calendar import CalendarWorkflow
from school_portal.services.workflow.engine import ApprovalWorkflowEngine
from school_portal.services.workflow.exam_results import ExamResultWorkflow
from school_portal.services.workflow.machine import (
    CALENDAR_WORKFLOW,
    EXAM_RESULT_WORKFLOW,
    REPORT_CARD_WORKFLOW,
)
from school_portal.services.workflow.recipients import RecipientResolver
from school_portal.services.workflow.report_cards import ReportCardWorkflow
from school_portal.services.workflow.store import WorkflowStore


@dataclass
class WorkflowServices:
    """The workflow services an application instance works with."""

    report_cards: ReportCardWorkflow
    calendar: CalendarWorkflow
    exam_results: ExamResultWorkflow
    store: WorkflowStore
    directory: Directory
    broadcaster: ChangeBroadcaster
    audit_logger: AuditLogger


def build_workflow_services(
    settings: Settings,
    store: WorkflowStore,
    directory: Directory,
    *,
    broadcaster: ChangeBroadcaster | None = None,
    audit_logger: AuditLogger | None = None,
) -> WorkflowServices:
    """Wire engines and flavour services to one store and directory.

    @param settings - Application settings
    @param store - Workflow record store
    @param directory - Student, parent and exam lookups
    @param broadcaster - Change broadcaster (a new one if None)
    @param audit_logger - Audit logger (a new one if None)
    @returns Assembled services
    """
    broadcaster = broadcaster or ChangeBroadcaster()
    audit_logger = audit_logger or AuditLogger()
    for definition in (REPORT_CARD_WORKFLOW, CALENDAR_WORKFLOW, EXAM_RESULT_WORKFLOW):
        broadcaster.subscribe(definition.event_name, log_notification, priority=-10)

    def engine_for(definition):
        return ApprovalWorkflowEngine(
            definition,
            store,
            broadcaster=broadcaster,
            audit_logger=audit_logger,
            enforce_version_check=settings.enforce_version_check,
        )

    return WorkflowServices(
        report_cards=ReportCardWorkflow(
            engine_for(REPORT_CARD_WORKFLOW), RecipientResolver(directory)
        ),
        calendar=CalendarWorkflow(engine_for(CALENDAR_WORKFLOW), settings.calendar_id),
        exam_results=ExamResultWorkflow(
            engine_for(EXAM_RESULT_WORKFLOW),
            directory,
            GradeCalculator(settings.assessment_maximums),
        ),
        store=store,
        directory=directory,
        broadcaster=broadcaster,
        audit_logger=audit_logger,
    )
