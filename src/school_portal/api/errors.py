"""Mapping of workflow errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from school_portal.services.workflow.errors import ResultValidationError, WorkflowError

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[str, int] = {
    "invalid_transition": status.HTTP_409_CONFLICT,
    "stale_version": status.HTTP_409_CONFLICT,
    "feedback_required": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "recipients_required": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "events_required": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_results": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "upstream_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(error: WorkflowError) -> int:
    """HTTP status for a workflow error; 400 for codes without a mapping."""
    return ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST)


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Render a workflow error as ``{"detail", "code"}``."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        f"{request.method} {request.url.path} failed with {exc.code}: {exc.message}",
        extra={"error_code": exc.code, "status_code": status_code},
    )

    content: dict = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ResultValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the workflow error handler on an application."""
    app.add_exception_handler(WorkflowError, workflow_error_handler)
