"""Audit API endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from school_portal.api.deps import ADMIN_ROLES, Services, require_roles
from school_portal.services.audit import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    AuditQuery,
    AuditStats,
)
from school_portal.services.workflow.schemas import Actor

router = APIRouter(prefix="/audit", tags=["Audit"])

Admin = Annotated[Actor, Depends(require_roles(*ADMIN_ROLES))]


@router.get("/entries", response_model=list[AuditEntry])
async def list_audit_entries(
    actor: Admin,
    services: Services,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    category: AuditCategory | None = None,
    action: AuditAction | None = None,
    actor_id: str | None = None,
    resource_id: str | None = None,
    success: bool | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[AuditEntry]:
    """List audit entries with filters.

    Args:
        start_time: Start of time range
        end_time: End of time range
        category: Filter by category
        action: Filter by action
        actor_id: Filter by actor
        resource_id: Filter by workflow record ID
        success: Filter by success/failure
        limit: Max results
        offset: Pagination offset

    Returns:
        Matching audit entries, newest first
    """
    query = AuditQuery(
        start_time=start_time,
        end_time=end_time,
        categories=[category] if category else None,
        actions=[action] if action else None,
        actor_id=actor_id,
        resource_id=resource_id,
        success=success,
        limit=limit,
        offset=offset,
    )
    return services.audit_logger.query(query)


@router.get("/entries/{entry_id}", response_model=AuditEntry)
async def get_audit_entry(entry_id: str, actor: Admin, services: Services) -> AuditEntry:
    """Get a specific audit entry."""
    entry = services.audit_logger.get_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


@router.get("/recent", response_model=list[AuditEntry])
async def get_recent_entries(
    actor: Admin,
    services: Services,
    category: AuditCategory | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> list[AuditEntry]:
    """Get the most recent audit entries."""
    return services.audit_logger.get_recent(limit=limit, category=category)


@router.get("/stats", response_model=AuditStats)
async def get_audit_stats(
    actor: Admin,
    services: Services,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> AuditStats:
    """Get audit statistics."""
    return services.audit_logger.get_stats(start_time=start_time, end_time=end_time)
