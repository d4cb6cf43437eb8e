"""Audit logging service module."""

from school_portal.services.audit.schemas import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    AuditQuery,
    AuditSeverity,
    AuditStats,
)
from school_portal.services.audit.logger import AuditLogger

__all__ = [
    # Schemas
    "AuditAction",
    "AuditCategory",
    "AuditSeverity",
    "AuditEntry",
    "AuditQuery",
    "AuditStats",
    # Service
    "AuditLogger",
]
