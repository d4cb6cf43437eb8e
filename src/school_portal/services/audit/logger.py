"""Audit logger service for tracking workflow activity."""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from school_portal.services.audit.schemas import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    AuditQuery,
    AuditSeverity,
    AuditStats,
)

logger = logging.getLogger(__name__)

# (workflow kind, transition name) -> audit action
TRANSITION_ACTIONS: dict[tuple[str, str], AuditAction] = {
    ("report_card", "submit"): AuditAction.REPORT_CARD_SUBMITTED,
    ("report_card", "approve"): AuditAction.REPORT_CARD_APPROVED,
    ("report_card", "revoke"): AuditAction.REPORT_CARD_REVOKED,
    ("report_card", "reset"): AuditAction.REPORT_CARD_RESET,
    ("report_card", "edit"): AuditAction.REPORT_CARD_EDITED,
    ("calendar", "upsert_event"): AuditAction.CALENDAR_EDITED,
    ("calendar", "remove_event"): AuditAction.CALENDAR_EDITED,
    ("calendar", "set_details"): AuditAction.CALENDAR_EDITED,
    ("calendar", "submit_for_approval"): AuditAction.CALENDAR_SUBMITTED,
    ("calendar", "approve"): AuditAction.CALENDAR_APPROVED,
    ("calendar", "request_changes"): AuditAction.CALENDAR_CHANGES_REQUESTED,
    ("calendar", "publish"): AuditAction.CALENDAR_PUBLISHED,
    ("calendar", "reset"): AuditAction.CALENDAR_RESET,
    ("exam_result", "record"): AuditAction.RESULT_RECORDED,
    ("exam_result", "record_and_publish"): AuditAction.RESULT_PUBLISHED,
    ("exam_result", "publish"): AuditAction.RESULT_PUBLISHED,
    ("exam_result", "withhold"): AuditAction.RESULT_WITHHELD,
    ("exam_result", "reinstate"): AuditAction.RESULT_REINSTATED,
}

KIND_CATEGORIES = {
    "report_card": AuditCategory.REPORT_CARD,
    "calendar": AuditCategory.CALENDAR,
    "exam_result": AuditCategory.EXAM_RESULT,
}


class AuditLogger:
    """Service for audit logging."""

    def __init__(self, max_entries: int = 100000):
        """Initialize audit logger.

        Args:
            max_entries: In-memory limit; the oldest entries are dropped first
        """
        self._entries: list[AuditEntry] = []
        self._max_entries = max_entries

    def log(
        self,
        category: AuditCategory,
        action: AuditAction,
        description: str,
        *,
        severity: AuditSeverity = AuditSeverity.INFO,
        actor_id: str | None = None,
        actor_name: str | None = None,
        actor_role: str | None = None,
        resource_id: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        version: int | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> AuditEntry:
        """Log an audit event.

        Args:
            category: Event category
            action: Specific action
            description: Human-readable description
            severity: Event severity
            actor_id: ID of the acting user
            actor_name: Display name of the acting user
            actor_role: Portal role of the acting user
            resource_id: Affected workflow record
            from_status: Status before the action
            to_status: Status after the action
            version: Record version after the action
            details: Additional event details
            success: Whether action succeeded
            error_code: Workflow error code if rejected
            error_message: Error if failed

        Returns:
            The created audit entry
        """
        entry = AuditEntry(
            entry_id=str(uuid4()),
            timestamp=datetime.now(timezone.utc),
            category=category,
            action=action,
            severity=severity,
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role,
            resource_id=resource_id,
            from_status=from_status,
            to_status=to_status,
            version=version,
            description=description,
            details=details or {},
            success=success,
            error_code=error_code,
            error_message=error_message,
        )

        # Store entry
        self._entries.append(entry)

        # Trim if needed
        if len(self._entries) > self._max_entries:
            self._entries = self._entries[-self._max_entries:]

        # Also log to standard logger
        log_level = {
            AuditSeverity.DEBUG: logging.DEBUG,
            AuditSeverity.INFO: logging.INFO,
            AuditSeverity.WARNING: logging.WARNING,
            AuditSeverity.ERROR: logging.ERROR,
            AuditSeverity.CRITICAL: logging.CRITICAL,
        }.get(severity, logging.INFO)

        logger.log(
            log_level,
            f"[AUDIT] {category.value}/{action.value}: {description}",
            extra={
                "audit_entry_id": entry.entry_id,
                "actor_id": actor_id,
                "resource_id": resource_id,
            },
        )

        return entry

    def log_transition(
        self,
        kind: str,
        transition: str,
        *,
        resource_id: str,
        actor_id: str,
        actor_name: str,
        actor_role: str | None = None,
        from_status: str | None,
        to_status: str,
        version: int,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Log a successful workflow transition.

        Args:
            kind: Workflow kind value
            transition: Transition name
            resource_id: Record ID
            actor_id: Acting user ID
            actor_name: Acting user name
            actor_role: Acting user role
            from_status: Status before
            to_status: Status after
            version: Record version after
            details: Transition inputs

        Returns:
            Audit entry
        """
        return self.log(
            KIND_CATEGORIES[kind],
            TRANSITION_ACTIONS[(kind, transition)],
            f"{transition} {resource_id}: {from_status or 'new'} -> {to_status}",
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role,
            resource_id=resource_id,
            from_status=from_status,
            to_status=to_status,
            version=version,
            details=details,
        )

    def log_rejection(
        self,
        kind: str,
        transition: str,
        *,
        error_code: str,
        error_message: str,
        resource_id: str | None = None,
        actor_id: str | None = None,
        actor_name: str | None = None,
        actor_role: str | None = None,
    ) -> AuditEntry:
        """Log a transition that was refused.

        Args:
            kind: Workflow kind value
            transition: Transition name
            error_code: Workflow error code
            error_message: Error message
            resource_id: Record ID if known
            actor_id: Acting user ID
            actor_name: Acting user name
            actor_role: Acting user role

        Returns:
            Audit entry
        """
        return self.log(
            KIND_CATEGORIES[kind],
            AuditAction.TRANSITION_REJECTED,
            f"{transition} {resource_id or '<batch>'} rejected: {error_code}",
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role,
            resource_id=resource_id,
            details={"transition": transition},
            success=False,
            error_code=error_code,
            error_message=error_message,
        )

    def log_system(self, action: AuditAction, description: str) -> AuditEntry:
        """Log a system lifecycle event."""
        return self.log(
            AuditCategory.SYSTEM,
            action,
            description,
            actor_id="system",
            actor_name="system",
        )

    def query(self, query: AuditQuery) -> list[AuditEntry]:
        """Query audit entries.

        Args:
            query: Query parameters

        Returns:
            Matching entries, newest first
        """
        results = self._entries.copy()

        # Apply filters
        if query.start_time:
            results = [e for e in results if e.timestamp >= query.start_time]
        if query.end_time:
            results = [e for e in results if e.timestamp <= query.end_time]
        if query.categories:
            results = [e for e in results if e.category in query.categories]
        if query.actions:
            results = [e for e in results if e.action in query.actions]
        if query.actor_id:
            results = [e for e in results if e.actor_id == query.actor_id]
        if query.resource_id:
            results = [e for e in results if e.resource_id == query.resource_id]
        if query.success is not None:
            results = [e for e in results if e.success == query.success]

        # Newest first; stable sort keeps insertion order within a timestamp
        results.reverse()
        results.sort(key=lambda e: e.timestamp, reverse=True)

        return results[query.offset : query.offset + query.limit]

    def get_entry(self, entry_id: str) -> AuditEntry | None:
        """Get entry by ID."""
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        return None

    def get_recent(
        self,
        limit: int = 50,
        category: AuditCategory | None = None,
    ) -> list[AuditEntry]:
        """Get recent entries.

        Args:
            limit: Max entries
            category: Optional category filter

        Returns:
            Recent entries
        """
        query = AuditQuery(
            limit=limit,
            categories=[category] if category else None,
        )
        return self.query(query)

    def get_stats(
        self,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> AuditStats:
        """Get audit statistics.

        Args:
            start_time: Start of time range
            end_time: End of time range

        Returns:
            Statistics
        """
        entries = self._entries.copy()

        if start_time:
            entries = [e for e in entries if e.timestamp >= start_time]
        if end_time:
            entries = [e for e in entries if e.timestamp <= end_time]

        if not entries:
            return AuditStats(
                total_entries=0,
                entries_by_category={},
                entries_by_action={},
                success_rate=100.0,
                unique_actors=0,
            )

        by_category: dict[str, int] = defaultdict(int)
        by_action: dict[str, int] = defaultdict(int)
        actors: set[str] = set()
        success_count = 0

        for entry in entries:
            by_category[entry.category.value] += 1
            by_action[entry.action.value] += 1
            if entry.actor_id:
                actors.add(entry.actor_id)
            if entry.success:
                success_count += 1

        timestamps = [e.timestamp for e in entries]

        return AuditStats(
            total_entries=len(entries),
            entries_by_category=dict(by_category),
            entries_by_action=dict(by_action),
            success_rate=(success_count / len(entries)) * 100,
            unique_actors=len(actors),
            time_range_start=min(timestamps),
            time_range_end=max(timestamps),
        )

