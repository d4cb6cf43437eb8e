"""Generic approval workflow engine.

The engine owns the parts every workflow shares: checking that an action is
allowed, stamping actor and time, bumping the version, appending history,
enforcing invariants, persisting with a version check, auditing and
broadcasting. Flavour services only describe what changes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from school_portal.services.audit.logger import AuditLogger
from school_portal.services.notifications.broadcaster import ChangeBroadcaster
from school_portal.services.workflow.errors import NotFound, StaleVersion, WorkflowError
from school_portal.services.workflow.machine import WorkflowDefinition
from school_portal.services.workflow.schemas import Actor, TransitionEntry, WorkflowRecord
from school_portal.services.workflow.store import Write, WorkflowStore

logger = logging.getLogger(__name__)

# Builds a fresh record when the action creates one
RecordFactory = Callable[[datetime], WorkflowRecord]
# Applies flavour-specific changes to a working copy
Mutation = Callable[[WorkflowRecord, datetime], None]

# Marks a step whose record has not been read yet
UNLOADED: Any = object()


@dataclass
class TransitionStep:
    """One record's part in a (possibly batched) transition."""

    record_id: str
    expected_version: int | None = None
    current: Any = UNLOADED
    create: RecordFactory | None = None
    mutate: Mutation | None = None
    details: dict[str, Any] | None = None


class ApprovalWorkflowEngine:
    """Runs transitions of one workflow definition against a record store."""

    def __init__(
        self,
        definition: WorkflowDefinition,
        store: WorkflowStore,
        *,
        broadcaster: ChangeBroadcaster | None = None,
        audit_logger: AuditLogger | None = None,
        enforce_version_check: bool = True,
    ):
        """Initialize workflow engine.

        @param definition - Status set and transition table
        @param store - Record store
        @param broadcaster - Optional change broadcaster
        @param audit_logger - Optional audit logger
        @param enforce_version_check - Honour caller-supplied expected versions
        """
        self.definition = definition
        self.store = store
        self.broadcaster = broadcaster
        self.audit_logger = audit_logger
        self.enforce_version_check = enforce_version_check

    async def get(self, record_id: str) -> WorkflowRecord | None:
        """Get a record by id."""
        return await self.store.get(record_id)

    async def list_records(self, **filters: Any) -> list[WorkflowRecord]:
        """List records of this workflow's kind."""
        return await self.store.list(self.definition.kind, **filters)

    def check_expected_version(
        self,
        record_id: str,
        record: WorkflowRecord | None,
        expected_version: int | None,
    ) -> None:
        """Reject stale client state.

        @param record_id - Record the caller targets
        @param record - Stored record, or None
        @param expected_version - Version the caller last saw, None to skip
        @raises StaleVersion if the stored version differs
        """
        if expected_version is None or not self.enforce_version_check:
            return
        actual = record.version if record else 0
        if actual != expected_version:
            raise StaleVersion(record_id, expected_version, actual)

    def apply(
        self,
        record: WorkflowRecord | None,
        action: str,
        actor: Actor,
        *,
        record_id: str | None = None,
        create: RecordFactory | None = None,
        mutate: Mutation | None = None,
        details: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Write:
        """Compute the result of a transition without persisting it.

        @param record - Current record, or None if absent
        @param action - Transition name
        @param actor - Acting user
        @param record_id - Target id, used in errors when the record is absent
        @param create - Factory for a new record when the action may create one
        @param mutate - Flavour changes applied to the working copy
        @param details - Inputs recorded in the history entry
        @param now - Transition time (defaults to current UTC time)
        @returns (new record, version it replaces)
        @raises NotFound, InvalidTransition, FeedbackRequired, RecipientsRequired
        """
        if record is None and create is None:
            raise NotFound(
                f"No {self.definition.kind.value} record {record_id or ''}".rstrip(),
                record_id=record_id,
            )

        target = self.definition.target_for(action, record)
        now = now or datetime.now(timezone.utc)

        if record is None:
            working = create(now)
            working.created_at = now
            previous_version = 0
            from_status = None
        else:
            working = record.model_copy(deep=True)
            previous_version = record.version
            from_status = _value(record.status)

        if mutate is not None:
            mutate(working, now)

        working.status = target
        working.updated_at = now
        working.actor_id = actor.id
        working.actor_name = actor.name
        working.version = previous_version + 1
        working.history.append(
            TransitionEntry(
                action=action,
                from_status=from_status,
                to_status=target.value,
                actor_id=actor.id,
                actor_name=actor.name,
                at=now,
                version=working.version,
                details=details or {},
            )
        )

        self.definition.check_invariants(working)
        return working, previous_version

    async def commit(
        self,
        writes: Sequence[Write],
        action: str,
        actor: Actor,
        *,
        notification: dict[str, Any] | None = None,
    ) -> list[WorkflowRecord]:
        """Persist computed transitions as one batch, then audit and broadcast.

        @param writes - Records with the versions they replace
        @param action - Transition name, for the broadcast payload
        @param actor - Acting user
        @param notification - Optional user-facing message for subscribers
        @returns Saved records
        @raises StaleVersion, UpstreamFailure
        """
        if not writes:
            return []

        saved = await self.store.upsert_many(writes)

        for record in saved:
            entry = record.history[-1]
            logger.info(
                f"{self.definition.kind.value} {record.id} "
                f"{entry.from_status or 'new'} -> {entry.to_status} (v{record.version})",
                extra={"record_id": record.id, "action": entry.action, "actor_id": actor.id},
            )
            if self.audit_logger is not None:
                self.audit_logger.log_transition(
                    self.definition.kind.value,
                    entry.action,
                    resource_id=record.id,
                    actor_id=actor.id,
                    actor_name=actor.name,
                    actor_role=actor.role,
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    version=record.version,
                    details=entry.details,
                )

        await self.broadcast(action, saved, notification)
        return saved

    async def run(
        self,
        record_id: str,
        action: str,
        actor: Actor,
        *,
        expected_version: int | None = None,
        current: Any = UNLOADED,
        create: RecordFactory | None = None,
        mutate: Mutation | None = None,
        details: dict[str, Any] | None = None,
        notification: dict[str, Any] | None = None,
    ) -> WorkflowRecord:
        """Read, transition and persist a single record.

        @param record_id - Target record
        @param action - Transition name
        @param actor - Acting user
        @param expected_version - Version the caller last saw
        @param current - Record already read by the caller; it is what gets
            version-checked on write
        @param create - Factory for a new record when the action may create one
        @param mutate - Flavour changes applied to the working copy
        @param details - Inputs recorded in the history entry
        @param notification - Optional user-facing message for subscribers
        @returns Saved record
        """
        step = TransitionStep(
            record_id=record_id,
            expected_version=expected_version,
            current=current,
            create=create,
            mutate=mutate,
            details=details,
        )
        saved = await self.run_batch(action, actor, [step], notification=notification)
        return saved[0]

    async def run_batch(
        self,
        action: str,
        actor: Actor,
        steps: Sequence[TransitionStep],
        *,
        notification: dict[str, Any] | None = None,
    ) -> list[WorkflowRecord]:
        """Apply the same action to several records, all or nothing.

        Every step is computed before anything is written; the first failure
        aborts the whole batch.

        @param action - Transition name
        @param actor - Acting user
        @param steps - One step per record
        @param notification - Optional user-facing message for subscribers
        @returns Saved records in step order
        """
        record_id: str | None = None
        try:
            now = datetime.now(timezone.utc)
            writes: list[Write] = []
            for step in steps:
                record_id = step.record_id
                current = step.current
                if current is UNLOADED:
                    current = await self.store.get(step.record_id)
                self.check_expected_version(step.record_id, current, step.expected_version)
                writes.append(
                    self.apply(
                        current,
                        action,
                        actor,
                        record_id=step.record_id,
                        create=step.create,
                        mutate=step.mutate,
                        details=step.details,
                        now=now,
                    )
                )
            record_id = None if len(writes) > 1 else record_id
            return await self.commit(writes, action, actor, notification=notification)
        except WorkflowError as e:
            self.record_rejection(action, actor, e, record_id=record_id)
            raise

    def record_rejection(
        self,
        action: str,
        actor: Actor,
        error: WorkflowError,
        *,
        record_id: str | None = None,
    ) -> None:
        """Log and audit a refused transition."""
        logger.warning(
            f"{self.definition.kind.value} {action} on {record_id or '<batch>'} "
            f"rejected: {error.message}",
            extra={"record_id": record_id, "action": action, "error_code": error.code},
        )
        if self.audit_logger is not None:
            self.audit_logger.log_rejection(
                self.definition.kind.value,
                action,
                error_code=error.code,
                error_message=error.message,
                resource_id=record_id,
                actor_id=actor.id,
                actor_name=actor.name,
                actor_role=actor.role,
            )

    async def broadcast(
        self,
        action: str,
        records: Sequence[WorkflowRecord],
        notification: dict[str, Any] | None = None,
    ) -> None:
        """Tell subscribers which records changed."""
        if self.broadcaster is None:
            return
        payload: dict[str, Any] = {
            "kind": self.definition.kind.value,
            "action": action,
            "record_ids": [record.id for record in records],
            "records": [record.model_dump(mode="json") for record in records],
        }
        if notification:
            payload["notification"] = notification
        await self.broadcaster.notify(self.definition.event_name, payload)


def _value(status: Any) -> str:
    return getattr(status, "value", status)
