"""Persistence port of the workflow engine."""

from typing import Any, Protocol, Sequence

from school_portal.services.workflow.schemas import WorkflowKind, WorkflowRecord

# (record, version the caller read)
Write = tuple[WorkflowRecord, int]


class WorkflowStore(Protocol):
    """Record store the workflow engine depends on.

    Reads return detached copies. Writes carry the version the caller read so
    that a concurrent change is detected instead of overwritten; 0 means the
    record must not exist yet.
    """

    async def get(self, record_id: str) -> WorkflowRecord | None: ...

    async def upsert(self, record: WorkflowRecord, expected_version: int) -> WorkflowRecord: ...

    async def upsert_many(self, writes: Sequence[Write]) -> list[WorkflowRecord]: ...

    # Kept last: the name shadows the builtin in this class body
    async def list(self, kind: WorkflowKind, **filters: Any) -> list[WorkflowRecord]: ...
