"""
console_batch.domain.types -- Pure dataclasses for the batch-mutation engine.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.  ``BatchItem`` is the one mutable record: it moves
through its lifecycle under the Progress Tracker's lock and is copied
before it leaves the tracker.

Invariants enforced:
    - BatchJob: target_ids non-empty, no duplicates, operation in the
      closed OperationKind set, role_change carries a known new_role.
    - BatchItem: PENDING -> IN_FLIGHT -> {SUCCEEDED | FAILED}, or
      PENDING -> FAILED for items that are never launched.
    - ProgressState: completed + failed + in_flight == total.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from console_kernel.exceptions import (
    InvalidItemTransitionError,
    MalformedJobError,
    UnknownOperationError,
)


# =============================================================================
# Enums
# =============================================================================


class OperationKind(str, Enum):
    """Closed set of bulk operations the executors understand."""

    DELETE = "delete"
    BAN = "ban"
    UNBAN = "unban"
    ROLE_CHANGE = "role_change"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


class BatchItemStatus(str, Enum):
    """Per-item lifecycle status within a batch job."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BatchJobStatus(str, Enum):
    """Job-level outcome reported on a settled BatchResult."""

    COMPLETED = "completed"  # Every item succeeded
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # No item succeeded
    CANCELLED = "cancelled"  # Later chunks never started


class JobPhase(str, Enum):
    """Reconciliation state machine: CREATED -> PROJECTED -> RUNNING -> SETTLED."""

    CREATED = "created"
    PROJECTED = "projected"
    RUNNING = "running"
    SETTLED = "settled"


KNOWN_ROLES: tuple[str, ...] = ("super_admin", "admin", "user")

_ITEM_TRANSITIONS: dict[BatchItemStatus, frozenset[BatchItemStatus]] = {
    BatchItemStatus.PENDING: frozenset(
        {BatchItemStatus.IN_FLIGHT, BatchItemStatus.FAILED}
    ),
    BatchItemStatus.IN_FLIGHT: frozenset(
        {BatchItemStatus.SUCCEEDED, BatchItemStatus.FAILED}
    ),
    BatchItemStatus.SUCCEEDED: frozenset(),
    BatchItemStatus.FAILED: frozenset(),
}

_PHASE_ORDER: tuple[JobPhase, ...] = (
    JobPhase.CREATED,
    JobPhase.PROJECTED,
    JobPhase.RUNNING,
    JobPhase.SETTLED,
)


def next_phase(current: JobPhase) -> JobPhase | None:
    """Return the phase that legally follows ``current`` (None after SETTLED)."""
    index = _PHASE_ORDER.index(current)
    if index + 1 < len(_PHASE_ORDER):
        return _PHASE_ORDER[index + 1]
    return None


# =============================================================================
# Pending-delete sentinel
# =============================================================================


class _PendingDelete:
    """Tentative value written for entities awaiting remote deletion."""

    _instance: _PendingDelete | None = None

    def __new__(cls) -> _PendingDelete:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING_DELETE"

    def __copy__(self) -> _PendingDelete:
        return self

    def __deepcopy__(self, memo: dict) -> _PendingDelete:
        return self

    def __reduce__(self) -> str:
        return "PENDING_DELETE"


PENDING_DELETE = _PendingDelete()


# =============================================================================
# Job
# =============================================================================


@dataclass(frozen=True)
class BatchJob:
    """One logical operation applied to many targets.

    Raises:
        UnknownOperationError: ``operation`` is not an OperationKind.
        MalformedJobError: empty or duplicate targets, or a role change
            without a known ``new_role`` parameter.
    """

    operation: OperationKind
    target_ids: tuple[str, ...]
    parameters: Mapping[str, Any] = field(default_factory=dict)
    job_id: UUID = field(default_factory=uuid4)
    actor_id: UUID | None = None
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "operation", _coerce_operation(self.operation))
        if isinstance(self.target_ids, str):
            raise MalformedJobError("target_ids must be a sequence of ids, not a string")
        targets = tuple(self.target_ids)
        object.__setattr__(self, "target_ids", targets)
        object.__setattr__(self, "parameters", dict(self.parameters or {}))

        if not targets:
            raise MalformedJobError("target_ids is empty")
        for target in targets:
            if not isinstance(target, str) or not target:
                raise MalformedJobError(f"invalid target id {target!r}")

        seen: set[str] = set()
        duplicates: list[str] = []
        for target in targets:
            if target in seen and target not in duplicates:
                duplicates.append(target)
            seen.add(target)
        if duplicates:
            raise MalformedJobError(f"duplicate target ids: {duplicates}")

        if self.operation is OperationKind.ROLE_CHANGE:
            new_role = self.parameters.get("new_role")
            if not new_role:
                raise MalformedJobError("role_change requires a new_role parameter")
            if new_role not in KNOWN_ROLES:
                raise MalformedJobError(f"unknown role '{new_role}'")

    @property
    def total(self) -> int:
        return len(self.target_ids)


def _coerce_operation(value: Any) -> OperationKind:
    if isinstance(value, OperationKind):
        return value
    try:
        return OperationKind(value)
    except ValueError:
        raise UnknownOperationError(
            str(value), tuple(kind.value for kind in OperationKind),
        ) from None


# =============================================================================
# Items, snapshot entries, projection
# =============================================================================


@dataclass
class BatchItem:
    """Per-id unit of work.  Owned by the Progress Tracker while a job runs."""

    item_id: str
    status: BatchItemStatus = BatchItemStatus.PENDING
    error: str | None = None

    def transition(self, status: BatchItemStatus, error: str | None = None) -> None:
        if status not in _ITEM_TRANSITIONS[self.status]:
            raise InvalidItemTransitionError(
                self.item_id, self.status.value, status.value,
            )
        self.status = status
        if error is not None:
            self.error = error

    @property
    def is_settled(self) -> bool:
        return self.status in (BatchItemStatus.SUCCEEDED, BatchItemStatus.FAILED)


@dataclass(frozen=True)
class SnapshotEntry:
    """Last known value of one entity.  ``version`` grows on every write."""

    key: str
    value: Any
    version: int


@dataclass(frozen=True)
class ProjectedChange:
    """Pair kept per projected id: the value to roll back to and the optimistic one."""

    previous_value: Any
    tentative_value: Any


# =============================================================================
# Executor / gate results
# =============================================================================


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of one executor call."""

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> ExecutionOutcome:
        return cls(success=True)

    @classmethod
    def failure(cls, error: str) -> ExecutionOutcome:
        return cls(success=False, error=error)


@dataclass(frozen=True)
class Authorization:
    """Permission gate verdict for a whole job."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> Authorization:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> Authorization:
        return cls(allowed=False, reason=reason)


# =============================================================================
# Progress and result
# =============================================================================


@dataclass(frozen=True)
class ItemError:
    """A failed item, its message, and the value it had before the batch."""

    item_id: str
    message: str
    original_value: Any = None


@dataclass(frozen=True)
class ProgressState:
    """Point-in-time view of a job's progress.

    ``in_flight`` counts every item not yet settled (queued or executing);
    ``active`` counts executor calls currently running.
    """

    total: int = 0
    completed: int = 0
    failed: int = 0
    in_flight: int = 0
    active: int = 0
    errors: tuple[ItemError, ...] = ()

    @property
    def settled(self) -> int:
        return self.completed + self.failed

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.settled / self.total * 100)

    @property
    def is_settled(self) -> bool:
        return self.in_flight == 0 and self.settled == self.total


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a settled job, derived from its final progress state.

    Ids appear in ``target_ids`` order regardless of the order in which
    items settled.
    """

    job_id: UUID
    operation: OperationKind
    status: BatchJobStatus
    overall_success: bool
    successful_ids: tuple[str, ...]
    failed_ids: tuple[str, ...]
    errors: tuple[ItemError, ...]
    progress: ProgressState
    barriers: int = 0
    cancelled: bool = False
    reverted_ids: tuple[str, ...] = ()
    conflicted_ids: tuple[str, ...] = ()

    @classmethod
    def from_items(
        cls,
        job: BatchJob,
        items: Mapping[str, BatchItem],
        progress: ProgressState,
        barriers: int,
        cancelled: bool = False,
    ) -> BatchResult:
        successful = tuple(
            item_id for item_id in job.target_ids
            if items[item_id].status is BatchItemStatus.SUCCEEDED
        )
        failed = tuple(
            item_id for item_id in job.target_ids
            if items[item_id].status is BatchItemStatus.FAILED
        )
        errors_by_id = {error.item_id: error for error in progress.errors}
        errors = tuple(errors_by_id[item_id] for item_id in failed)

        if cancelled:
            status = BatchJobStatus.CANCELLED
        elif not failed:
            status = BatchJobStatus.COMPLETED
        elif not successful:
            status = BatchJobStatus.FAILED
        else:
            status = BatchJobStatus.PARTIALLY_COMPLETED

        return cls(
            job_id=job.job_id,
            operation=job.operation,
            status=status,
            overall_success=progress.failed == 0,
            successful_ids=successful,
            failed_ids=failed,
            errors=errors,
            progress=progress,
            barriers=barriers,
            cancelled=cancelled,
        )

    def error_for(self, item_id: str) -> ItemError | None:
        for error in self.errors:
            if error.item_id == item_id:
                return error
        return None


def partition(ids: Sequence[str], chunk_size: int) -> tuple[tuple[str, ...], ...]:
    """Split ``ids`` into consecutive chunks of ``chunk_size``, preserving order."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return tuple(
        tuple(ids[start:start + chunk_size])
        for start in range(0, len(ids), chunk_size)
    )
