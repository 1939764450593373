"""
console_batch -- Batch-mutation engine for the admin console.

Applies one logical operation (delete, ban, role change, ...) to many
entities at once: writes optimistic values into a shared snapshot store,
executes per-item remote mutations in ordered chunks with a barrier
between chunks, tracks progress under a lock, reverts failed items with
compare-and-set, and hands the affected keys to a resync hook.

Architecture:
    console_batch/ sits on top of console_kernel (logging, exceptions,
    clock, db base) and console_config.  Nothing in console_kernel imports
    from console_batch.

Invariants:
    - completed + failed + in_flight == total at every observed instant
    - At most chunk_size executor calls in flight; chunks strictly ordered
    - No optimistic write for a denied job
    - A revert never overwrites a newer write (compare-and-set)
    - Resync runs after every settled job
"""

from console_batch.domain.types import (
    PENDING_DELETE,
    BatchJob,
    BatchResult,
    OperationKind,
    ProgressState,
)
from console_batch.services.reconciliation import ReconciliationManager
from console_batch.services.snapshot_store import SnapshotStore

__all__ = [
    "PENDING_DELETE",
    "BatchJob",
    "BatchResult",
    "OperationKind",
    "ProgressState",
    "ReconciliationManager",
    "SnapshotStore",
]
