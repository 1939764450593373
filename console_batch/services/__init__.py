"""
console_batch.services -- Stateful engine services.

SnapshotStore (shared cache), ProgressTracker (per-job counters),
BatchCoordinator (chunked execution), ReconciliationManager (optimistic
lifecycle), BatchAuditRecorder (persistence of settled jobs).
"""

from console_batch.services.audit import BatchAuditRecorder
from console_batch.services.coordinator import (
    CANCELLED_MESSAGE,
    DEFAULT_CHUNK_SIZE,
    INVALID_RESULT_MESSAGE,
    BatchCoordinator,
)
from console_batch.services.progress import ProgressTracker
from console_batch.services.reconciliation import (
    MISSING_ENTITY_MESSAGE,
    ReconciliationManager,
)
from console_batch.services.snapshot_store import SnapshotStore

__all__ = [
    "CANCELLED_MESSAGE",
    "DEFAULT_CHUNK_SIZE",
    "INVALID_RESULT_MESSAGE",
    "MISSING_ENTITY_MESSAGE",
    "BatchAuditRecorder",
    "BatchCoordinator",
    "ProgressTracker",
    "ReconciliationManager",
    "SnapshotStore",
]
