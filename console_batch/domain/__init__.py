"""
console_batch.domain -- Pure types, projection, permissions and selection.

ZERO I/O.  Nothing in this package touches the snapshot store's writes,
threads, or the database.
"""

from console_batch.domain.permissions import (
    Actor,
    AllowAllGate,
    PermissionGate,
    RoleHierarchyGate,
    can_manage_role,
    get_assignable_roles,
    has_permission,
)
from console_batch.domain.projection import DEFAULT_BAN_REASON, project
from console_batch.domain.selection import BulkSelection, SelectionStats
from console_batch.domain.types import (
    PENDING_DELETE,
    Authorization,
    BatchItem,
    BatchItemStatus,
    BatchJob,
    BatchJobStatus,
    BatchResult,
    ExecutionOutcome,
    ItemError,
    JobPhase,
    OperationKind,
    ProgressState,
    ProjectedChange,
    SnapshotEntry,
)

__all__ = [
    "PENDING_DELETE",
    "DEFAULT_BAN_REASON",
    "Actor",
    "AllowAllGate",
    "Authorization",
    "BatchItem",
    "BatchItemStatus",
    "BatchJob",
    "BatchJobStatus",
    "BatchResult",
    "BulkSelection",
    "ExecutionOutcome",
    "ItemError",
    "JobPhase",
    "OperationKind",
    "PermissionGate",
    "ProgressState",
    "ProjectedChange",
    "RoleHierarchyGate",
    "SelectionStats",
    "SnapshotEntry",
    "can_manage_role",
    "get_assignable_roles",
    "has_permission",
    "project",
]
