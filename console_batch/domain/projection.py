"""
console_batch.domain.projection -- Optimistic Projector.

Pure function: given a job and read access to the snapshot, compute the
tentative post-mutation value of every targeted entity.  No I/O, no
writes; the caller decides what to do with the result.

Each OperationKind maps to one projection function in ``_PROJECTORS``.
The functions receive a private copy of the current value and return the
tentative one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Protocol

from console_batch.domain.types import (
    PENDING_DELETE,
    BatchJob,
    OperationKind,
    ProjectedChange,
)

DEFAULT_BAN_REASON = "Banned via bulk operation"


class SnapshotReader(Protocol):
    """Read side of the snapshot store, all the projector may touch."""

    def get(self, key: str) -> Any: ...


_Projection = Callable[[Any, Mapping[str, Any], str, str], Any]


def _project_delete(
    current: Any,
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> Any:
    return PENDING_DELETE


def _project_ban(
    current: dict[str, Any],
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> dict[str, Any]:
    return {
        **current,
        "banned": True,
        "ban_reason": parameters.get("ban_reason") or default_ban_reason,
        "ban_expires": None,
        "updated_at": stamp,
    }


def _project_unban(
    current: dict[str, Any],
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> dict[str, Any]:
    return {
        **current,
        "banned": False,
        "ban_reason": None,
        "ban_expires": None,
        "updated_at": stamp,
    }


def _project_role_change(
    current: dict[str, Any],
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> dict[str, Any]:
    return {
        **current,
        "role": parameters.get("new_role") or current.get("role"),
        "updated_at": stamp,
    }


def _project_activate(
    current: dict[str, Any],
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> dict[str, Any]:
    return {**current, "banned": False, "updated_at": stamp}


def _project_deactivate(
    current: dict[str, Any],
    parameters: Mapping[str, Any],
    stamp: str,
    default_ban_reason: str,
) -> dict[str, Any]:
    return {**current, "banned": True, "updated_at": stamp}


_PROJECTORS: dict[OperationKind, _Projection] = {
    OperationKind.DELETE: _project_delete,
    OperationKind.BAN: _project_ban,
    OperationKind.UNBAN: _project_unban,
    OperationKind.ROLE_CHANGE: _project_role_change,
    OperationKind.ACTIVATE: _project_activate,
    OperationKind.DEACTIVATE: _project_deactivate,
}

# Operations whose tentative value ignores the current one; the snapshot
# value may be any opaque record.
_OPAQUE_OPERATIONS = frozenset({OperationKind.DELETE})


def project(
    job: BatchJob,
    snapshot: SnapshotReader,
    now: datetime,
    default_ban_reason: str = DEFAULT_BAN_REASON,
) -> dict[str, ProjectedChange]:
    """Compute ``{id: ProjectedChange}`` for every target present in the snapshot.

    Ids absent from the snapshot, or already marked pending-delete, are
    left out: no optimistic write happens for them.
    """
    projector = _PROJECTORS[job.operation]
    stamp = now.isoformat()
    changes: dict[str, ProjectedChange] = {}

    for item_id in job.target_ids:
        previous = snapshot.get(item_id)
        if previous is None or previous is PENDING_DELETE:
            continue
        if job.operation in _OPAQUE_OPERATIONS:
            current = previous
        elif isinstance(previous, Mapping):
            current = dict(previous)
        else:
            raise TypeError(
                f"Snapshot value for {item_id} is {type(previous).__name__}, "
                f"expected a mapping for {job.operation.value}"
            )
        tentative = projector(
            current, job.parameters, stamp, default_ban_reason,
        )
        changes[item_id] = ProjectedChange(
            previous_value=previous,
            tentative_value=tentative,
        )

    return changes
