"""
console_batch.domain.permissions -- Role hierarchy and the permission gate.

Roles are ranked (higher level = more authority).  An actor may only act
on users whose role ranks strictly below its own, and may only assign
roles ranking strictly below its own.  Permissions are ``resource:action``
strings granted either directly to the actor or through its role.

The gate runs once per job, before anything is projected: a denial means
no optimistic write and no executor call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from console_batch.domain.projection import SnapshotReader
from console_batch.domain.types import (
    Authorization,
    BatchJob,
    OperationKind,
)

ROLE_HIERARCHY: dict[str, int] = {
    "super_admin": 100,
    "admin": 80,
    "user": 20,
}

ROLE_STATEMENTS: dict[str, dict[str, frozenset[str]]] = {
    "super_admin": {
        "user": frozenset({
            "create", "read", "list", "update", "delete", "ban",
            "impersonate", "set-role", "set-password",
        }),
    },
    "admin": {
        "user": frozenset({
            "create", "read", "list", "update", "delete", "ban",
            "set-role", "set-password",
        }),
    },
    "user": {},
}

OPERATION_PERMISSIONS: dict[OperationKind, str] = {
    OperationKind.DELETE: "user:delete",
    OperationKind.BAN: "user:ban",
    OperationKind.UNBAN: "user:ban",
    OperationKind.ROLE_CHANGE: "user:set-role",
    OperationKind.ACTIVATE: "user:ban",
    OperationKind.DEACTIVATE: "user:ban",
}


@dataclass(frozen=True)
class Actor:
    """The identity a job runs on behalf of."""

    role: str
    actor_id: UUID | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)


def get_role_level(role: str | None) -> int:
    return ROLE_HIERARCHY.get(role or "", 0)


def can_manage_role(manager_role: str, target_role: str) -> bool:
    return get_role_level(manager_role) > get_role_level(target_role)


def get_assignable_roles(role: str) -> tuple[str, ...]:
    """Roles ranked strictly below ``role``, highest first."""
    level = get_role_level(role)
    return tuple(
        name for name, rank in sorted(
            ROLE_HIERARCHY.items(), key=lambda pair: pair[1], reverse=True,
        )
        if rank < level
    )


def has_permission(actor: Actor, permission: str) -> bool:
    """Direct grants first, then the actor's role statements."""
    if permission in actor.permissions:
        return True
    resource, _, action = permission.partition(":")
    statements = ROLE_STATEMENTS.get(actor.role)
    if not statements:
        return False
    return action in statements.get(resource, frozenset())


# =============================================================================
# Gates
# =============================================================================


class PermissionGate(Protocol):
    """Approves or rejects a whole job before the engine runs."""

    def authorize(self, job: BatchJob) -> Authorization: ...


class AllowAllGate:
    """Gate for trusted internal callers; approves every job."""

    def authorize(self, job: BatchJob) -> Authorization:
        return Authorization.allow()


class RoleHierarchyGate:
    """Gate enforcing operation permissions and the role hierarchy.

    Targets missing from the snapshot are not checked here; the executor
    call for them is still subject to server-side validation.
    """

    def __init__(self, actor: Actor, snapshot: SnapshotReader):
        self._actor = actor
        self._snapshot = snapshot

    def authorize(self, job: BatchJob) -> Authorization:
        permission = OPERATION_PERMISSIONS[job.operation]
        if not has_permission(self._actor, permission):
            return Authorization.deny(
                f"role '{self._actor.role}' lacks permission {permission}"
            )

        if job.operation is OperationKind.ROLE_CHANGE:
            new_role = job.parameters.get("new_role")
            if new_role not in get_assignable_roles(self._actor.role):
                return Authorization.deny(
                    f"role '{self._actor.role}' cannot assign role '{new_role}'"
                )

        for item_id in job.target_ids:
            current = self._snapshot.get(item_id)
            if not isinstance(current, Mapping):
                continue
            target_role = current.get("role") or "user"
            if not can_manage_role(self._actor.role, target_role):
                return Authorization.deny(
                    f"role '{self._actor.role}' cannot manage "
                    f"{target_role} {item_id}"
                )

        return Authorization.allow()
