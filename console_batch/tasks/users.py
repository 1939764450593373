"""
UserMutationExecutor -- Per-user remote mutations for bulk operations.

Translates each OperationKind into a call on the injected ``UserActions``
port (the console's server actions) and turns an unsuccessful
``ActionResult`` into a failed ``ExecutionOutcome``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from console_kernel.logging_config import get_logger

from console_batch.domain.types import ExecutionOutcome, OperationKind

logger = get_logger("batch.tasks.users")

ENTITY_KIND = "user"


@dataclass(frozen=True)
class ActionResult:
    """Reply of a user server action."""

    success: bool
    error: str | None = None


class UserActions(Protocol):
    """Remote user mutations (the source of truth)."""

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> ActionResult: ...

    def delete_user(self, user_id: str) -> ActionResult: ...


class UserMutationExecutor:
    """BatchItemExecutor for user entities."""

    def __init__(self, actions: UserActions):
        self._actions = actions

    def execute(
        self,
        item_id: str,
        operation: OperationKind,
        parameters: Mapping[str, Any],
    ) -> ExecutionOutcome:
        operation = OperationKind(operation)

        if operation is OperationKind.DELETE:
            result = self._actions.delete_user(item_id)
        else:
            fields = self._update_fields(operation, parameters)
            if fields is None:
                return ExecutionOutcome.failure("New role is required")
            result = self._actions.update_user(item_id, fields)

        if result.success:
            return ExecutionOutcome.ok()
        logger.debug(
            "user_action_rejected",
            extra={
                "user_id": item_id,
                "operation": operation.value,
                "error": result.error,
            },
        )
        return ExecutionOutcome.failure(result.error or "Unknown error")

    @staticmethod
    def _update_fields(
        operation: OperationKind,
        parameters: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        if operation is OperationKind.BAN:
            fields: dict[str, Any] = {"banned": True}
            if parameters.get("ban_reason"):
                fields["ban_reason"] = parameters["ban_reason"]
            return fields
        if operation in (OperationKind.UNBAN, OperationKind.ACTIVATE):
            return {"banned": False}
        if operation is OperationKind.DEACTIVATE:
            return {"banned": True}
        if operation is OperationKind.ROLE_CHANGE:
            new_role = parameters.get("new_role")
            return {"role": new_role} if new_role else None
        raise ValueError(f"Unsupported operation: {operation.value}")
