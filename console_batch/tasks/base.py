"""
BatchItemExecutor protocol and ExecutorRegistry.

Contract:
    ``BatchItemExecutor`` is the interface every per-item executor
    implements: one remote mutation for one id.  ``ExecutorRegistry``
    stores executors keyed by entity kind (``"user"``, ...).

Architecture:
    console_batch/tasks.  ZERO imports from services; only the pure
    domain types.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from console_batch.domain.types import ExecutionOutcome, OperationKind


@runtime_checkable
class BatchItemExecutor(Protocol):
    """Applies one operation to one entity.

    Contract:
        - Returns ``ExecutionOutcome``; expected failures are returned,
          not raised.
        - Unexpected exceptions are caught by the coordinator and turned
          into a failed item.

    Non-goals:
        - Does NOT retry and does NOT touch the snapshot store.
    """

    def execute(
        self,
        item_id: str,
        operation: OperationKind,
        parameters: Mapping[str, Any],
    ) -> ExecutionOutcome: ...


class ExecutorRegistry:
    """Registry mapping entity kinds to executors.

    Contract:
        - ``register()`` adds an executor; raises ValueError on duplicate.
        - ``get()`` retrieves by entity kind; raises KeyError if missing.
    """

    def __init__(self) -> None:
        self._executors: dict[str, BatchItemExecutor] = {}

    def register(self, entity_kind: str, executor: BatchItemExecutor) -> None:
        if entity_kind in self._executors:
            raise ValueError(
                f"Executor for entity kind '{entity_kind}' is already registered"
            )
        self._executors[entity_kind] = executor

    def get(self, entity_kind: str) -> BatchItemExecutor:
        try:
            return self._executors[entity_kind]
        except KeyError:
            raise KeyError(
                f"No executor registered for entity kind '{entity_kind}'. "
                f"Available: {sorted(self._executors)}"
            ) from None

    def list_kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._executors))

    def __len__(self) -> int:
        return len(self._executors)

    def __contains__(self, entity_kind: str) -> bool:
        return entity_kind in self._executors
