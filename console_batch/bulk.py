"""
BulkUserOperations -- Console-facing bulk actions over user ids.

Contract:
    Each ``bulk_*`` method builds a BatchJob and runs it through the
    ReconciliationManager.  An empty id list is a no-op returning None.
    ``status()`` exposes the running flag, the current operation and the
    latest progress state for display.

Errors from the manager (MalformedJobError, PreconditionDeniedError)
propagate unchanged.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from console_kernel.exceptions import BatchJobNotFoundError
from console_kernel.logging_config import get_logger

from console_batch.domain.types import (
    BatchJob,
    BatchResult,
    OperationKind,
    ProgressState,
)
from console_batch.services.reconciliation import ReconciliationManager

logger = get_logger("batch.bulk")


@dataclass(frozen=True)
class BulkStatus:
    is_running: bool
    current_operation: OperationKind | None
    progress: ProgressState

    @property
    def has_errors(self) -> bool:
        return bool(self.progress.errors)


class BulkUserOperations:
    """Bulk delete / ban / unban / role change / (de)activate for users."""

    def __init__(
        self,
        manager: ReconciliationManager,
        actor_id: UUID | None = None,
    ):
        self._manager = manager
        self._actor_id = actor_id
        self._lock = threading.Lock()
        self._current: OperationKind | None = None
        self._current_job: UUID | None = None
        self._progress = ProgressState()
        manager.subscribe_progress(self._on_progress)

    def run(
        self,
        operation: OperationKind,
        user_ids: Sequence[str],
        correlation_id: str | None = None,
        **parameters: Any,
    ) -> BatchResult | None:
        if not user_ids:
            logger.debug("bulk_operation_empty", extra={"operation": operation})
            return None

        job = BatchJob(
            operation=operation,
            target_ids=tuple(user_ids),
            parameters={k: v for k, v in parameters.items() if v is not None},
            actor_id=self._actor_id,
            correlation_id=correlation_id,
        )
        with self._lock:
            self._current = job.operation
            self._current_job = job.job_id
            self._progress = ProgressState(total=job.total, in_flight=job.total)
        try:
            result = self._manager.execute(job)
        finally:
            with self._lock:
                self._current = None
                self._current_job = None

        with self._lock:
            self._progress = result.progress
        return result

    def bulk_delete(self, user_ids: Sequence[str]) -> BatchResult | None:
        return self.run(OperationKind.DELETE, user_ids)

    def bulk_ban(
        self, user_ids: Sequence[str], reason: str | None = None,
    ) -> BatchResult | None:
        return self.run(OperationKind.BAN, user_ids, ban_reason=reason)

    def bulk_unban(self, user_ids: Sequence[str]) -> BatchResult | None:
        return self.run(OperationKind.UNBAN, user_ids)

    def bulk_change_role(
        self, user_ids: Sequence[str], new_role: str,
    ) -> BatchResult | None:
        return self.run(OperationKind.ROLE_CHANGE, user_ids, new_role=new_role)

    def bulk_activate(self, user_ids: Sequence[str]) -> BatchResult | None:
        return self.run(OperationKind.ACTIVATE, user_ids)

    def bulk_deactivate(self, user_ids: Sequence[str]) -> BatchResult | None:
        return self.run(OperationKind.DEACTIVATE, user_ids)

    def cancel(self) -> bool:
        """Cancel the running bulk operation, if any."""
        with self._lock:
            job_id = self._current_job
        if job_id is None:
            return False
        try:
            self._manager.cancel(job_id)
        except BatchJobNotFoundError:
            # Settled between the read above and the cancel request.
            return False
        return True

    def status(self) -> BulkStatus:
        with self._lock:
            return BulkStatus(
                is_running=self._current is not None,
                current_operation=self._current,
                progress=self._progress,
            )

    def _on_progress(self, job_id: UUID, state: ProgressState) -> None:
        with self._lock:
            if job_id == self._current_job:
                self._progress = state
