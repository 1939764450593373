"""
ReconciliationManager -- Top-level orchestration of one optimistic batch.

Contract:
    ``execute(job)`` walks the job through CREATED -> PROJECTED -> RUNNING
    -> SETTLED and returns the ``BatchResult``:

    1. Permission gate (denial raises PreconditionDeniedError, nothing
       written).
    2. Project tentative values and write each one with ``set``, keeping
       the version returned.
    3. Run the coordinator.
    4. Revert every failed id that was projected with ``set_if_version``
       against the captured version.  A rejected compare-and-set means
       something newer landed; the revert is skipped.
    5. Call the resync hook with every target id, whatever the outcome.

    ``cancel(job_id)`` asks a running job to stop before its next chunk.

Architecture: console_batch/services.  Owns the BatchJob and BatchResult
    for the duration of one call; the snapshot store is shared and only
    touched through its own API.

Invariants enforced:
    - No optimistic write for a denied job.
    - Revert never overwrites a write it did not make.
    - Successful ids keep their tentative value until resync.
    - A resync failure is logged and never changes the result.
    - If the run itself raises, projected writes that did not succeed are
      reverted and resync still runs before the error propagates.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import UUID

from console_kernel.domain.clock import Clock, SystemClock
from console_kernel.exceptions import (
    BatchAlreadyRunningError,
    BatchJobNotFoundError,
    InvalidPhaseTransitionError,
    PreconditionDeniedError,
)
from console_kernel.logging_config import LogContext, get_logger

from console_batch.domain.permissions import AllowAllGate, PermissionGate
from console_batch.domain.projection import DEFAULT_BAN_REASON, project
from console_batch.domain.types import (
    BatchItemStatus,
    BatchJob,
    BatchResult,
    JobPhase,
    ProgressState,
    ProjectedChange,
    next_phase,
)
from console_batch.services.audit import BatchAuditRecorder
from console_batch.services.coordinator import BatchCoordinator
from console_batch.services.progress import ProgressTracker
from console_batch.services.snapshot_store import SnapshotStore
from console_batch.tasks.base import BatchItemExecutor

logger = get_logger("batch.reconciliation")

ResyncHook = Callable[[tuple[str, ...]], None]
JobProgressObserver = Callable[[UUID, ProgressState], None]

MISSING_ENTITY_MESSAGE = "Entity not found in snapshot"


@dataclass
class JobRun:
    """Mutable bookkeeping for one job between CREATED and SETTLED."""

    job: BatchJob
    tracker: ProgressTracker = field(default_factory=ProgressTracker)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    phase: JobPhase = JobPhase.CREATED
    projected: dict[str, ProjectedChange] = field(default_factory=dict)
    versions: dict[str, int] = field(default_factory=dict)
    started_at: datetime | None = None

    def advance(self, phase: JobPhase) -> None:
        if next_phase(self.phase) is not phase:
            raise InvalidPhaseTransitionError(
                str(self.job.job_id), self.phase.value, phase.value,
            )
        self.phase = phase


class ReconciliationManager:
    """Runs batch jobs against a shared snapshot store.

    Non-goals:
        - Does NOT retry failed items.
        - Does NOT keep history after a job settles (persist the result,
          or inject a BatchAuditRecorder).
    """

    def __init__(
        self,
        store: SnapshotStore,
        executor: BatchItemExecutor,
        *,
        gate: PermissionGate | None = None,
        resync: ResyncHook | None = None,
        coordinator: BatchCoordinator | None = None,
        clock: Clock | None = None,
        audit: BatchAuditRecorder | None = None,
        default_ban_reason: str = DEFAULT_BAN_REASON,
    ):
        self._store = store
        self._executor = executor
        self._gate = gate or AllowAllGate()
        self._resync = resync
        self._coordinator = coordinator or BatchCoordinator()
        self._clock = clock or SystemClock()
        self._audit = audit
        self._default_ban_reason = default_ban_reason
        self._runs: dict[UUID, JobRun] = {}
        self._runs_lock = threading.Lock()
        self._observers: list[JobProgressObserver] = []

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def execute(self, job: BatchJob) -> BatchResult:
        """Run ``job`` to settlement.

        Raises:
            BatchAlreadyRunningError: If a job with the same ID is running.
            PreconditionDeniedError: If the permission gate denies the job.
        """
        run = self._register(job)
        try:
            with LogContext.bind(
                job_id=str(job.job_id),
                actor_id=str(job.actor_id) if job.actor_id else None,
                operation=job.operation.value,
                correlation_id=job.correlation_id,
            ):
                return self._execute(run)
        finally:
            with self._runs_lock:
                self._runs.pop(job.job_id, None)

    def cancel(self, job_id: UUID) -> None:
        """Stop ``job_id`` before its next chunk; running items still settle.

        Raises:
            BatchJobNotFoundError: If no such job is running.
        """
        with self._runs_lock:
            run = self._runs.get(job_id)
        if run is None:
            raise BatchJobNotFoundError(str(job_id))
        run.cancel_event.set()
        logger.info("batch_job_cancel_requested", extra={"job_id": str(job_id)})

    def active_jobs(self) -> tuple[UUID, ...]:
        with self._runs_lock:
            return tuple(self._runs)

    def progress(self, job_id: UUID) -> ProgressState:
        """
        Raises:
            BatchJobNotFoundError: If no such job is running.
        """
        with self._runs_lock:
            run = self._runs.get(job_id)
        if run is None:
            raise BatchJobNotFoundError(str(job_id))
        return run.tracker.snapshot_state()

    def subscribe_progress(self, observer: JobProgressObserver) -> Callable[[], None]:
        """Receive ``(job_id, state)`` for every progress change of every job."""
        with self._runs_lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._runs_lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    @property
    def store(self) -> SnapshotStore:
        return self._store

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def _execute(self, run: JobRun) -> BatchResult:
        job = run.job
        run.started_at = self._clock.now()

        authorization = self._gate.authorize(job)
        if not authorization.allowed:
            reason = authorization.reason or "denied"
            logger.warning(
                "batch_job_denied",
                extra={"job_id": str(job.job_id), "reason": reason},
            )
            raise PreconditionDeniedError(str(job.job_id), reason)

        self._project(run)
        run.advance(JobPhase.PROJECTED)

        run.advance(JobPhase.RUNNING)
        try:
            result = self._run(run)
        except BaseException:
            self._abort(run)
            raise

        reverted, conflicted = self._revert_failures(run, result.failed_ids)
        run.advance(JobPhase.SETTLED)
        result = replace(result, reverted_ids=reverted, conflicted_ids=conflicted)

        self._schedule_resync(job.target_ids)

        if self._audit is not None:
            self._audit.record(
                job, result,
                started_at=run.started_at,
                completed_at=self._clock.now(),
            )

        logger.info(
            "batch_job_settled",
            extra={
                "job_id": str(job.job_id),
                "status": result.status.value,
                "succeeded": len(result.successful_ids),
                "failed": len(result.failed_ids),
                "reverted": len(reverted),
                "conflicted": len(conflicted),
                "barriers": result.barriers,
            },
        )
        return result

    def _project(self, run: JobRun) -> None:
        job = run.job
        run.projected = project(
            job, self._store, self._clock.now(), self._default_ban_reason,
        )
        for item_id, change in run.projected.items():
            run.versions[item_id] = self._store.set(item_id, change.tentative_value)

        logger.info(
            "batch_job_projected",
            extra={
                "job_id": str(job.job_id),
                "projected": len(run.projected),
                "unprojected": job.total - len(run.projected),
            },
        )

    def _run(self, run: JobRun) -> BatchResult:
        job = run.job
        # Ids with no live snapshot entry fail without an executor call.
        skip = {
            item_id: MISSING_ENTITY_MESSAGE
            for item_id in job.target_ids
            if item_id not in run.projected
        }

        unsubscribe = run.tracker.subscribe(
            lambda state: self._publish(job.job_id, state)
        )
        try:
            return self._coordinator.run(
                job,
                self._executor,
                tracker=run.tracker,
                skip=skip,
                cancel_event=run.cancel_event,
                original_values={
                    item_id: change.previous_value
                    for item_id, change in run.projected.items()
                },
            )
        finally:
            unsubscribe()

    def _revert_failures(
        self,
        run: JobRun,
        failed_ids: Sequence[str],
    ) -> tuple[tuple[str, ...], tuple[str, ...]]:
        reverted: list[str] = []
        conflicted: list[str] = []
        for item_id in failed_ids:
            change = run.projected.get(item_id)
            if change is None:
                continue
            if self._store.set_if_version(
                item_id, run.versions[item_id], change.previous_value,
            ):
                reverted.append(item_id)
            else:
                # Someone wrote the key after projection; their value wins.
                conflicted.append(item_id)
                logger.debug(
                    "revert_skipped_version_conflict",
                    extra={
                        "item_id": item_id,
                        "expected_version": run.versions[item_id],
                        "actual_version": self._store.version(item_id),
                    },
                )
        return tuple(reverted), tuple(conflicted)

    def _abort(self, run: JobRun) -> None:
        """Undo every projected write that did not succeed, then resync."""
        items = run.tracker.items()
        unsettled = tuple(
            item_id
            for item_id in run.job.target_ids
            if item_id not in items
            or items[item_id].status is not BatchItemStatus.SUCCEEDED
        )
        reverted, conflicted = self._revert_failures(run, unsettled)
        logger.error(
            "batch_run_aborted",
            extra={
                "job_id": str(run.job.job_id),
                "reverted": len(reverted),
                "conflicted": len(conflicted),
            },
        )
        self._schedule_resync(run.job.target_ids)

    def _schedule_resync(self, keys: tuple[str, ...]) -> None:
        if self._resync is None:
            return
        try:
            self._resync(keys)
        except Exception:
            logger.exception("resync_failed", extra={"keys": list(keys)})

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _register(self, job: BatchJob) -> JobRun:
        with self._runs_lock:
            if job.job_id in self._runs:
                raise BatchAlreadyRunningError(str(job.job_id))
            run = JobRun(job=job)
            self._runs[job.job_id] = run
            return run

    def _publish(self, job_id: UUID, state: ProgressState) -> None:
        with self._runs_lock:
            observers = tuple(self._observers)
        for observer in observers:
            observer(job_id, state)
