"""
BatchCoordinator -- Chunked, barrier-synchronized execution of a batch job.

Contract:
    ``run()`` splits ``job.target_ids`` into consecutive chunks, launches
    one task per id of a chunk, waits for every task of that chunk to
    settle, then moves to the next chunk.  Returns a ``BatchResult``
    aggregated from the progress tracker.

Architecture: console_batch/services.  Knows nothing about the snapshot
    store; the reconciliation manager owns optimistic writes and reverts.

Invariants enforced:
    - Chunk k+1 never starts while any item of chunk k is running, so at
      most ``chunk_size`` executor calls are ever in flight.
    - ceil(N / chunk_size) barriers for N targets (fewer only when
      cancelled).
    - One failing item never aborts its siblings or later chunks; an
      exception from the executor is a failed item, never a failed run.
    - No retries and no timeouts here; both belong to the caller/executor.
    - An executor result that is not an ExecutionOutcome, a bool or a
      ``{"success": bool}`` mapping fails its item.

Failure modes:
    - A set ``cancel_event`` stops later chunks from starting; their items
      settle as failed with ``CANCELLED_MESSAGE``.  Items already running
      are allowed to finish.
"""

from __future__ import annotations

import contextvars
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any

from console_kernel.logging_config import get_logger

from console_batch.domain.types import (
    BatchJob,
    BatchResult,
    ExecutionOutcome,
    partition,
)
from console_batch.services.progress import UNKNOWN_ERROR, ProgressTracker
from console_batch.tasks.base import BatchItemExecutor

logger = get_logger("batch.coordinator")

DEFAULT_CHUNK_SIZE = 3
CANCELLED_MESSAGE = "Cancelled before execution"
INVALID_RESULT_MESSAGE = "Invalid executor result"


class BatchCoordinator:
    """Runs a job's items in ordered chunks with a barrier between chunks.

    Non-goals:
        - Does NOT retry failed items -- re-run with the failed subset.
        - Does NOT write to the snapshot store.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_concurrency: int | None = None,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self._chunk_size = chunk_size
        self._max_concurrency = max_concurrency

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def run(
        self,
        job: BatchJob,
        executor: BatchItemExecutor,
        chunk_size: int | None = None,
        max_concurrency: int | None = None,
        *,
        tracker: ProgressTracker | None = None,
        skip: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
        original_values: Mapping[str, Any] | None = None,
    ) -> BatchResult:
        """Execute every item of ``job`` and aggregate the outcomes.

        Args:
            job: The validated job.
            executor: Per-item executor; called once per non-skipped id.
            chunk_size: Overrides the coordinator's chunk size.
            max_concurrency: Worker cap, clamped to the chunk size (the
                chunk is already the concurrency bound).
            tracker: Progress tracker to report into; a fresh one if None.
            skip: ``{id: reason}`` for ids that fail without an executor call.
            cancel_event: Checked before each chunk.
            original_values: Pre-batch values attached to item errors.
        """
        size = chunk_size or self._chunk_size
        chunks = partition(job.target_ids, size)
        cap = max_concurrency or self._max_concurrency or size
        workers = max(1, min(cap, size))
        tracker = tracker or ProgressTracker()
        skip = dict(skip or {})

        tracker.start(job.target_ids, original_values)
        logger.info(
            "batch_run_started",
            extra={
                "job_id": str(job.job_id),
                "total_items": job.total,
                "chunk_size": size,
                "chunks": len(chunks),
                "workers": workers,
            },
        )

        barriers = 0
        cancelled = False
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="batch-item",
        ) as pool:
            for index, chunk in enumerate(chunks):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    self._settle_unstarted(tracker, chunks[index:])
                    logger.warning(
                        "batch_run_cancelled",
                        extra={
                            "job_id": str(job.job_id),
                            "completed_chunks": index,
                            "remaining_chunks": len(chunks) - index,
                        },
                    )
                    break

                futures = []
                for item_id in chunk:
                    if item_id in skip:
                        tracker.report_settled(item_id, False, skip[item_id])
                        continue
                    ctx = contextvars.copy_context()
                    futures.append(
                        pool.submit(
                            ctx.run, self._run_item, job, item_id, executor, tracker,
                        )
                    )

                # Barrier: the whole chunk settles before the next one starts.
                wait(futures)
                for future in futures:
                    # _run_item converts executor errors; anything left is a bug.
                    future.result()
                barriers += 1
                logger.debug(
                    "batch_chunk_settled",
                    extra={
                        "job_id": str(job.job_id),
                        "chunk_index": index,
                        "chunk_items": len(chunk),
                    },
                )

        state = tracker.snapshot_state()
        return BatchResult.from_items(
            job,
            tracker.items(),
            state,
            barriers=barriers,
            cancelled=cancelled,
        )

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _run_item(
        job: BatchJob,
        item_id: str,
        executor: BatchItemExecutor,
        tracker: ProgressTracker,
    ) -> None:
        tracker.report_in_flight([item_id])
        try:
            outcome = executor.execute(item_id, job.operation, job.parameters)
        except Exception as exc:
            logger.warning(
                "batch_item_raised",
                extra={"item_id": item_id, "error": str(exc)},
                exc_info=True,
            )
            tracker.report_settled(item_id, False, str(exc) or type(exc).__name__)
            return

        outcome = _as_outcome(outcome)

        if outcome.success:
            tracker.report_settled(item_id, True)
        else:
            logger.info(
                "batch_item_failed",
                extra={"item_id": item_id, "error": outcome.error},
            )
            tracker.report_settled(item_id, False, outcome.error or UNKNOWN_ERROR)

    @staticmethod
    def _settle_unstarted(
        tracker: ProgressTracker,
        chunks: tuple[tuple[str, ...], ...],
    ) -> None:
        for chunk in chunks:
            for item_id in chunk:
                tracker.report_settled(item_id, False, CANCELLED_MESSAGE)


def _as_outcome(result: Any) -> ExecutionOutcome:
    """Accept ``ExecutionOutcome``, a bool, or ``{"success": bool, "error": ...}``.

    Anything else fails the item; a truthy object is never a success.
    """
    if isinstance(result, ExecutionOutcome):
        return result
    if isinstance(result, bool):
        return ExecutionOutcome(success=result)
    if isinstance(result, Mapping) and isinstance(result.get("success"), bool):
        error = result.get("error")
        return ExecutionOutcome(
            success=result["success"],
            error=str(error) if error is not None else None,
        )
    logger.warning(
        "batch_item_invalid_result",
        extra={"result_type": type(result).__name__},
    )
    return ExecutionOutcome.failure(INVALID_RESULT_MESSAGE)
