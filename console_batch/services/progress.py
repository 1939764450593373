"""
ProgressTracker -- Lock-guarded per-job progress aggregate.

Contract:
    ``start()`` registers the job's items, ``report_in_flight()`` marks
    items whose executor call is starting, ``report_settled()`` records
    each outcome exactly once, ``snapshot_state()`` returns an immutable
    ``ProgressState``.  Observers registered with ``subscribe()`` receive
    every new state; they are a read-only view, never a control surface.

Architecture: console_batch/services.  The counters here are the only
    state written concurrently by the coordinator's worker threads.

Invariants enforced:
    - Every read-modify-write of the counters happens under one lock.
    - completed + failed + in_flight == total at every observed instant.
    - Each item transitions at most once per lifecycle edge
      (InvalidItemTransitionError otherwise).
    - ``percentage`` is derived from the counters, never stored.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any

from console_kernel.logging_config import get_logger

from console_batch.domain.types import (
    BatchItem,
    BatchItemStatus,
    ItemError,
    ProgressState,
)

logger = get_logger("batch.progress")

ProgressObserver = Callable[[ProgressState], None]

UNKNOWN_ERROR = "Unknown error"


class ProgressTracker:
    """Concurrency-safe progress counters for one batch job."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._observers: list[ProgressObserver] = []
        self._reset()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(
        self,
        item_ids: Sequence[str],
        original_values: Mapping[str, Any] | None = None,
    ) -> None:
        """Register the job's items as PENDING; all of them count as in flight."""
        with self._lock:
            self._reset()
            self._items = {item_id: BatchItem(item_id) for item_id in item_ids}
            self._original_values = dict(original_values or {})
            self._total = len(self._items)
            self._in_flight = self._total
            self._publish()

    def report_in_flight(self, item_ids: Iterable[str]) -> None:
        """Mark items whose executor call is about to start."""
        with self._lock:
            for item_id in item_ids:
                self._items[item_id].transition(BatchItemStatus.IN_FLIGHT)
                self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            self._publish()

    def report_settled(
        self,
        item_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Record the outcome of one item.

        Items settled straight from PENDING (never launched) are legal and
        only ever fail.
        """
        with self._lock:
            item = self._items[item_id]
            was_running = item.status is BatchItemStatus.IN_FLIGHT
            if success:
                item.transition(BatchItemStatus.SUCCEEDED)
                self._completed += 1
            else:
                message = error or UNKNOWN_ERROR
                item.transition(BatchItemStatus.FAILED, message)
                self._failed += 1
                self._errors.append(
                    ItemError(
                        item_id=item_id,
                        message=message,
                        original_value=self._original_values.get(item_id),
                    )
                )
            if was_running:
                self._active -= 1
            self._in_flight -= 1
            self._publish()

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def snapshot_state(self) -> ProgressState:
        with self._lock:
            return self._state()

    def items(self) -> dict[str, BatchItem]:
        """Copies of every item, keyed by id."""
        with self._lock:
            return {item_id: replace(item) for item_id, item in self._items.items()}

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously running executor calls seen."""
        with self._lock:
            return self._peak_active

    def subscribe(self, observer: ProgressObserver) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _reset(self) -> None:
        self._items: dict[str, BatchItem] = {}
        self._original_values: dict[str, Any] = {}
        self._total = 0
        self._completed = 0
        self._failed = 0
        self._in_flight = 0
        self._active = 0
        self._peak_active = 0
        self._errors: list[ItemError] = []

    def _state(self) -> ProgressState:
        return ProgressState(
            total=self._total,
            completed=self._completed,
            failed=self._failed,
            in_flight=self._in_flight,
            active=self._active,
            errors=tuple(self._errors),
        )

    def _publish(self) -> None:
        # Runs under self._lock so observers see states in order.
        if not self._observers:
            return
        state = self._state()
        for observer in tuple(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("progress_observer_failed")
