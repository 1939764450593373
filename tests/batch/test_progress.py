"""
Tests for console_batch.services.progress.

Validates counter arithmetic, error capture, observer delivery and the
absence of lost updates under concurrent reporting.
"""

import threading

import pytest

from console_kernel.exceptions import InvalidItemTransitionError

from console_batch.domain.types import BatchItemStatus
from console_batch.services.progress import UNKNOWN_ERROR, ProgressTracker


def _assert_balanced(state):
    assert state.completed + state.failed + state.in_flight == state.total


class TestCounters:
    def test_start(self):
        tracker = ProgressTracker()
        tracker.start(["a", "b", "c"])
        state = tracker.snapshot_state()
        assert (state.total, state.completed, state.failed, state.in_flight) == (3, 0, 0, 3)
        assert state.active == 0
        assert state.percentage == 0

    def test_success_and_failure(self):
        tracker = ProgressTracker()
        tracker.start(["a", "b"], original_values={"b": {"role": "user"}})
        tracker.report_in_flight(["a", "b"])
        tracker.report_settled("a", True)
        tracker.report_settled("b", False, "Server rejected")

        state = tracker.snapshot_state()
        assert (state.completed, state.failed, state.in_flight, state.active) == (1, 1, 0, 0)
        assert state.percentage == 100
        assert state.is_settled
        assert len(state.errors) == 1
        error = state.errors[0]
        assert error.item_id == "b"
        assert error.message == "Server rejected"
        assert error.original_value == {"role": "user"}

    def test_failure_without_message(self):
        tracker = ProgressTracker()
        tracker.start(["a"])
        tracker.report_in_flight(["a"])
        tracker.report_settled("a", False)
        assert tracker.snapshot_state().errors[0].message == UNKNOWN_ERROR

    def test_settle_unlaunched_item(self):
        tracker = ProgressTracker()
        tracker.start(["a"])
        tracker.report_settled("a", False, "skipped")
        state = tracker.snapshot_state()
        assert state.failed == 1
        assert state.active == 0
        assert tracker.items()["a"].status is BatchItemStatus.FAILED

    def test_double_settle_rejected(self):
        tracker = ProgressTracker()
        tracker.start(["a"])
        tracker.report_in_flight(["a"])
        tracker.report_settled("a", True)
        with pytest.raises(InvalidItemTransitionError):
            tracker.report_settled("a", True)
        assert tracker.snapshot_state().completed == 1

    def test_peak_active(self):
        tracker = ProgressTracker()
        tracker.start(["a", "b", "c"])
        tracker.report_in_flight(["a", "b"])
        tracker.report_settled("a", True)
        tracker.report_in_flight(["c"])
        assert tracker.peak_active == 2

    def test_items_are_copies(self):
        tracker = ProgressTracker()
        tracker.start(["a"])
        tracker.items()["a"].status = BatchItemStatus.SUCCEEDED
        assert tracker.items()["a"].status is BatchItemStatus.PENDING

    def test_restart_resets(self):
        tracker = ProgressTracker()
        tracker.start(["a"])
        tracker.report_settled("a", False, "x")
        tracker.start(["b", "c"])
        state = tracker.snapshot_state()
        assert (state.total, state.failed, state.errors) == (2, 0, ())


class TestObservers:
    def test_every_state_is_balanced(self):
        tracker = ProgressTracker()
        states = []
        tracker.subscribe(states.append)
        tracker.start(["a", "b"])
        tracker.report_in_flight(["a"])
        tracker.report_settled("a", True)
        tracker.report_in_flight(["b"])
        tracker.report_settled("b", False, "x")

        assert len(states) == 5
        for state in states:
            _assert_balanced(state)
        assert states[-1].is_settled

    def test_unsubscribe(self):
        tracker = ProgressTracker()
        states = []
        unsubscribe = tracker.subscribe(states.append)
        unsubscribe()
        tracker.start(["a"])
        assert states == []

    def test_failing_observer_does_not_break_tracking(self, captured_logs):
        tracker = ProgressTracker()

        def broken(state):
            raise RuntimeError("ui gone")

        tracker.subscribe(broken)
        tracker.start(["a"])
        tracker.report_in_flight(["a"])
        tracker.report_settled("a", True)

        assert tracker.snapshot_state().completed == 1
        assert any(r["message"] == "progress_observer_failed" for r in captured_logs())


class TestConcurrentReporting:
    def test_no_lost_updates(self):
        ids = [f"item-{i}" for i in range(400)]
        tracker = ProgressTracker()
        tracker.start(ids)
        observed = []
        tracker.subscribe(observed.append)
        barrier = threading.Barrier(8)

        def worker(chunk):
            barrier.wait()
            for item_id in chunk:
                tracker.report_in_flight([item_id])
                tracker.report_settled(item_id, item_id.endswith(("0", "2", "4", "6", "8")), "odd")

        threads = [
            threading.Thread(target=worker, args=(ids[n::8],)) for n in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        state = tracker.snapshot_state()
        assert state.completed == 200
        assert state.failed == 200
        assert state.in_flight == 0
        assert state.active == 0
        assert len(state.errors) == 200
        for seen in observed:
            _assert_balanced(seen)
