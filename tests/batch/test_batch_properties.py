"""
Property-based tests for the batch engine using Hypothesis.

Properties:
- Aggregation does not depend on the order items settle in.
- completed + failed + in_flight == total at every observed state.
- Barriers == ceil(N / chunk_size) and peak concurrency <= chunk_size.
- Failed projected items always end at their original value.
"""

import math
import random

from hypothesis import given, settings
from hypothesis import strategies as st

from console_kernel.domain.clock import DeterministicClock

from console_batch.domain.types import BatchJob, OperationKind
from console_batch.services.coordinator import BatchCoordinator
from console_batch.services.progress import ProgressTracker
from console_batch.services.reconciliation import ReconciliationManager
from console_batch.services.snapshot_store import SnapshotStore


@st.composite
def outcomes(draw, max_size=30):
    """A list of (id, succeeded) pairs with unique ids."""
    size = draw(st.integers(min_value=1, max_value=max_size))
    flags = draw(st.lists(st.booleans(), min_size=size, max_size=size))
    return [(f"id-{i}", ok) for i, ok in enumerate(flags)]


class _FlagExecutor:
    def __init__(self, verdicts):
        self.verdicts = dict(verdicts)

    def execute(self, item_id, operation, parameters):
        return self.verdicts[item_id]


class TestAggregationProperties:
    @given(items=outcomes(), seed=st.integers(min_value=0, max_value=10_000))
    @settings(max_examples=100)
    def test_settle_order_does_not_matter(self, items, seed):
        ids = [item_id for item_id, _ in items]

        def settle(order):
            tracker = ProgressTracker()
            tracker.start(ids)
            for item_id, ok in order:
                tracker.report_in_flight([item_id])
                tracker.report_settled(item_id, ok, None if ok else f"{item_id} failed")
            state = tracker.snapshot_state()
            return (
                state.completed,
                state.failed,
                sorted(e.item_id for e in state.errors),
                {k: v.status for k, v in tracker.items().items()},
            )

        shuffled = list(items)
        random.Random(seed).shuffle(shuffled)
        assert settle(items) == settle(shuffled)

    @given(items=outcomes())
    @settings(max_examples=100)
    def test_counters_balance_at_every_step(self, items):
        tracker = ProgressTracker()
        states = []
        tracker.subscribe(states.append)
        tracker.start([item_id for item_id, _ in items])
        for item_id, ok in items:
            tracker.report_in_flight([item_id])
            tracker.report_settled(item_id, ok)

        for state in states:
            assert state.completed + state.failed + state.in_flight == state.total
            assert 0 <= state.percentage <= 100
        assert states[-1].percentage == 100


class TestCoordinatorProperties:
    @given(items=outcomes(max_size=20), chunk=st.integers(min_value=1, max_value=6))
    @settings(max_examples=40, deadline=None)
    def test_barriers_and_partition(self, items, chunk):
        job = BatchJob(operation=OperationKind.BAN, target_ids=[i for i, _ in items])
        tracker = ProgressTracker()
        result = BatchCoordinator(chunk_size=chunk).run(
            job, _FlagExecutor(items), tracker=tracker,
        )

        assert result.barriers == math.ceil(len(items) / chunk)
        assert tracker.peak_active <= chunk
        assert set(result.successful_ids) | set(result.failed_ids) == set(job.target_ids)
        assert not set(result.successful_ids) & set(result.failed_ids)
        assert result.overall_success == all(ok for _, ok in items)


class TestRollbackProperty:
    @given(items=outcomes(max_size=15))
    @settings(max_examples=40, deadline=None)
    def test_failed_items_end_at_original(self, items):
        originals = {
            item_id: {"id": item_id, "role": "user", "banned": False}
            for item_id, _ in items
        }
        store = SnapshotStore(originals)
        manager = ReconciliationManager(
            store, _FlagExecutor(items), clock=DeterministicClock(),
        )
        job = BatchJob(operation=OperationKind.BAN, target_ids=list(originals))

        result = manager.execute(job)

        for item_id in result.failed_ids:
            assert store.get(item_id) == originals[item_id]
        for item_id in result.successful_ids:
            assert store.get(item_id)["banned"] is True
        assert set(result.reverted_ids) == set(result.failed_ids)
