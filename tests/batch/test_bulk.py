"""Tests for console_batch.bulk -- the console-facing bulk user operations."""

import threading
from uuid import uuid4

import pytest

from console_kernel.exceptions import MalformedJobError, PreconditionDeniedError

from console_batch.bulk import BulkUserOperations
from console_batch.domain.permissions import Actor, RoleHierarchyGate
from console_batch.domain.types import PENDING_DELETE, BatchJobStatus, OperationKind
from console_batch.services.coordinator import BatchCoordinator
from console_batch.services.reconciliation import ReconciliationManager


@pytest.fixture
def make_bulk(store, clock, resync):
    def _make(executor, gate=None, chunk_size=3):
        manager = ReconciliationManager(
            store,
            executor,
            gate=gate,
            resync=resync,
            clock=clock,
            coordinator=BatchCoordinator(chunk_size=chunk_size),
        )
        return BulkUserOperations(manager, actor_id=uuid4())
    return _make


class TestBulkActions:
    def test_empty_ids_is_noop(self, make_bulk, executor_factory, resync):
        executor = executor_factory()
        assert make_bulk(executor).bulk_delete([]) is None
        assert executor.calls == []
        assert resync.calls == []

    def test_bulk_delete(self, make_bulk, executor_factory, store):
        result = make_bulk(executor_factory()).bulk_delete(["u1", "u2"])
        assert result.operation is OperationKind.DELETE
        assert result.successful_ids == ("u1", "u2")
        assert store.get("u1") is PENDING_DELETE

    def test_bulk_ban_passes_reason(self, make_bulk, executor_factory, store):
        executor = executor_factory()
        make_bulk(executor).bulk_ban(["u1"], reason="abuse")
        assert executor.parameters_seen == [{"ban_reason": "abuse"}]
        assert store.get("u1")["ban_reason"] == "abuse"

    def test_bulk_ban_without_reason_sends_no_parameter(self, make_bulk, executor_factory):
        executor = executor_factory()
        make_bulk(executor).bulk_ban(["u1"])
        assert executor.parameters_seen == [{}]

    def test_bulk_unban_activate_deactivate(self, make_bulk, executor_factory, store):
        bulk = make_bulk(executor_factory())
        bulk.bulk_deactivate(["u1"])
        assert store.get("u1")["banned"] is True
        bulk.bulk_activate(["u1"])
        assert store.get("u1")["banned"] is False
        bulk.bulk_ban(["u2"])
        bulk.bulk_unban(["u2"])
        assert store.get("u2")["ban_reason"] is None

    def test_bulk_change_role(self, make_bulk, executor_factory, store):
        result = make_bulk(executor_factory()).bulk_change_role(["u1", "u2"], "admin")
        assert result.status is BatchJobStatus.COMPLETED
        assert store.get("u2")["role"] == "admin"

    def test_bulk_change_role_invalid(self, make_bulk, executor_factory):
        with pytest.raises(MalformedJobError):
            make_bulk(executor_factory()).bulk_change_role(["u1"], "owner")

    def test_duplicate_ids_rejected(self, make_bulk, executor_factory):
        with pytest.raises(MalformedJobError):
            make_bulk(executor_factory()).bulk_delete(["u1", "u1"])

    def test_denial_propagates(self, make_bulk, executor_factory, store):
        gate = RoleHierarchyGate(Actor(role="user"), store)
        bulk = make_bulk(executor_factory(), gate=gate)
        with pytest.raises(PreconditionDeniedError):
            bulk.bulk_delete(["u1"])
        assert not bulk.status().is_running


class TestBulkStatus:
    def test_idle_status(self, make_bulk, executor_factory):
        status = make_bulk(executor_factory()).status()
        assert not status.is_running
        assert status.current_operation is None
        assert status.progress.total == 0

    def test_status_after_run(self, make_bulk, executor_factory):
        bulk = make_bulk(executor_factory(failures={"u2": "Cannot ban"}))
        bulk.bulk_ban(["u1", "u2", "u3"])

        status = bulk.status()
        assert not status.is_running
        assert status.progress.completed == 2
        assert status.progress.failed == 1
        assert status.progress.percentage == 100
        assert status.has_errors

    def test_status_while_running(self, make_bulk, executor_factory):
        started = threading.Event()
        release = threading.Event()

        def on_call(item_id):
            started.set()
            release.wait(5)

        bulk = make_bulk(executor_factory(on_call=on_call), chunk_size=1)
        worker = threading.Thread(target=bulk.bulk_deactivate, args=(["u1", "u2"],))
        worker.start()
        try:
            assert started.wait(5)
            status = bulk.status()
            assert status.is_running
            assert status.current_operation is OperationKind.DEACTIVATE
            assert status.progress.total == 2
            assert status.progress.in_flight == 2
        finally:
            release.set()
            worker.join(5)
        assert not bulk.status().is_running


class TestBulkCancel:
    def test_cancel_when_idle(self, make_bulk, executor_factory):
        assert make_bulk(executor_factory()).cancel() is False

    def test_cancel_running_operation(self, make_bulk, executor_factory):
        holder = {}

        def on_call(item_id):
            holder["cancelled"] = holder["bulk"].cancel()

        bulk = make_bulk(executor_factory(on_call=on_call), chunk_size=1)
        holder["bulk"] = bulk

        result = bulk.bulk_ban(["u1", "u2", "u3"])

        assert holder["cancelled"] is True
        assert result.status is BatchJobStatus.CANCELLED
        assert result.successful_ids == ("u1",)
        assert result.failed_ids == ("u2", "u3")
