"""
Tests for the batch, snapshot and concurrency exceptions.

Validates the exception hierarchy, error codes and message formatting.
"""

import pytest

from console_kernel.exceptions import (
    BatchAlreadyRunningError,
    BatchError,
    BatchJobNotFoundError,
    ConcurrencyError,
    ConsoleKernelError,
    InvalidItemTransitionError,
    InvalidPhaseTransitionError,
    MalformedJobError,
    PreconditionDeniedError,
    SnapshotError,
    SnapshotKeyNotFoundError,
    UnknownOperationError,
    VersionConflictError,
)


# =============================================================================
# Exception hierarchy tests
# =============================================================================


class TestExceptionHierarchy:
    @pytest.mark.parametrize("exc_type", [
        MalformedJobError,
        PreconditionDeniedError,
        BatchJobNotFoundError,
        BatchAlreadyRunningError,
        InvalidItemTransitionError,
        InvalidPhaseTransitionError,
    ])
    def test_batch_errors_inherit(self, exc_type):
        assert issubclass(exc_type, BatchError)
        assert issubclass(exc_type, ConsoleKernelError)

    def test_unknown_operation_is_malformed_job(self):
        assert issubclass(UnknownOperationError, MalformedJobError)

    def test_snapshot_key_not_found_inherits(self):
        assert issubclass(SnapshotKeyNotFoundError, SnapshotError)

    def test_version_conflict_inherits(self):
        assert issubclass(VersionConflictError, ConcurrencyError)

    def test_base_codes(self):
        assert ConsoleKernelError.code == "CONSOLE_KERNEL_ERROR"
        assert BatchError.code == "BATCH_ERROR"
        assert SnapshotError.code == "SNAPSHOT_ERROR"
        assert ConcurrencyError.code == "CONCURRENCY_ERROR"


# =============================================================================
# Exception construction tests
# =============================================================================


class TestExceptionConstruction:
    def test_malformed_job(self):
        exc = MalformedJobError("target_ids is empty")
        assert exc.code == "MALFORMED_JOB"
        assert exc.reason == "target_ids is empty"
        assert "target_ids is empty" in str(exc)

    def test_unknown_operation(self):
        exc = UnknownOperationError("archive", ("ban", "delete"))
        assert exc.code == "UNKNOWN_OPERATION"
        assert exc.operation == "archive"
        assert exc.available == ("ban", "delete")
        assert "archive" in str(exc)
        assert "ban" in str(exc)

    def test_precondition_denied(self):
        exc = PreconditionDeniedError("job-1", "role 'user' lacks permission")
        assert exc.code == "PRECONDITION_DENIED"
        assert exc.job_id == "job-1"
        assert exc.reason == "role 'user' lacks permission"
        assert "job-1" in str(exc)

    def test_job_not_found(self):
        exc = BatchJobNotFoundError("job-2")
        assert exc.code == "BATCH_JOB_NOT_FOUND"
        assert "job-2" in str(exc)

    def test_already_running(self):
        exc = BatchAlreadyRunningError("job-3")
        assert exc.code == "BATCH_ALREADY_RUNNING"
        assert "already running" in str(exc)

    def test_invalid_item_transition(self):
        exc = InvalidItemTransitionError("u1", "succeeded", "failed")
        assert exc.code == "INVALID_ITEM_TRANSITION"
        assert (exc.item_id, exc.current, exc.requested) == ("u1", "succeeded", "failed")

    def test_invalid_phase_transition(self):
        exc = InvalidPhaseTransitionError("job-4", "created", "running")
        assert exc.code == "INVALID_PHASE_TRANSITION"
        assert "created" in str(exc) and "running" in str(exc)

    def test_snapshot_key_not_found(self):
        exc = SnapshotKeyNotFoundError("u9")
        assert exc.code == "SNAPSHOT_KEY_NOT_FOUND"
        assert exc.key == "u9"

    def test_version_conflict(self):
        exc = VersionConflictError("u1", 2, 7)
        assert exc.code == "VERSION_CONFLICT"
        assert exc.expected_version == 2
        assert exc.actual_version == 7
        assert "expected 2" in str(exc)
