"""
Typed exception hierarchy for the console kernel and batch engine.

Every error has its own class (catch by type, not by message), a ``code``
class attribute (machine-readable, safe to return from an API), and the
structured data that caused it stored as attributes.

    ConsoleKernelError (base)
    |
    +-- BatchError
    |   +-- MalformedJobError
    |   |   +-- UnknownOperationError
    |   +-- PreconditionDeniedError
    |   +-- BatchJobNotFoundError
    |   +-- BatchAlreadyRunningError
    |   +-- InvalidItemTransitionError
    |   +-- InvalidPhaseTransitionError
    |
    +-- SnapshotError
    |   +-- SnapshotKeyNotFoundError
    |
    +-- ConcurrencyError
        +-- VersionConflictError

Item-level failures reported by an executor are NOT exceptions: they are
recorded on the progress state and surface in ``BatchResult.errors``.
"""

from typing import Any


class ConsoleKernelError(Exception):
    """
    Base exception for all console kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "CONSOLE_KERNEL_ERROR"


# Batch-related exceptions


class BatchError(ConsoleKernelError):
    """Base exception for batch processing errors."""

    code: str = "BATCH_ERROR"


class MalformedJobError(BatchError):
    """Job rejected before any work started (empty/duplicate targets, bad parameters)."""

    code: str = "MALFORMED_JOB"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed batch job: {reason}")


class UnknownOperationError(MalformedJobError):
    """Operation kind is not in the closed set known to the executor."""

    code: str = "UNKNOWN_OPERATION"

    def __init__(self, operation: str, available: tuple[str, ...] = ()):
        self.operation = operation
        self.available = available
        super().__init__(
            f"unknown operation '{operation}'. Available: {list(available)}"
        )


class PreconditionDeniedError(BatchError):
    """Permission gate rejected the whole job; nothing was written."""

    code: str = "PRECONDITION_DENIED"

    def __init__(self, job_id: str, reason: str):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Batch job {job_id} denied: {reason}")


class BatchJobNotFoundError(BatchError):
    """No active batch job with the given ID."""

    code: str = "BATCH_JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Batch job not found: {job_id}")


class BatchAlreadyRunningError(BatchError):
    """A job with the same ID is already being executed."""

    code: str = "BATCH_ALREADY_RUNNING"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Batch job {job_id} is already running")


class InvalidItemTransitionError(BatchError):
    """A batch item was moved along an edge its lifecycle does not allow."""

    code: str = "INVALID_ITEM_TRANSITION"

    def __init__(self, item_id: str, current: str, requested: str):
        self.item_id = item_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Batch item {item_id} cannot move from {current} to {requested}"
        )


class InvalidPhaseTransitionError(BatchError):
    """A job run was moved out of order through its phases."""

    code: str = "INVALID_PHASE_TRANSITION"

    def __init__(self, job_id: str, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Batch job {job_id} cannot move from {current} to {requested}"
        )


# Snapshot-related exceptions


class SnapshotError(ConsoleKernelError):
    """Base exception for snapshot store errors."""

    code: str = "SNAPSHOT_ERROR"


class SnapshotKeyNotFoundError(SnapshotError):
    """Key is absent from the snapshot store."""

    code: str = "SNAPSHOT_KEY_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Snapshot key not found: {key}")


# Concurrency-related exceptions


class ConcurrencyError(ConsoleKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class VersionConflictError(ConcurrencyError):
    """Compare-and-set rejected because the key was written concurrently."""

    code: str = "VERSION_CONFLICT"

    def __init__(self, key: str, expected_version: int, actual_version: Any):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on snapshot key {key}: expected "
            f"{expected_version}, found {actual_version}"
        )
