"""
Pytest fixtures for the batch-mutation engine test suite.

Provides:
- Structured log capture
- Deterministic clock
- Snapshot store seeded with console users
- In-memory SQLite sessions for the audit models
- Scriptable executors
"""

import json
import logging
import threading
import time
from collections.abc import Mapping
from io import StringIO
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from console_kernel.db.base import Base
from console_kernel.domain.clock import DeterministicClock
from console_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Register the audit tables on Base.metadata
import console_batch.models  # noqa: F401
from console_batch.domain.types import ExecutionOutcome, OperationKind
from console_batch.services.snapshot_store import SnapshotStore


TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture console_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, manager):
            manager.execute(job)
            logs = captured_logs()
            assert any(r["message"] == "batch_job_settled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("console_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and snapshot fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock()


def make_user(user_id: str, role: str = "user", banned: bool = False) -> dict:
    return {
        "id": user_id,
        "name": f"User {user_id}",
        "email": f"{user_id}@example.com",
        "role": role,
        "banned": banned,
        "ban_reason": "spam" if banned else None,
        "ban_expires": None,
        "updated_at": "2025-01-01T00:00:00+00:00",
    }


@pytest.fixture
def users():
    """Five regular users u1..u5, none banned."""
    return {f"u{i}": make_user(f"u{i}") for i in range(1, 6)}


@pytest.fixture
def store(users):
    return SnapshotStore(users)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine)
    sess = factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Executors
# =============================================================================


class ScriptedExecutor:
    """
    Executor whose per-id outcome is scripted up front.

    ``failures`` maps id -> error message; ``raises`` maps id -> exception.
    Every other id succeeds.  Records call order and the highest number of
    concurrent calls observed.
    """

    def __init__(
        self,
        failures: Mapping[str, str] | None = None,
        raises: Mapping[str, Exception] | None = None,
        delay: float = 0.0,
        on_call=None,
    ):
        self.failures = dict(failures or {})
        self.raises = dict(raises or {})
        self.delay = delay
        self.on_call = on_call
        self.calls: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.parameters_seen: list[Mapping[str, Any]] = []
        self._lock = threading.Lock()
        self._active = 0
        self.peak_active = 0

    def execute(
        self,
        item_id: str,
        operation: OperationKind,
        parameters: Mapping[str, Any],
    ) -> ExecutionOutcome:
        with self._lock:
            self.calls.append(item_id)
            self.events.append(("start", item_id))
            self.parameters_seen.append(parameters)
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)
        try:
            if self.on_call is not None:
                self.on_call(item_id)
            if self.delay:
                time.sleep(self.delay)
            if item_id in self.raises:
                raise self.raises[item_id]
            if item_id in self.failures:
                return ExecutionOutcome.failure(self.failures[item_id])
            return ExecutionOutcome.ok()
        finally:
            with self._lock:
                self._active -= 1
                self.events.append(("end", item_id))


@pytest.fixture
def executor_factory():
    return ScriptedExecutor


class RecordingResync:
    """Resync hook that records every call."""

    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, ...]] = []
        self.error = error

    def __call__(self, keys: tuple[str, ...]) -> None:
        self.calls.append(keys)
        if self.error is not None:
            raise self.error


@pytest.fixture
def resync():
    return RecordingResync()


@pytest.fixture
def resync_factory():
    return RecordingResync


@pytest.fixture
def user_factory():
    return make_user
