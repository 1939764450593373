"""
SnapshotStore -- Versioned, subscribable cache of last known entity state.

Contract:
    ``get`` / ``entry`` read, ``set`` writes unconditionally and returns the
    new version, ``set_if_version`` writes only when the caller's expected
    version still matches (compare-and-set), ``remove`` deletes.  Every
    successful mutation notifies subscribers with ``(key, new_value)``;
    removals notify with ``None``.

Architecture: console_batch/services.  Long-lived and shared by every
    batch and every reader in the process; handed to collaborators by
    constructor injection.

Invariants enforced:
    - Values are deep-copied on the way in and on the way out; no caller
      ever holds a reference to stored state.
    - Versions are drawn from one store-wide counter, so a key that is
      removed and written again never reuses a version a stale revert
      might still be holding.
    - Subscribers run after the store lock is released.  Notifications are
      queued under the lock and delivered one at a time in write order, so
      a subscriber never sees an older value for a key after a newer one.
"""

from __future__ import annotations

import copy
import threading
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from console_kernel.exceptions import SnapshotKeyNotFoundError, VersionConflictError
from console_kernel.logging_config import get_logger

from console_batch.domain.types import PENDING_DELETE, SnapshotEntry

logger = get_logger("batch.snapshot")

Subscriber = Callable[[str, Any], None]


class SnapshotStore:
    """Thread-safe keyed cache with compare-and-set writes."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._lock = threading.RLock()
        self._entries: dict[str, SnapshotEntry] = {}
        self._last_version = 0
        self._subscribers: list[Subscriber] = []
        self._pending: deque[tuple[str, Any]] = deque()
        self._delivering = False
        if initial:
            for key, value in initial.items():
                self._write(key, value)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Any:
        """Return a copy of the value for ``key``, or None if absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return copy.deepcopy(entry.value)

    def entry(self, key: str) -> SnapshotEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return SnapshotEntry(
                key=entry.key,
                value=copy.deepcopy(entry.value),
                version=entry.version,
            )

    def version(self, key: str) -> int | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.version if entry is not None else None

    def require_version(self, key: str, expected_version: int) -> SnapshotEntry:
        """Return the entry if it is still at ``expected_version``.

        Raises:
            SnapshotKeyNotFoundError: If ``key`` is absent.
            VersionConflictError: If ``key`` was written since.
        """
        found = self.entry(key)
        if found is None:
            raise SnapshotKeyNotFoundError(key)
        if found.version != expected_version:
            raise VersionConflictError(key, expected_version, found.version)
        return found

    def keys(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._entries)

    def visible_items(self) -> dict[str, Any]:
        """Copies of every value except entries awaiting remote deletion."""
        with self._lock:
            return {
                key: copy.deepcopy(entry.value)
                for key, entry in self._entries.items()
                if entry.value is not PENDING_DELETE
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set(self, key: str, value: Any) -> int:
        """Write unconditionally and return the new version."""
        with self._lock:
            entry = self._write(key, value)
            self._pending.append((key, entry.value))
        self._deliver()
        return entry.version

    def set_if_version(self, key: str, expected_version: int, value: Any) -> bool:
        """Write only if ``key`` is still at ``expected_version``."""
        with self._lock:
            current = self._entries.get(key)
            if current is None or current.version != expected_version:
                logger.debug(
                    "snapshot_cas_rejected",
                    extra={
                        "key": key,
                        "expected_version": expected_version,
                        "actual_version": current.version if current else None,
                    },
                )
                return False
            entry = self._write(key, value)
            self._pending.append((key, entry.value))
        self._deliver()
        return True

    def remove(self, key: str) -> bool:
        """Delete ``key``; returns False if it was already absent."""
        with self._lock:
            if self._entries.pop(key, None) is None:
                return False
            self._pending.append((key, None))
        self._deliver()
        return True

    def load(self, values: Mapping[str, Any]) -> dict[str, int]:
        """Write many values unconditionally (authoritative refresh)."""
        versions: dict[str, int] = {}
        for key, value in values.items():
            versions[key] = self.set(key, value)
        return versions

    def remove_many(self, keys: Iterable[str]) -> int:
        return sum(1 for key in keys if self.remove(key))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(key, value)``; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _write(self, key: str, value: Any) -> SnapshotEntry:
        # Caller holds self._lock.
        self._last_version += 1
        entry = SnapshotEntry(
            key=key,
            value=copy.deepcopy(value),
            version=self._last_version,
        )
        self._entries[key] = entry
        return entry

    def _deliver(self) -> None:
        """Drain queued notifications unless another thread is already doing so.

        The draining thread keeps going until the queue is empty, so a
        writer that finds delivery in progress can return immediately.
        """
        while True:
            with self._lock:
                if self._delivering or not self._pending:
                    return
                self._delivering = True
                key, value = self._pending.popleft()
                subscribers = tuple(self._subscribers)
            try:
                self._notify(subscribers, key, value)
            finally:
                with self._lock:
                    self._delivering = False

    def _notify(
        self,
        subscribers: tuple[Subscriber, ...],
        key: str,
        value: Any,
    ) -> None:
        for callback in subscribers:
            try:
                callback(key, copy.deepcopy(value))
            except Exception:
                logger.exception(
                    "snapshot_subscriber_failed",
                    extra={"key": key},
                )
