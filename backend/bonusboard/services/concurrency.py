# Overview: Service-layer operations for concurrency; DB retry helpers and the sync lock registry.

from __future__ import annotations

import threading
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Anything else propagates immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


class SyncLockRegistry:
    """
    Process-local status map for sync runs keyed by (mode, store, start, end).

    acquire() is the only way to enter in_progress and fails if the key is
    already running. The map is never persisted; with several app instances
    this must be swapped for a shared lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status: dict[tuple, str] = {}

    def acquire(self, key: tuple) -> bool:
        with self._lock:
            if self._status.get(key) == STATUS_IN_PROGRESS:
                return False
            self._status[key] = STATUS_IN_PROGRESS
            return True

    def release(self, key: tuple, *, success: bool) -> None:
        with self._lock:
            self._status[key] = STATUS_COMPLETED if success else STATUS_FAILED

    def status(self, key: tuple) -> str | None:
        with self._lock:
            return self._status.get(key)

    def clear(self) -> None:
        with self._lock:
            self._status.clear()
