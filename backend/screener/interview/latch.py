from __future__ import annotations

import logging
import time
from threading import Lock

logger = logging.getLogger("screener.interview.latch")


class OneShotLatch:
    """Fires at most once; every later attempt reports False."""

    def __init__(self, name: str):
        self.name = name
        self._lock = Lock()
        self._fired_at: float | None = None

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired_at is not None

    def try_fire(self) -> bool:
        with self._lock:
            if self._fired_at is not None:
                logger.info("[LATCH %s] skipped (already fired)", self.name)
                return False
            self._fired_at = time.monotonic()
            return True


class AdvanceLock:
    """
    Per-candidate guard around "fetch next question" / "finalize".

    Acquired with the question count observed at request time; released when
    a different count is observed (the next question landed in the store) or
    explicitly when finalization completes.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = Lock()
        self._held = False
        self._reason: str | None = None
        self._baseline_count: int | None = None
        self._acquired_at: float | None = None

    @property
    def held(self) -> bool:
        with self._lock:
            return self._held

    def try_acquire(self, reason: str, question_count: int) -> bool:
        with self._lock:
            if self._held:
                logger.info(
                    "[ADVANCE %s] skipped (held by %s) | reason=%s",
                    self.name,
                    self._reason,
                    reason,
                )
                return False
            self._held = True
            self._reason = reason
            self._baseline_count = int(question_count)
            self._acquired_at = time.monotonic()
            logger.info("[ADVANCE %s] acquired | reason=%s count=%s", self.name, reason, question_count)
            return True

    def observe_count(self, question_count: int) -> bool:
        with self._lock:
            if not self._held or self._baseline_count is None:
                return False
            if int(question_count) == self._baseline_count:
                return False
            self._release_locked("question_arrived")
            return True

    def release(self, cause: str) -> None:
        with self._lock:
            if self._held:
                self._release_locked(cause)

    def _release_locked(self, cause: str) -> None:
        elapsed = time.monotonic() - float(self._acquired_at or time.monotonic())
        logger.info("[ADVANCE %s] released | cause=%s held=%.2fs", self.name, cause, elapsed)
        self._held = False
        self._reason = None
        self._baseline_count = None
        self._acquired_at = None
