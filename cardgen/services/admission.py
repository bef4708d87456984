# ─────────────────────────────────────────────────────────────────────────────
# Admission Gate — non-blocking concurrency ceiling for card generation
# ─────────────────────────────────────────────────────────────────────────────
# Load shedding, not queueing: a full gate rejects immediately and the
# caller retries later. No fairness guarantee.
#
# Thread-safe: the counter is guarded by a threading.Lock so the gate holds
# its invariant (0 <= active <= max_concurrent) outside the event loop too.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from cardgen.exceptions import BusyError

logger = structlog.get_logger(__name__)


class AdmissionGate:
    """Counts in-flight generations against a fixed ceiling."""

    def __init__(self, max_concurrent: int = 1) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._active = 0
        self._lock = threading.Lock()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def try_admit(self) -> bool:
        """Take a slot if one is free. Never blocks."""
        with self._lock:
            if self._active >= self._max_concurrent:
                return False
            self._active += 1
            active = self._active
        logger.debug("request_admitted", active_requests=active)
        return True

    def release(self) -> None:
        """Give back a slot taken by a successful try_admit()."""
        with self._lock:
            if self._active == 0:
                raise RuntimeError("release() called with no admitted request")
            self._active -= 1
            active = self._active
        logger.debug("request_released", active_requests=active)

    @contextmanager
    def admitted(self) -> Iterator[None]:
        """Hold a slot for the duration of the block.

        Raises BusyError when the gate is full. The slot is released exactly
        once on every exit path.
        """
        if not self.try_admit():
            raise BusyError()
        try:
            yield
        finally:
            self.release()
