"""Single-slot, rate-limited work queue.

The operator reconciles one object, so the queue only ever holds the
constant key ``changes``. Any number of adds made before the worker picks
the key up collapse into one pending pass; adds made while a pass runs mark
the slot dirty and produce exactly one follow-up pass.
"""

from __future__ import annotations

import logging
import os
import threading
import time

from . import metrics
from .constants import WORKQUEUE_KEY

logger = logging.getLogger(__name__)


class CoalescingQueue:
    """Pending flag plus a backoff timer, safe to use from many threads."""

    def __init__(
        self,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ) -> None:
        if base_delay is None:
            base_delay = float(os.getenv("WORKQUEUE_BASE_DELAY_SECONDS", "0.005"))
        if max_delay is None:
            max_delay = float(os.getenv("WORKQUEUE_MAX_DELAY_SECONDS", "1000"))
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._cond = threading.Condition()
        self._pending = False
        self._processing = False
        self._dirty = False
        self._shutting_down = False
        self._failures = 0
        self._timer: threading.Timer | None = None
        self._ready_at: float | None = None

    def add(self) -> None:
        """Mark the key pending, or dirty if a pass is running."""
        with self._cond:
            if self._shutting_down:
                return
            if self._processing:
                self._dirty = True
                return
            if self._pending:
                return
            self._pending = True
            metrics.workqueue_depth.set(1)
            self._cond.notify()

    def add_after(self, delay: float) -> None:
        """Add the key once ``delay`` seconds have passed.

        An earlier scheduled add wins over a later one.
        """
        if delay <= 0:
            self.add()
            return

        with self._cond:
            if self._shutting_down:
                return
            ready_at = time.monotonic() + delay
            if self._ready_at is not None and self._ready_at <= ready_at:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._ready_at = ready_at
            self._timer = threading.Timer(delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._cond:
            self._timer = None
            self._ready_at = None
        self.add()

    def when(self) -> float:
        """Return the next backoff delay and count one more failure."""
        with self._cond:
            delay = self.base_delay * (2 ** self._failures)
            self._failures += 1
        return min(delay, self.max_delay)

    def add_rate_limited(self) -> None:
        """Add the key after an exponentially growing delay."""
        metrics.workqueue_retries_total.inc()
        self.add_after(self.when())

    def forget(self) -> None:
        """Reset the backoff after a successful pass."""
        with self._cond:
            self._failures = 0

    def num_requeues(self) -> int:
        with self._cond:
            return self._failures

    def get(self, timeout: float | None = None) -> str | None:
        """Block until the key is pending and hand it to the caller.

        Returns None once the queue is shut down and drained, or when the
        timeout expires.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._pending or self._shutting_down, timeout):
                return None
            if not self._pending:
                return None
            self._pending = False
            self._processing = True
            metrics.workqueue_depth.set(0)
            return WORKQUEUE_KEY

    def done(self) -> None:
        """Finish the running pass; re-queue if the key was added meanwhile."""
        with self._cond:
            self._processing = False
            if self._dirty and not self._shutting_down:
                self._dirty = False
                self._pending = True
                metrics.workqueue_depth.set(1)
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting adds and wake up waiting workers."""
        with self._cond:
            self._shutting_down = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
                self._ready_at = None
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return 1 if self._pending else 0
