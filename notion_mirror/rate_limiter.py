from __future__ import annotations

import threading
import time
from typing import Optional


class RateLimiter:
    """Thread-safe token-bucket rate limiter shared by every request of a crawl.

    Tokens refill at ``qps`` per second up to ``burst``. Each acquire()
    reserves the next free slot while holding the lock and then waits for it
    outside the lock, so acquirers are served in reservation order and a
    stalled caller cannot be skipped. A qps of 0 disables limiting."""

    def __init__(self, qps: float, burst: int = 1) -> None:
        self._interval = 1.0 / qps if qps > 0 else 0.0
        self._burst = max(1, int(burst))
        self._lock = threading.Lock()
        # theoretical arrival time of the next request with an empty bucket
        self._tat = 0.0

    def acquire(self, cancel: Optional[threading.Event] = None) -> bool:
        """Block until a token is available and take it.

        Returns False if ``cancel`` was set while waiting. The reserved slot
        is not given back."""
        if self._interval <= 0:
            return not (cancel is not None and cancel.is_set())
        with self._lock:
            now = time.monotonic()
            tat = max(self._tat, now)
            allowed_at = tat - (self._burst - 1) * self._interval
            self._tat = tat + self._interval
        delay = allowed_at - now
        if delay <= 0:
            return not (cancel is not None and cancel.is_set())
        if cancel is None:
            time.sleep(delay)
            return True
        return not cancel.wait(delay)
