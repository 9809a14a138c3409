"""
FairReview Rate Limiter Module
==============================
Fixed-window request limiting per client.

Advisory only: counters live in process memory, reset on restart and
are not shared between service instances.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class _Window:
    started_at: float
    count: int


class FixedWindowRateLimiter:
    """
    Allows at most ``max_requests`` per client in each window.

    Expired windows are swept at most once per window length, so memory
    stays bounded by the clients seen in the last two windows.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    def allow(self, client_id: str) -> bool:
        """Count a request and report whether it is within the limit."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep > self.window_seconds:
                self._sweep(now)

            window = self._windows.get(client_id)
            if window is None or self._expired(window, now):
                self._windows[client_id] = _Window(started_at=now, count=1)
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _expired(self, window: _Window, now: float) -> bool:
        return now - window.started_at > self.window_seconds

    def _sweep(self, now: float) -> None:
        """Drop every expired window. Caller holds the lock."""
        expired = [cid for cid, window in self._windows.items() if self._expired(window, now)]
        for cid in expired:
            del self._windows[cid]
        self._last_sweep = now


def client_id_from_headers(
    forwarded_for: str | None,
    real_ip: str | None,
    peer_host: str | None
) -> str:
    """Identify a client by proxy headers, then by peer address."""
    first_hop = (forwarded_for or "").split(",")[0].strip()
    ip = first_hop or real_ip or peer_host or "anonymous"
    return f"ip:{ip}"
