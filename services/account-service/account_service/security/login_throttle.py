"""In-memory sliding window throttle for failed login attempts."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Deque, Dict


class FailedLoginThrottle:
    """Thread-safe counter of recent login failures per key.

    A key is blocked once ``max_failures`` failures fall inside the trailing
    ``window_seconds``; it unblocks as old failures age out or on ``reset``.
    Keys without failures inside the window hold no memory.
    """

    def __init__(self, max_failures: int, window_seconds: int) -> None:
        """Initialise throttle parameters and per-key storage."""
        self._max_failures = max_failures
        self._window = window_seconds
        self._failures: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def is_blocked(self, key: str) -> bool:
        """Return ``True`` when ``key`` has used up its failure allowance."""
        now = time.time()
        with self._lock:
            return self._prune(key, now) >= self._max_failures

    def record_failure(self, key: str) -> None:
        now = time.time()
        with self._lock:
            self._prune(key, now)
            self._failures.setdefault(key, deque()).append(now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def _prune(self, key: str, now: float) -> int:
        """Drop expired failures for ``key`` and return how many remain."""
        queue = self._failures.get(key)
        if queue is None:
            return 0
        while queue and now - queue[0] > self._window:
            queue.popleft()
        if not queue:
            del self._failures[key]
            return 0
        return len(queue)
