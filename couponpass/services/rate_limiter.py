"""
Simple in-memory rate limiter.
"""

import threading
import time
from collections import deque
from typing import Deque, Dict


class RateLimiter:
    """Sliding-window limit on pass generation requests per client"""

    def __init__(self, max_requests: int = 20, window_seconds: int = 60):
        """
        Args:
            max_requests: Requests allowed per window; 0 or less disables limiting
            window_seconds: Length of the sliding window in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = time.time()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def _prune(self, client: str, now: float) -> Deque[float]:
        """Drop expired timestamps; clients with none left are forgotten"""
        timestamps = self.requests.get(client, deque())
        while timestamps and timestamps[0] <= now - self.window_seconds:
            timestamps.popleft()
        if not timestamps:
            self.requests.pop(client, None)
        return timestamps

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for client in list(self.requests):
            self._prune(client, now)

    def is_allowed(self, client: str) -> bool:
        """Record a request from client and report whether it is within the limit"""
        if not self.enabled:
            return True
        now = time.time()
        with self._lock:
            self._sweep(now)
            timestamps = self._prune(client, now)
            if len(timestamps) >= self.max_requests:
                return False
            timestamps.append(now)
            self.requests[client] = timestamps
            return True

    def get_reset_time(self, client: str) -> float:
        """Timestamp at which the oldest counted request leaves the window"""
        with self._lock:
            timestamps = self._prune(client, time.time())
            if not timestamps:
                return time.time()
            return timestamps[0] + self.window_seconds
