"""
Per-caller request rate limiting.

Sliding window: a caller may make at most ``max_requests`` requests in any
``window_ms`` span. Timestamps that leave the window are discarded lazily,
and cleanup() drops callers that have gone quiet.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MS = 60 * 1000


def _now_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """In-memory sliding-window limiter keyed by caller id.

    Like the response cache, every operation is synchronous, so asyncio
    tasks can share one instance.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: float = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = _now_ms,
    ):
        """Initialize the limiter.

        Args:
            max_requests: Requests allowed per caller within one window
            window_ms: Window length in milliseconds
            clock: Millisecond clock, injectable for tests

        Raises:
            ValueError: If max_requests or window_ms is out of range
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def check(self, caller_id: str) -> bool:
        """Count a request for ``caller_id`` if the window has room.

        Rejected requests are not counted.

        Returns:
            True if the request is allowed, False if the limit is reached
        """
        now = self._clock()
        timestamps = self._requests.setdefault(caller_id, deque())
        self._expire(timestamps, now)

        if len(timestamps) >= self.max_requests:
            logger.warning("Rate limit exceeded for caller: %s", caller_id)
            return False

        timestamps.append(now)
        return True

    def retry_after_ms(self, caller_id: str) -> float:
        """Milliseconds until the caller's oldest counted request leaves the window."""
        timestamps = self._requests.get(caller_id)
        if not timestamps:
            return 0.0
        return max(0.0, timestamps[0] + self.window_ms - self._clock())

    def cleanup(self) -> int:
        """Forget callers with no requests inside the window.

        Returns:
            Number of callers removed
        """
        now = self._clock()
        stale = []
        for caller_id, timestamps in self._requests.items():
            self._expire(timestamps, now)
            if not timestamps:
                stale.append(caller_id)

        for caller_id in stale:
            del self._requests[caller_id]
        if stale:
            logger.debug("Rate limiter forgot %d idle callers", len(stale))
        return len(stale)

    def _expire(self, timestamps: Deque[float], now: float) -> None:
        while timestamps and now - timestamps[0] >= self.window_ms:
            timestamps.popleft()
