from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

# IGDB allows 4 requests per second per client id.
IGDB_MAX_REQUESTS = 4
IGDB_TIME_WINDOW_SECONDS = 1.0


class RateLimiter:
    """
    Sliding-window limiter shared by every outbound IGDB call in this process.

    Not coordinated across processes; each worker gets its own window.
    """

    def __init__(
        self,
        max_requests: int = IGDB_MAX_REQUESTS,
        time_window: float = IGDB_TIME_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.time_window = time_window
        self._clock = clock
        self._sleep = sleep
        self._requests: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.time_window:
            self._requests.popleft()

    def throttle(self) -> None:
        """
        Block until a slot opens in the window, then record this request.
        """

        while True:
            with self._lock:
                now = self._clock()
                self._prune(now)
                if len(self._requests) < self.max_requests:
                    self._requests.append(now)
                    return
                wait_seconds = self.time_window - (now - self._requests[0])

            logger.debug(f"IGDB rate limit reached; waiting {wait_seconds:.3f}s")
            self._sleep(max(wait_seconds, 0.0))

    @property
    def pending(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._requests)
