"""Sliding-window gate for outbound AI calls.

Advisory and in-process only: the window lives in memory and resets when the
process restarts.
"""

import threading
import time
from collections import deque
from collections.abc import Callable

MAX_CALLS_PER_MINUTE = 10
MINUTE_IN_MS = 60 * 1000


class RateLimitExceeded(RuntimeError):
    """Raised when too many AI calls were made within the window."""


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """Allows at most `max_calls` calls per trailing `window_ms`.

    Timestamps are kept in call order, so expiring old calls is a prefix trim.
    `clock` returns milliseconds; tests pass a fake one.
    """

    def __init__(
        self,
        max_calls: int = MAX_CALLS_PER_MINUTE,
        window_ms: float = MINUTE_IN_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.max_calls = max_calls
        self.window_ms = window_ms
        self._clock = clock
        self._calls: deque[float] = deque()
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        while self._calls and self._calls[0] < now - self.window_ms:
            self._calls.popleft()

    def check_rate_limit(self) -> bool:
        """True if another call is allowed right now."""
        with self._lock:
            self._purge(self._clock())
            return len(self._calls) < self.max_calls

    def record_api_call(self) -> None:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._calls.append(now)

    def acquire(self) -> None:
        """Check and record in one step; raise RateLimitExceeded when full."""
        with self._lock:
            now = self._clock()
            self._purge(now)
            if len(self._calls) >= self.max_calls:
                raise RateLimitExceeded(
                    f"Rate limit of {self.max_calls} calls per "
                    f"{self.window_ms / 1000:g}s exceeded"
                )
            self._calls.append(now)

    def __len__(self) -> int:
        return len(self._calls)
