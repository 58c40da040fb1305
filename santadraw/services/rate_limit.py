from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after: float


class RateLimiter:
    """Sliding-window limiter keyed by arbitrary strings (``"<user>:<action>"``)."""

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_calls = max_calls
        self.period_seconds = period_seconds
        self._clock = clock
        self._calls: Dict[str, Deque[float]] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def _evict_expired(self, now: float) -> None:
        # A window whose newest call has expired holds nothing.
        expired = [
            key for key, window in self._calls.items() if not window or now - window[-1] >= self.period_seconds
        ]
        for key in expired:
            del self._calls[key]

    def allow(self, key: str) -> RateLimitResult:
        now = self._clock()
        self._evict_expired(now)
        window = self._calls.setdefault(key, deque())
        while window and now - window[0] >= self.period_seconds:
            window.popleft()
        if len(window) >= self.max_calls:
            retry_after = self.period_seconds - (now - window[0])
            return RateLimitResult(False, max(retry_after, 0))
        window.append(now)
        return RateLimitResult(True, 0)

    def clear(self) -> None:
        self._calls.clear()
