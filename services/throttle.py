"""Process-wide spacing between remote lookups."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

DEFAULT_MIN_INTERVAL_MS = 3000


@dataclass(frozen=True)
class ThrottleDecision:
    allowed: bool
    retry_after_ms: int = 0

    @property
    def retry_after_seconds(self) -> int:
        return math.ceil(self.retry_after_ms / 1000)


class RateLimiter:
    """Fixed-interval throttle shared by every chat session.

    One instance owns the last-request timestamp; the check and the update
    happen under a single lock so two triggers inside the same window can
    never both pass.
    """

    def __init__(self, min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS):
        self.min_interval_ms = max(0, int(min_interval_ms))
        self._lock = threading.Lock()
        self._last_request_ms: float | None = None

    @property
    def last_request_ms(self) -> float | None:
        return self._last_request_ms

    def try_acquire(self, now_ms: float) -> ThrottleDecision:
        """Claim the next request slot at *now_ms*.

        A rejection leaves the stored timestamp untouched and reports the
        remaining wait rounded up to whole seconds.
        """
        with self._lock:
            if self._last_request_ms is not None:
                elapsed = now_ms - self._last_request_ms
                if elapsed < self.min_interval_ms:
                    remaining = self.min_interval_ms - elapsed
                    return ThrottleDecision(False, math.ceil(remaining / 1000) * 1000)
            self._last_request_ms = now_ms
            return ThrottleDecision(True)
