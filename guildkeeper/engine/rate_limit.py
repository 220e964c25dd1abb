"""
guildkeeper.engine.rate_limit — Per-user interaction rate limiter
==================================================================

Fixed-window limiter keyed by ``(user_id, action)``.  In-memory only: a
restart forgets every window, which is fine for anti-spam purposes.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` for each user/action pair.

    The clock is injectable (seconds, monotonic by default) so tests can
    step time by hand.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    @staticmethod
    def _key(user_id: int | str, action: str) -> str:
        return f"{user_id}:{action}"

    def _live(self, key: str, now: float) -> _Window | None:
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            return None
        return window

    def is_rate_limited(self, user_id: int | str, action: str = "default") -> bool:
        """Record one request and return True if it is over the limit."""
        key = self._key(user_id, action)
        now = self._clock()
        window = self._live(key, now)

        if window is None:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return False
        if window.count >= self.max_requests:
            return True
        window.count += 1
        return False

    def get_remaining(self, user_id: int | str, action: str = "default") -> int:
        window = self._live(self._key(user_id, action), self._clock())
        if window is None:
            return self.max_requests
        return max(0, self.max_requests - window.count)

    def get_reset_time(self, user_id: int | str, action: str = "default") -> float:
        """Seconds until the current window closes (0 when no window is open)."""
        now = self._clock()
        window = self._live(self._key(user_id, action), now)
        if window is None:
            return 0.0
        return window.reset_at - now

    def reset(self, user_id: int | str, action: str = "default") -> None:
        self._windows.pop(self._key(user_id, action), None)

    def cleanup(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now = self._clock()
        expired = [k for k, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
