"""
tests/test_rate_limit.py — Interaction Rate Limiter Tests
==========================================================
"""

from __future__ import annotations

from guildkeeper.engine.rate_limit import RateLimiter


class ManualClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    def setup_method(self):
        self.clock = ManualClock()
        self.limiter = RateLimiter(max_requests=3, window_seconds=10, clock=self.clock)

    def test_allows_requests_within_limit(self):
        assert [self.limiter.is_rate_limited(1, "roll") for _ in range(3)] == [False, False, False]

    def test_blocks_after_limit_exceeded(self):
        for _ in range(3):
            self.limiter.is_rate_limited(1, "roll")
        assert self.limiter.is_rate_limited(1, "roll") is True
        assert self.limiter.get_remaining(1, "roll") == 0

    def test_users_and_actions_are_independent(self):
        for _ in range(3):
            self.limiter.is_rate_limited(1, "roll")
        assert self.limiter.is_rate_limited(2, "roll") is False
        assert self.limiter.is_rate_limited(1, "dashboard") is False

    def test_remaining_count_decreases(self):
        assert self.limiter.get_remaining(1, "roll") == 3
        self.limiter.is_rate_limited(1, "roll")
        assert self.limiter.get_remaining(1, "roll") == 2

    def test_window_expires(self):
        for _ in range(4):
            self.limiter.is_rate_limited(1, "roll")
        self.clock.now += 10.5
        assert self.limiter.is_rate_limited(1, "roll") is False
        assert self.limiter.get_remaining(1, "roll") == 2

    def test_reset_time(self):
        assert self.limiter.get_reset_time(1, "roll") == 0.0
        self.limiter.is_rate_limited(1, "roll")
        self.clock.now += 4
        assert self.limiter.get_reset_time(1, "roll") == 6

    def test_reset(self):
        for _ in range(4):
            self.limiter.is_rate_limited(1, "roll")
        self.limiter.reset(1, "roll")
        assert self.limiter.is_rate_limited(1, "roll") is False

    def test_cleanup_drops_expired_windows(self):
        self.limiter.is_rate_limited(1, "roll")
        self.clock.now += 5
        self.limiter.is_rate_limited(2, "roll")
        self.clock.now += 6

        assert self.limiter.cleanup() == 1
        assert len(self.limiter) == 1
