"""
tests/conftest.py — Shared Test Fixtures
=========================================

No Redis server is needed: :class:`FakeRedis` implements the handful of
``redis.asyncio`` commands the bot uses, in memory, and can be flipped
into an outage with ``fake.down = True``.
"""

from __future__ import annotations

import asyncio
import random
from datetime import UTC, datetime, timedelta
from fnmatch import fnmatchcase

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from guildkeeper.backends.disk import DiskStore
from guildkeeper.backends.redis_client import KeyValueClient
from guildkeeper.engine.tournament import TournamentEngine
from guildkeeper.services.game_state import GameStateManager
from guildkeeper.services.storage import StorageService
from guildkeeper.services.tournament_store import TournamentStore

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
START_MS = 1_714_564_800_000  # FIXED_NOW in epoch ms


def run_async(coro):
    """Run an async coroutine in a fresh event loop (for sync test bodies)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------
class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (decode_responses=True)."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}
        self.down = False
        self.closed = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._check()
        self.strings[key] = value
        self.ttls.pop(key, None)
        return True

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.strings[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None:
                removed += 1
            if self.hashes.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for k in keys if k in self.strings or k in self.hashes)

    async def hset(self, key: str, field: str, value: str) -> int:
        self._check()
        bucket = self.hashes.setdefault(key, {})
        added = 0 if field in bucket else 1
        bucket[field] = value
        return added

    async def hget(self, key: str, field: str) -> str | None:
        self._check()
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check()
        return dict(self.hashes.get(key, {}))

    async def scan_iter(self, match: str | None = None):
        self._check()
        for key in [*self.strings, *self.hashes]:
            if match is None or fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class TickingClock:
    """Datetime clock that moves one second forward on every read."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.current = start

    def __call__(self) -> datetime:
        moment = self.current
        self.current += timedelta(seconds=1)
        return moment


class ScriptedRng:
    """Returns pre-set draws from ``randint`` in order."""

    def __init__(self, draws: list[int]) -> None:
        self.draws = list(draws)

    def randint(self, low: int, high: int) -> int:
        return self.draws.pop(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def kv(fake_redis: FakeRedis) -> KeyValueClient:
    return KeyValueClient(client=fake_redis)


@pytest.fixture
def disk(tmp_path) -> DiskStore:
    return DiskStore(tmp_path)


@pytest.fixture
def storage(kv: KeyValueClient, disk: DiskStore) -> StorageService:
    return StorageService(kv, disk, now=lambda: FIXED_NOW)


@pytest.fixture
def store(kv: KeyValueClient) -> TournamentStore:
    return TournamentStore(kv)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(store: TournamentStore, clock: FakeClock) -> TournamentEngine:
    return TournamentEngine(store, rng=random.Random(1234), clock=clock)


@pytest.fixture
def games(storage: StorageService) -> GameStateManager:
    return GameStateManager(storage, now=TickingClock())
