"""
guildkeeper.services.storage — Tiered Storage Façade
=====================================================

One read/write/delete/exists API over two tiers:

* **Redis** — the fast tier (game state, sessions, short-lived data).
* **Disk** — the durable tier (fallback blobs, event logs, backups).

Policy:

* ``store`` writes Redis first, and also writes ``cache/<key>.txt`` on disk
  when asked to persist *or* when the Redis write failed.
* ``retrieve`` reads Redis first; on a miss it reads the disk blob and
  promotes it back into Redis for :data:`PROMOTION_TTL` seconds.
* ``remove`` deletes from both tiers; ``exists`` checks Redis, then disk.

Every method is total: faults are logged and degrade to ``False`` /
``None``.  Game logic must never crash over an infrastructure blip.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from guildkeeper.backends.disk import DiskStore
from guildkeeper.backends.redis_client import KeyValueClient
from guildkeeper.constants import utc_iso

logger = logging.getLogger(__name__)

PROMOTION_TTL = 3600  # seconds a disk hit stays promoted in Redis
GAME_STATE_TTL = 86400
SESSION_TTL = 3600


def _disk_key(key: str) -> str:
    return f"cache/{key}.txt"


class StorageService:
    """Cache-first, disk-fallback, write-through store.

    Parameters
    ----------
    kv:
        The fast tier.  May be disabled or disconnected.
    disk:
        The durable tier.
    now:
        Clock used for log partitions and backup names (tests pin it).
    """

    def __init__(
        self,
        kv: KeyValueClient,
        disk: DiskStore,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.kv = kv
        self.disk = disk
        self._now = now or (lambda: datetime.now(UTC))

    # -----------------------------------------------------------------------
    # Raw strings
    # -----------------------------------------------------------------------
    async def store(
        self,
        key: str,
        value: str,
        *,
        ttl: int | None = None,
        persist_to_disk: bool = False,
    ) -> bool:
        """Store *value*; ``True`` if at least one tier accepted the write."""
        cached = await self.kv.set(key, value, ttl)

        if persist_to_disk or not cached:
            persisted = await self.disk.write(_disk_key(key), value)
            if not cached and not persisted:
                logger.error("Failed to store %s in both Redis and disk", key)
                return False
            return True

        return cached

    async def retrieve(self, key: str) -> str | None:
        """Return the value for *key* from whichever tier has it."""
        value = await self.kv.get(key)
        if value is not None:
            return value

        value = await self.disk.read(_disk_key(key))
        if value is not None:
            await self.kv.set(key, value, PROMOTION_TTL)
            logger.debug("Promoted %s from disk into Redis", key)
        return value

    async def remove(self, key: str) -> bool:
        cache_deleted = await self.kv.delete(key)
        disk_deleted = await self.disk.delete(_disk_key(key))
        return cache_deleted or disk_deleted

    async def exists(self, key: str) -> bool:
        if await self.kv.exists(key):
            return True
        return await self.disk.exists(_disk_key(key))

    # -----------------------------------------------------------------------
    # JSON helpers
    # -----------------------------------------------------------------------
    async def store_json(
        self,
        key: str,
        data: Any,
        *,
        ttl: int | None = None,
        persist_to_disk: bool = False,
    ) -> bool:
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize JSON for %s: %s", key, exc)
            return False
        return await self.store(key, payload, ttl=ttl, persist_to_disk=persist_to_disk)

    async def retrieve_json(self, key: str) -> Any | None:
        """Decoded JSON for *key*; a corrupt record reads as ``None``."""
        raw = await self.retrieve(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Failed to decode JSON for %s: %s", key, exc)
            return None

    # -----------------------------------------------------------------------
    # Domain helpers
    # -----------------------------------------------------------------------
    async def store_game_state(self, game_id: str, state: dict[str, Any]) -> bool:
        """24h in Redis, always mirrored to disk."""
        return await self.store_json(
            f"game:{game_id}:state", state, ttl=GAME_STATE_TTL, persist_to_disk=True
        )

    async def retrieve_game_state(self, game_id: str) -> dict[str, Any] | None:
        return await self.retrieve_json(f"game:{game_id}:state")

    async def store_user_session(self, user_id: str, session: dict[str, Any]) -> bool:
        """Sessions are disposable: Redis only, never written to disk."""
        try:
            payload = json.dumps(session)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize session for %s: %s", user_id, exc)
            return False
        return await self.kv.set(f"session:{user_id}", payload, SESSION_TTL)

    async def retrieve_user_session(self, user_id: str) -> dict[str, Any] | None:
        raw = await self.kv.get(f"session:{user_id}")
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Failed to decode session for %s: %s", user_id, exc)
            return None

    async def log_event(self, log_type: str, event: dict[str, Any]) -> bool:
        """Append one JSON line to ``logs/<log_type>/<YYYY-MM-DD>.log``."""
        moment = self._now()
        try:
            line = json.dumps({"timestamp": utc_iso(moment), **event}) + "\n"
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize %s event: %s", log_type, exc)
            return False
        day = moment.astimezone(UTC).date().isoformat()
        return await self.disk.append(f"logs/{log_type}/{day}.log", line)

    async def save_backup(self, name: str, data: Any) -> bool:
        """Write a pretty-printed snapshot to ``backups/<name>/<timestamp>.json``."""
        stamp = utc_iso(self._now()).replace(":", "-")
        return await self.disk.write_json(f"backups/{name}/{stamp}.json", data)

    async def retrieve_backup(self, name: str, timestamp: str) -> Any | None:
        return await self.disk.read_json(f"backups/{name}/{timestamp}.json")

    async def list_backups(self, name: str) -> list[str]:
        """Timestamps of the snapshots saved under *name*, oldest first."""
        entries = await self.disk.list(f"backups/{name}")
        if not entries:
            return []
        return [e.removesuffix(".json") for e in entries if e.endswith(".json")]
