"""
guildkeeper.backends.context — Application Context
===================================================

Explicitly constructed owner of every process-wide client and service.
Build one at startup, ``await connect()`` in ``setup_hook``, and
``await close()`` on shutdown; cogs reach it through ``bot.context``.
"""

from __future__ import annotations

import logging

from guildkeeper.backends.disk import DiskStore
from guildkeeper.backends.redis_client import KeyValueClient
from guildkeeper.config import StorageSettings
from guildkeeper.engine.tournament import TournamentEngine
from guildkeeper.services.game_state import GameStateManager
from guildkeeper.services.storage import StorageService
from guildkeeper.services.tournament_store import TournamentStore

logger = logging.getLogger(__name__)


class AppContext:
    """Wires the leaf clients into the storage and game services."""

    def __init__(self, kv: KeyValueClient, disk: DiskStore) -> None:
        self.kv = kv
        self.disk = disk
        self.storage = StorageService(kv, disk)
        self.tournament_store = TournamentStore(kv)
        self.tournaments = TournamentEngine(self.tournament_store)
        self.games = GameStateManager(self.storage)

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> AppContext:
        return cls(KeyValueClient(settings), DiskStore(settings.disk_path))

    async def connect(self) -> bool:
        """Connect the key-value client.  The disk needs no connection.

        Returns whether Redis is usable; ``False`` means disk-only mode
        (tournaments unavailable, everything else degraded but working).
        """
        connected = await self.kv.connect()
        if not connected:
            logger.warning(
                "Running without Redis — storage falls back to disk at %s, "
                "tournaments are unavailable",
                self.disk.root,
            )
        return connected

    async def close(self) -> None:
        await self.kv.close()
