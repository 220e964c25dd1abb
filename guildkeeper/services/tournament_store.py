"""
guildkeeper.services.tournament_store — Tournament Persistence
===============================================================

Redis key layout::

    tournament:<id>                      JSON TournamentConfig
    tournament:rolls:<id>                hash  userId -> JSON UserRoll
    tournament:round:<id>:<roundNumber>  JSON RoundData
    tournament:stats:<id>                JSON TournamentStats

There is no disk fallback here.  Every call goes through
:meth:`KeyValueClient.require`, so an unavailable store raises
:class:`~guildkeeper.backends.redis_client.StoreUnavailableError` and Redis
faults propagate as :class:`redis.exceptions.RedisError` after being logged.
A dropped roll write must be visible, never silent.

Malformed records are the one soft spot: a single bad record reads as
``None``; multi-record reads skip and log the bad entries.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.exceptions import RedisError

from guildkeeper.backends.redis_client import KeyValueClient
from guildkeeper.engine.models import RoundData, TournamentConfig, TournamentStats, UserRoll

logger = logging.getLogger(__name__)

TOURNAMENT_PREFIX = "tournament:"
ROLLS_PREFIX = "tournament:rolls:"
ROUND_PREFIX = "tournament:round:"
STATS_PREFIX = "tournament:stats:"

_SUB_NAMESPACES = (ROLLS_PREFIX, ROUND_PREFIX, STATS_PREFIX)

_MALFORMED = (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError)


def _round_key(tournament_id: str, round_number: int) -> str:
    return f"{ROUND_PREFIX}{tournament_id}:{round_number}"


class TournamentStore:
    """Namespaces and serializes tournament records into Redis."""

    def __init__(self, kv: KeyValueClient) -> None:
        self.kv = kv

    @staticmethod
    def _decode(raw: str, factory: Any, what: str) -> Any | None:
        try:
            return factory.from_dict(json.loads(raw))
        except _MALFORMED as exc:
            logger.warning("Skipping malformed %s record: %s", what, exc)
            return None

    # -----------------------------------------------------------------------
    # Config
    # -----------------------------------------------------------------------
    async def save_config(self, config: TournamentConfig) -> None:
        client = self.kv.require()
        try:
            await client.set(f"{TOURNAMENT_PREFIX}{config.id}", json.dumps(config.to_dict()))
        except RedisError as exc:
            logger.error("Failed to save tournament config %s: %s", config.id, exc)
            raise
        logger.debug("Tournament config saved: %s", config.id)

    async def get_config(self, tournament_id: str) -> TournamentConfig | None:
        client = self.kv.require()
        try:
            raw = await client.get(f"{TOURNAMENT_PREFIX}{tournament_id}")
        except RedisError as exc:
            logger.error("Failed to get tournament config %s: %s", tournament_id, exc)
            raise
        if not raw:
            return None
        return self._decode(raw, TournamentConfig, f"tournament {tournament_id}")

    async def delete_config(self, tournament_id: str) -> None:
        client = self.kv.require()
        try:
            await client.delete(f"{TOURNAMENT_PREFIX}{tournament_id}")
        except RedisError as exc:
            logger.error("Failed to delete tournament config %s: %s", tournament_id, exc)
            raise
        logger.info("Tournament config deleted: %s", tournament_id)

    # -----------------------------------------------------------------------
    # Rolls
    # -----------------------------------------------------------------------
    async def save_user_roll(self, tournament_id: str, roll: UserRoll) -> None:
        client = self.kv.require()
        try:
            await client.hset(
                f"{ROLLS_PREFIX}{tournament_id}", roll.user_id, json.dumps(roll.to_dict())
            )
        except RedisError as exc:
            logger.error(
                "Failed to save roll for %s in %s: %s", roll.user_id, tournament_id, exc
            )
            raise
        logger.debug("Roll saved: %s -> %d in %s", roll.user_id, roll.roll, tournament_id)

    async def get_user_roll(self, tournament_id: str, user_id: str) -> UserRoll | None:
        client = self.kv.require()
        try:
            raw = await client.hget(f"{ROLLS_PREFIX}{tournament_id}", user_id)
        except RedisError as exc:
            logger.error("Failed to get roll for %s in %s: %s", user_id, tournament_id, exc)
            raise
        if not raw:
            return None
        return self._decode(raw, UserRoll, f"roll {tournament_id}/{user_id}")

    async def get_all_user_rolls(self, tournament_id: str) -> list[UserRoll]:
        """Every roll of the current round, in hash iteration order."""
        client = self.kv.require()
        try:
            entries: dict[str, str] = await client.hgetall(f"{ROLLS_PREFIX}{tournament_id}")
        except RedisError as exc:
            logger.error("Failed to get rolls for %s: %s", tournament_id, exc)
            raise

        rolls: list[UserRoll] = []
        for user_id, raw in entries.items():
            roll = self._decode(raw, UserRoll, f"roll {tournament_id}/{user_id}")
            if roll is not None:
                rolls.append(roll)
        return rolls

    async def delete_all_user_rolls(self, tournament_id: str) -> None:
        client = self.kv.require()
        try:
            await client.delete(f"{ROLLS_PREFIX}{tournament_id}")
        except RedisError as exc:
            logger.error("Failed to clear rolls for %s: %s", tournament_id, exc)
            raise
        logger.debug("Rolls cleared for %s", tournament_id)

    # -----------------------------------------------------------------------
    # Rounds
    # -----------------------------------------------------------------------
    async def save_round(self, tournament_id: str, round_data: RoundData) -> None:
        client = self.kv.require()
        try:
            await client.set(
                _round_key(tournament_id, round_data.round_number),
                json.dumps(round_data.to_dict()),
            )
        except RedisError as exc:
            logger.error(
                "Failed to save round %d of %s: %s",
                round_data.round_number, tournament_id, exc,
            )
            raise
        logger.debug("Round %d saved for %s", round_data.round_number, tournament_id)

    async def get_round(self, tournament_id: str, round_number: int) -> RoundData | None:
        client = self.kv.require()
        try:
            raw = await client.get(_round_key(tournament_id, round_number))
        except RedisError as exc:
            logger.error(
                "Failed to get round %d of %s: %s", round_number, tournament_id, exc
            )
            raise
        if not raw:
            return None
        return self._decode(raw, RoundData, f"round {tournament_id}/{round_number}")

    async def get_all_rounds(self, tournament_id: str) -> list[RoundData]:
        """All stored rounds, always sorted ascending by round number."""
        client = self.kv.require()
        rounds: list[RoundData] = []
        try:
            async for key in client.scan_iter(match=f"{ROUND_PREFIX}{tournament_id}:*"):
                raw = await client.get(key)
                if not raw:
                    continue
                round_data = self._decode(raw, RoundData, key)
                if round_data is not None:
                    rounds.append(round_data)
        except RedisError as exc:
            logger.error("Failed to get rounds for %s: %s", tournament_id, exc)
            raise
        return sorted(rounds, key=lambda r: r.round_number)

    # -----------------------------------------------------------------------
    # Stats
    # -----------------------------------------------------------------------
    async def save_stats(self, tournament_id: str, stats: TournamentStats) -> None:
        client = self.kv.require()
        try:
            await client.set(f"{STATS_PREFIX}{tournament_id}", json.dumps(stats.to_dict()))
        except RedisError as exc:
            logger.error("Failed to save stats for %s: %s", tournament_id, exc)
            raise

    async def get_stats(self, tournament_id: str) -> TournamentStats | None:
        client = self.kv.require()
        try:
            raw = await client.get(f"{STATS_PREFIX}{tournament_id}")
        except RedisError as exc:
            logger.error("Failed to get stats for %s: %s", tournament_id, exc)
            raise
        if not raw:
            return None
        return self._decode(raw, TournamentStats, f"stats {tournament_id}")

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------
    async def list_active_tournaments(self) -> list[TournamentConfig]:
        """Every stored tournament config, oldest first.

        Uses ``SCAN`` rather than ``KEYS`` and skips the roll / round / stats
        keys that share the ``tournament:`` prefix.  Callers filter by status.
        """
        client = self.kv.require()
        configs: list[TournamentConfig] = []
        try:
            async for key in client.scan_iter(match=f"{TOURNAMENT_PREFIX}*"):
                if key.startswith(_SUB_NAMESPACES):
                    continue
                raw = await client.get(key)
                if not raw:
                    continue
                config = self._decode(raw, TournamentConfig, key)
                if config is not None:
                    configs.append(config)
        except RedisError as exc:
            logger.error("Failed to list tournaments: %s", exc)
            raise
        return sorted(configs, key=lambda c: c.created_at)
