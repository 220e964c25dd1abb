"""
guildkeeper.backends.redis_client — Fail-Soft Redis Wrapper
============================================================

One :class:`KeyValueClient` per process, owned by the
:class:`~guildkeeper.backends.context.AppContext`.

Two access styles live side by side:

* **Fail-soft helpers** (``get`` / ``set`` / ``delete`` / ``exists`` /
  ``ping``) swallow connection and protocol errors, log them, and return
  ``None`` / ``False``.  The storage façade is built on these.
* **Fail-loud access** via :meth:`KeyValueClient.require`, which hands out
  the raw ``redis.asyncio.Redis`` client or raises
  :class:`StoreUnavailableError`.  Tournament data uses this path so a
  dropped write is never silent.

Reconnects and retries (exponential backoff, capped retry count) are
delegated to redis-py's own ``Retry`` policy.  A failed PING marks the
client unavailable; the periodic health loop keeps pinging and flips it
back once the server answers.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from guildkeeper.config import StorageSettings

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """Raised when a caller requires the key-value store and it is not connected."""


class KeyValueClient:
    """Wrapper around a pooled ``redis.asyncio`` client.

    Parameters
    ----------
    settings:
        Connection settings.  ``settings.redis_enabled = False`` leaves the
        client permanently unavailable (cache tier switched off).
    client:
        An already-built client.  When given, :meth:`connect` only pings it.
    """

    def __init__(
        self,
        settings: StorageSettings | None = None,
        *,
        client: Redis | None = None,
    ) -> None:
        self.settings = settings
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = client
        self._enabled = settings.redis_enabled if settings is not None else True
        # An injected client is trusted until a PING says otherwise.
        self._connected = client is not None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    async def connect(self) -> bool:
        """Build the pool (if needed) and verify the connection with PING.

        Never raises: an unreachable server is logged and the client stays
        unavailable (``require`` raises :class:`StoreUnavailableError`, the
        fail-soft helpers return defaults) until a later :meth:`ping`
        succeeds, so the bot can still start in disk-only mode.
        """
        if not self._enabled:
            logger.info("Redis is disabled via REDIS_ENABLED — cache tier off")
            return False

        if self._client is None:
            assert self.settings is not None
            self._pool = ConnectionPool.from_url(
                self.settings.redis_url,
                max_connections=self.settings.redis_max_connections,
                socket_timeout=self.settings.redis_socket_timeout,
                socket_connect_timeout=self.settings.redis_socket_timeout,
                health_check_interval=self.settings.redis_health_check_interval,
                retry=Retry(
                    ExponentialBackoff(cap=3.0, base=0.05),
                    self.settings.redis_retries,
                ),
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
                encoding="utf-8",
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)

        if await self.ping():
            logger.info("Redis connected and ready")
            return True

        logger.warning("Redis client created but not responding to PING")
        return False

    async def close(self) -> None:
        """Close the client and release the pool."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except (RedisError, OSError):
                logger.exception("Error while closing Redis client")
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        logger.info("Redis client closed")

    @property
    def enabled(self) -> bool:
        """A client exists and the cache tier is switched on."""
        return self._enabled and self._client is not None

    @property
    def available(self) -> bool:
        """Enabled, and the last PING succeeded."""
        return self.enabled and self._connected

    def require(self) -> Redis:
        """Return the raw client or raise :class:`StoreUnavailableError`."""
        if not self.available:
            raise StoreUnavailableError("Redis client not available")
        assert self._client is not None
        return self._client

    # -----------------------------------------------------------------------
    # Fail-soft helpers
    # -----------------------------------------------------------------------
    async def ping(self) -> bool:
        """PING the server and record the outcome in :attr:`available`."""
        if not self.enabled:
            return False
        try:
            self._connected = bool(await self._client.ping())  # type: ignore[union-attr]
        except (RedisError, OSError) as exc:
            logger.error("Redis ping failed: %s", exc)
            self._connected = False
        return self._connected

    async def get(self, key: str) -> str | None:
        if not self.available:
            return None
        try:
            return await self._client.get(key)  # type: ignore[union-attr]
        except (RedisError, OSError) as exc:
            logger.error("Failed to get Redis key %s: %s", key, exc)
            return None

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """SET *key*, or SETEX when *ttl* (seconds) is given."""
        if not self.available:
            return False
        try:
            if ttl:
                await self._client.setex(key, ttl, value)  # type: ignore[union-attr]
            else:
                await self._client.set(key, value)  # type: ignore[union-attr]
            return True
        except (RedisError, OSError) as exc:
            logger.error("Failed to set Redis key %s: %s", key, exc)
            return False

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False
        try:
            await self._client.delete(key)  # type: ignore[union-attr]
            return True
        except (RedisError, OSError) as exc:
            logger.error("Failed to delete Redis key %s: %s", key, exc)
            return False

    async def exists(self, key: str) -> bool:
        if not self.available:
            return False
        try:
            return await self._client.exists(key) == 1  # type: ignore[union-attr]
        except (RedisError, OSError) as exc:
            logger.error("Failed to check Redis key %s: %s", key, exc)
            return False
