"""
guildkeeper.bot.cogs.tasks — Periodic Background Tasks
=======================================================

Scheduled jobs on ``discord.ext.tasks`` loops:

- **Rate-limit cleanup** — every minute, drops expired limiter windows.
- **Redis health** — every 30 seconds, pings Redis and logs when the
  cache tier goes down or comes back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: GuildkeeperBot) -> None:
        self.bot = bot
        self.redis_healthy: bool | None = None

    async def cog_load(self) -> None:
        self.rate_limit_cleanup_loop.start()
        self.redis_health_loop.start()

    async def cog_unload(self) -> None:
        self.rate_limit_cleanup_loop.cancel()
        self.redis_health_loop.cancel()

    @tasks.loop(minutes=1)
    async def rate_limit_cleanup_loop(self):
        removed = self.bot.rate_limiter.cleanup()
        if removed:
            logger.debug("Dropped %d expired rate-limit windows", removed)

    @tasks.loop(seconds=30)
    async def redis_health_loop(self):
        """Log transitions of the Redis connection state."""
        healthy = await self.bot.context.kv.ping()
        if healthy == self.redis_healthy:
            return
        if healthy:
            logger.info("Redis is reachable")
        elif self.bot.context.kv.enabled:
            logger.warning("Redis is unreachable — storage is running from disk")
        self.redis_healthy = healthy

    @redis_health_loop.before_loop
    async def _wait_redis_health(self):
        await self.bot.wait_until_ready()


async def setup(bot: GuildkeeperBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
