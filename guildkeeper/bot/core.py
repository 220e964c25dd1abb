"""
guildkeeper.bot.core — Bot Instance & Cog Loader
=================================================

Defines :class:`GuildkeeperBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), the :class:`AppContext`
   (``bot.context``) and the interaction rate limiter
   (``bot.rate_limiter``) so every Cog can reach them via ``self.bot``.
2. Connects the storage context and loads the static :data:`EXTENSIONS`
   list in ``setup_hook``.
3. Registers the persistent dynamic buttons so tournament and dashboard
   messages keep working across restarts.
4. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production, controlled by the ``DEV_GUILD_ID`` env var).

:class:`GuildkeeperTree` applies the rate limit to every slash command and
turns unhandled errors into a short ephemeral message.
"""

from __future__ import annotations

import logging
import os

import discord
from discord import app_commands
from discord.ext import commands

from guildkeeper.backends.context import AppContext
from guildkeeper.bot.checks import GENERIC_ERROR, check_rate_limit, send_ephemeral
from guildkeeper.bot.cogs.dashboard import DashboardButton
from guildkeeper.bot.cogs.tournament import TournamentButton
from guildkeeper.config import GuildkeeperConfig
from guildkeeper.engine.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Cog modules to load on startup.  Add new modules here as you build more.
EXTENSIONS: list[str] = [
    "guildkeeper.bot.cogs.tournament",
    "guildkeeper.bot.cogs.dashboard",
    "guildkeeper.bot.cogs.games",
    "guildkeeper.bot.cogs.meta",
    "guildkeeper.bot.cogs.tasks",
]


class GuildkeeperTree(app_commands.CommandTree):
    """Command tree with a global rate-limit check and a last-resort error reply."""

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        command = interaction.command
        action = command.qualified_name if command is not None else "command"
        return await check_rate_limit(interaction, action)

    async def on_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            # Rate-limit denials have already been answered.
            if not interaction.response.is_done():
                await send_ephemeral(interaction, str(error) or "🔒 You can't use this command.")
            return

        command = interaction.command.qualified_name if interaction.command else "?"
        original = getattr(error, "original", error)
        logger.error("Unhandled error in /%s", command, exc_info=original)
        try:
            await send_ephemeral(interaction, GENERIC_ERROR)
        except discord.HTTPException:
            logger.exception("Failed to deliver error message for /%s", command)


class GuildkeeperBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`GuildkeeperConfig` from ``config.yaml``.
    context:
        The storage/game :class:`AppContext` (not yet connected).
    """

    def __init__(self, cfg: GuildkeeperConfig, context: AppContext) -> None:
        intents = discord.Intents.default()
        intents.members = True  # Privileged: role lookups for the admin check

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} community bot",
            tree_cls=GuildkeeperTree,
        )

        self.cfg = cfg
        self.context = context
        self.rate_limiter = RateLimiter(cfg.rate_limit_max, cfg.rate_limit_window)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Connect storage, load extensions, and register persistent buttons.

        One broken extension is logged and skipped rather than taking the
        whole bot down.
        """
        await self.context.connect()

        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        self.add_dynamic_items(TournamentButton, DashboardButton)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        """Graceful shutdown: release the Redis pool before disconnecting."""
        logger.info("Bot shutting down…")
        await self.context.close()
        await super().close()
