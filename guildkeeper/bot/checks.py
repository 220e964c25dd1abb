"""
guildkeeper.bot.checks — Permission checks & reply helpers
===========================================================

Shared by every cog:

* :func:`member_is_admin` / :func:`is_admin` — Administrator permission or
  the configured ``admin_role_id``.
* :func:`check_rate_limit` — per-user, per-action throttle for commands and
  buttons; answers the interaction itself when the user is limited.
* :func:`send_ephemeral` — reply once, then fall back to ``followup``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot

logger = logging.getLogger(__name__)

GENERIC_ERROR = "❌ Something went wrong. Please try again later."


class NotAdmin(app_commands.CheckFailure):
    """Raised by :func:`is_admin` so the error handler can word the denial."""


def member_is_admin(member: object, admin_role_id: int | None = None) -> bool:
    """True for members with the Administrator permission or the admin role."""
    permissions = getattr(member, "guild_permissions", None)
    if permissions is not None and permissions.administrator:
        return True
    if admin_role_id is not None:
        return any(role.id == admin_role_id for role in getattr(member, "roles", []))
    return False


def interaction_is_admin(interaction: discord.Interaction) -> bool:
    bot: GuildkeeperBot = interaction.client  # type: ignore[assignment]
    return member_is_admin(interaction.user, bot.cfg.admin_role_id)


def is_admin():
    """App-command check: Administrator permission or the configured admin role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if not interaction_is_admin(interaction):
            raise NotAdmin("🔒 You need Administrator permissions to use this command.")
        return True
    return app_commands.check(predicate)


async def send_ephemeral(
    interaction: discord.Interaction,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
    view: discord.ui.View | None = None,
) -> None:
    """Send an ephemeral message, using ``followup`` once the initial reply is spent."""
    kwargs: dict = {"ephemeral": True}
    if content is not None:
        kwargs["content"] = content
    if embed is not None:
        kwargs["embed"] = embed
    if view is not None:
        kwargs["view"] = view

    if interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


async def check_rate_limit(interaction: discord.Interaction, action: str) -> bool:
    """Count this interaction against the user's window.

    Returns ``True`` if the interaction may proceed.  A limited user gets an
    ephemeral "slow down" reply and ``False``.
    """
    bot: GuildkeeperBot = interaction.client  # type: ignore[assignment]
    limiter = bot.rate_limiter
    if not limiter.is_rate_limited(interaction.user.id, action):
        return True

    wait = max(1, round(limiter.get_reset_time(interaction.user.id, action)))
    logger.info("Rate limited %s on %s", interaction.user.id, action)
    await send_ephemeral(
        interaction, f"⏳ You're doing that too often. Try again in {wait} seconds."
    )
    return False
