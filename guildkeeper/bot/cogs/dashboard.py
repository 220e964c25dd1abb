"""
guildkeeper.bot.cogs.dashboard — Admin Dashboard
=================================================

``/dashboard`` opens an admin-only panel with one page per category.
Pages are listed in the static :data:`CATEGORIES` registry, built at import
time; the persistent ``dash:<category>`` buttons look pages up there.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from guildkeeper.bot.checks import (
    GENERIC_ERROR,
    check_rate_limit,
    interaction_is_admin,
    is_admin,
    send_ephemeral,
)
from guildkeeper.bot.cogs.tournament import TournamentButton
from guildkeeper.constants import EMBED_COLOR

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot

logger = logging.getLogger(__name__)

FOOTER_PREFIX = "Dashboard • "


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------
async def render_main(bot: GuildkeeperBot) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f3e0 Admin Dashboard",
        description=(
            f"Welcome to the {bot.cfg.community_name} admin dashboard. "
            "Use the buttons below to move between sections."
        ),
        color=EMBED_COLOR,
    )
    embed.add_field(
        name="Available Sections",
        value="\n".join(
            f"{c.emoji} **{c.label}** - {c.summary}" for c in CATEGORIES.values() if c.id != "main"
        ),
        inline=False,
    )
    return embed


async def render_games(bot: GuildkeeperBot) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f3ae Games", description="Manage mini-games.", color=EMBED_COLOR
    )
    tournament_channel = bot.cfg.tournament_channel_id
    flask_channel = bot.cfg.flaskgamba_channel_id
    embed.add_field(
        name="\U0001f3c6 Tournament Mode",
        value=(
            "Elimination game where players roll across multiple rounds; the bottom "
            "performers are eliminated each round.\n"
            f"Channel: {f'<#{tournament_channel}>' if tournament_channel else 'any'}"
        ),
        inline=False,
    )
    embed.add_field(
        name="\U0001f9ea Flask Gamba",
        value=(
            "Betting rounds: players pick one option, admins resolve the outcome.\n"
            f"Channel: {f'<#{flask_channel}>' if flask_channel else 'any'}"
        ),
        inline=False,
    )
    return embed


async def render_tournaments(bot: GuildkeeperBot) -> discord.Embed:
    embed = discord.Embed(title="\U0001f3c6 Tournaments", color=EMBED_COLOR)
    if not bot.context.kv.available:
        embed.description = "Tournaments need Redis, which is not connected."
        return embed

    configs = await bot.context.tournament_store.list_active_tournaments()
    live = [c for c in configs if not c.status.is_terminal]
    embed.description = f"**{len(live)}** running, **{len(configs) - len(live)}** finished."
    for config in live[:10]:
        embed.add_field(
            name=config.name,
            value=f"Round {config.current_round} • `{config.id}`",
            inline=False,
        )
    return embed


async def render_storage(bot: GuildkeeperBot) -> discord.Embed:
    ctx = bot.context
    redis_ok = await ctx.kv.ping()
    embed = discord.Embed(title="\U0001f4be Storage", color=EMBED_COLOR)
    embed.add_field(
        name="Redis",
        value="\U0001f7e2 Connected" if redis_ok else "\U0001f534 Unavailable (disk fallback)",
        inline=True,
    )
    embed.add_field(name="Disk", value=f"`{ctx.disk.root}`", inline=True)
    backups = await ctx.storage.list_backups("game-flaskgamba")
    embed.add_field(
        name="Flask Gamba backups",
        value=f"{len(backups)} (latest: {backups[-1]})" if backups else "none yet",
        inline=False,
    )
    return embed


@dataclass(frozen=True, slots=True)
class DashboardCategory:
    id: str
    label: str
    emoji: str
    summary: str
    render: Callable[[GuildkeeperBot], Awaitable[discord.Embed]]


CATEGORIES: dict[str, DashboardCategory] = {
    c.id: c
    for c in (
        DashboardCategory("main", "Main", "\U0001f3e0", "Overview", render_main),
        DashboardCategory("games", "Games", "\U0001f3ae", "Mini-games and their channels", render_games),
        DashboardCategory("tournaments", "Tournaments", "\U0001f3c6", "Running tournaments", render_tournaments),
        DashboardCategory("storage", "Storage", "\U0001f4be", "Redis and disk health", render_storage),
    )
}


# ---------------------------------------------------------------------------
# Buttons
# ---------------------------------------------------------------------------
class DashboardButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"dash:(?P<category>[a-z]+)",
):
    def __init__(self, category: str, *, active: bool = False) -> None:
        if category == "refresh":
            button = discord.ui.Button(
                label="\U0001f504 Refresh", style=discord.ButtonStyle.success, custom_id="dash:refresh"
            )
        else:
            meta = CATEGORIES[category]
            button = discord.ui.Button(
                label=f"{meta.emoji} {meta.label}",
                style=discord.ButtonStyle.primary if active else discord.ButtonStyle.secondary,
                custom_id=f"dash:{category}",
            )
        super().__init__(button)
        self.category = category

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> DashboardButton:
        category = match["category"]
        return cls(category if category in CATEGORIES or category == "refresh" else "main")

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if not interaction_is_admin(interaction):
            await send_ephemeral(interaction, "🔒 The dashboard is for administrators only.")
            return False
        return await check_rate_limit(interaction, "dashboard")

    async def callback(self, interaction: discord.Interaction) -> None:
        category = self.category
        if category == "refresh":
            category = current_category(interaction.message)
        try:
            embed, view = await render_dashboard(interaction.client, category)  # type: ignore[arg-type]
            await interaction.response.edit_message(embed=embed, view=view)
        except Exception:
            logger.exception("Dashboard page %s failed", category)
            await send_ephemeral(interaction, GENERIC_ERROR)


def current_category(message: discord.Message | None) -> str:
    """Category shown on *message*, read back from the embed footer."""
    if message is not None and message.embeds:
        footer = message.embeds[0].footer.text or ""
        if footer.startswith(FOOTER_PREFIX):
            category = footer.removeprefix(FOOTER_PREFIX)
            if category in CATEGORIES:
                return category
    return "main"


def build_dashboard_view(category: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for cat_id in CATEGORIES:
        view.add_item(DashboardButton(cat_id, active=cat_id == category))
    view.add_item(DashboardButton("refresh"))
    if category == "games":
        view.add_item(TournamentButton("setup", label="\U0001f3c6 Tournament Setup", style=discord.ButtonStyle.primary))
        view.add_item(TournamentButton("list", label="\U0001f4cb Active Tournaments"))
    return view


async def render_dashboard(bot: GuildkeeperBot, category: str) -> tuple[discord.Embed, discord.ui.View]:
    meta = CATEGORIES.get(category, CATEGORIES["main"])
    embed = await meta.render(bot)
    embed.set_footer(text=f"{FOOTER_PREFIX}{meta.id}")
    return embed, build_dashboard_view(meta.id)


class Dashboard(commands.Cog, name="Dashboard"):
    """Administrator dashboard."""

    def __init__(self, bot: GuildkeeperBot) -> None:
        self.bot = bot

    @app_commands.command(name="dashboard", description="Open the admin dashboard.")
    @app_commands.describe(category="Page to open (default: main)")
    @app_commands.choices(
        category=[app_commands.Choice(name=c.label, value=c.id) for c in CATEGORIES.values()]
    )
    @is_admin()
    async def dashboard(self, interaction: discord.Interaction, category: str = "main") -> None:
        embed, view = await render_dashboard(self.bot, category)
        await send_ephemeral(interaction, embed=embed, view=view)


async def setup(bot: GuildkeeperBot) -> None:
    await bot.add_cog(Dashboard(bot))
