"""
guildkeeper.bot.cogs.meta — Ping & Help
========================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from guildkeeper.constants import EMBED_COLOR

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot


class Meta(commands.Cog, name="Meta"):
    """Bot information commands."""

    def __init__(self, bot: GuildkeeperBot) -> None:
        self.bot = bot

    @app_commands.command(name="ping", description="Check bot responsiveness and latency.")
    async def ping(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message("\U0001f3d3 Pinging...")
        sent = await interaction.original_response()
        roundtrip = (sent.created_at - interaction.created_at).total_seconds() * 1000
        await interaction.edit_original_response(
            content=(
                "\U0001f3d3 Pong!\n"
                f"**Roundtrip Latency:** {roundtrip:.0f}ms\n"
                f"**WebSocket Latency:** {self.bot.latency * 1000:.0f}ms"
            )
        )

    @app_commands.command(name="help", description="Show available commands and bot information.")
    async def help(self, interaction: discord.Interaction) -> None:
        embed = discord.Embed(
            title=f"\U0001f916 {self.bot.cfg.community_name} Bot Help",
            description="Community games and an admin dashboard.",
            color=EMBED_COLOR,
        )
        embed.add_field(
            name="\U0001f4dd Commands",
            value=(
                "`/ping` - Check bot latency\n"
                "`/help` - Show this help message\n"
                "`/tournament roll|leaderboard|history|list` - Play tournaments\n"
                "`/flaskgamba bet` - Bet on the channel's Flask Gamba round"
            ),
            inline=False,
        )
        embed.add_field(
            name="\U0001f527 Admin Commands",
            value=(
                "`/dashboard` - Open the admin dashboard\n"
                "`/tournament create|end-round|cancel|setup` - Run tournaments\n"
                "`/flaskgamba start|resolve|cancel` - Run Flask Gamba rounds"
            ),
            inline=False,
        )
        embed.set_footer(text=f"{self.bot.cfg.community_name} • {self.bot.cfg.bot_prefix}")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: GuildkeeperBot) -> None:
    await bot.add_cog(Meta(bot))
