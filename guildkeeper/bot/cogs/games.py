"""
guildkeeper.bot.cogs.games — Flask Gamba Commands
==================================================

``/flaskgamba`` slash group:
- start — admin opens a betting round in the current channel
- bet — players pick one option (one bet per player)
- resolve / cancel — admin closes the round

The most recent round of each channel is remembered under
``flaskgamba:channel:<channel_id>`` so players need not type game ids.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from guildkeeper.bot.checks import is_admin, send_ephemeral
from guildkeeper.services.embeds import build_flaskgamba_embed
from guildkeeper.services.game_state import FLASKGAMBA, GameStateManager

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot

logger = logging.getLogger(__name__)

CHANNEL_ROUND_TTL = 86400


def parse_options(raw: str) -> list[str]:
    """Split a comma-separated option list, dropping blanks and duplicates."""
    options: list[str] = []
    for part in raw.split(","):
        option = part.strip()
        if option and option not in options:
            options.append(option)
    return options


class Games(commands.Cog, name="Games"):
    """Mini-games built on the game-state manager."""

    flaskgamba = app_commands.Group(name="flaskgamba", description="Flask Gamba betting rounds.")

    def __init__(self, bot: GuildkeeperBot) -> None:
        self.bot = bot

    @property
    def games(self) -> GameStateManager:
        return self.bot.context.games

    async def _resolve_game_id(self, interaction: discord.Interaction, game_id: str | None) -> str | None:
        if game_id:
            return game_id
        return await self.bot.context.storage.retrieve(f"flaskgamba:channel:{interaction.channel_id}")

    @flaskgamba.command(name="start", description="Open a Flask Gamba round in this channel.")
    @app_commands.describe(question="What are players betting on?", options="Comma-separated options")
    @is_admin()
    async def start(self, interaction: discord.Interaction, question: str, options: str) -> None:
        choices = parse_options(options)
        if len(choices) < 2:
            await send_ephemeral(interaction, "❌ Give at least two different options, separated by commas.")
            return

        game_id = await self.games.create_flaskgamba_round(str(interaction.channel_id), question, choices)
        if game_id is None:
            await send_ephemeral(interaction, "❌ Could not start the round. Please try again.")
            return
        await self.bot.context.storage.store(
            f"flaskgamba:channel:{interaction.channel_id}", game_id, ttl=CHANNEL_ROUND_TTL
        )

        state = await self.games.get_game(game_id)
        if state is None:
            await send_ephemeral(interaction, f"✅ Round `{game_id}` started.")
            return
        await interaction.response.send_message(embed=build_flaskgamba_embed(state))
        logger.info("Flask Gamba round %s started by %s", game_id, interaction.user.id)

    @flaskgamba.command(name="bet", description="Bet on the current Flask Gamba round.")
    @app_commands.describe(choice="Your pick", amount="How much to bet", game="Round id (default: this channel's round)")
    async def bet(
        self,
        interaction: discord.Interaction,
        choice: str,
        amount: app_commands.Range[int, 1, 1_000_000] = 1,
        game: str | None = None,
    ) -> None:
        game_id = await self._resolve_game_id(interaction, game)
        if game_id is None:
            await send_ephemeral(interaction, "❌ There is no Flask Gamba round in this channel.")
            return

        state = await self.games.get_game(game_id)
        if state is None or state.type != FLASKGAMBA:
            await send_ephemeral(interaction, "❌ Round not found.")
            return
        options: list[str] = state.data.get("options", [])
        match = next((o for o in options if o.lower() == choice.strip().lower()), None)
        if match is None:
            await send_ephemeral(interaction, f"❌ Pick one of: {', '.join(options)}")
            return

        if not await self.games.place_bet(game_id, str(interaction.user.id), match, amount):
            await send_ephemeral(interaction, "❌ Bet refused: you already bet, or the round is closed.")
            return
        await send_ephemeral(interaction, f"\U0001f9ea Bet placed: **{amount}** on **{match}**.")

    @flaskgamba.command(name="resolve", description="Close a Flask Gamba round and announce the winners.")
    @app_commands.describe(choice="The winning option", game="Round id (default: this channel's round)")
    @is_admin()
    async def resolve(self, interaction: discord.Interaction, choice: str, game: str | None = None) -> None:
        game_id = await self._resolve_game_id(interaction, game)
        state = await self.games.get_game(game_id) if game_id else None
        if state is None or state.type != FLASKGAMBA:
            await send_ephemeral(interaction, "❌ Round not found.")
            return
        options: list[str] = state.data.get("options", [])
        match = next((o for o in options if o.lower() == choice.strip().lower()), None)
        if match is None:
            await send_ephemeral(interaction, f"❌ Pick one of: {', '.join(options)}")
            return

        winners = await self.games.resolve_flaskgamba_round(state.game_id, match)
        if winners is None:
            await send_ephemeral(interaction, "❌ Could not resolve the round (already closed?).")
            return

        resolved = await self.games.get_game(state.game_id)
        await interaction.response.send_message(embed=build_flaskgamba_embed(resolved or state))

    @flaskgamba.command(name="cancel", description="Cancel a Flask Gamba round.")
    @app_commands.describe(reason="Why the round is cancelled", game="Round id (default: this channel's round)")
    @is_admin()
    async def cancel(
        self, interaction: discord.Interaction, reason: str | None = None, game: str | None = None
    ) -> None:
        game_id = await self._resolve_game_id(interaction, game)
        if game_id is None or not await self.games.cancel_game(game_id, reason):
            await send_ephemeral(interaction, "❌ Round not found or already closed.")
            return
        await send_ephemeral(interaction, f"✅ Round `{game_id}` cancelled.")


async def setup(bot: GuildkeeperBot) -> None:
    await bot.add_cog(Games(bot))
