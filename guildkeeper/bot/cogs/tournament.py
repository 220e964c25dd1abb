"""
guildkeeper.bot.cogs.tournament — Tournament Commands & Buttons
================================================================

Slash commands (``/tournament …``):
- create / end-round / cancel / setup — admin only
- roll / leaderboard / history / list — everyone

Persistent buttons use the custom id ``tournament:<action>[:<id>]`` and
are dispatched through :class:`TournamentButton` (a ``DynamicItem``), so
tournament messages keep working after a restart.

Bounds on new tournaments are validated here, at the Discord boundary;
the engine trusts what it receives.
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
from guildkeeper.constants import (
    DEADLINE_HOURS_MAX,
    DEADLINE_HOURS_MIN,
    DEFAULT_ELIMINATION_PERCENTAGE,
    MAX_ROLL_MAX,
    MAX_ROLL_MIN,
    ROLL_LIMIT_MAX,
    ROLL_LIMIT_MIN,
)
from guildkeeper.engine.models import TournamentConfig, TournamentStatus
from guildkeeper.services.embeds import (
    build_round_history_embed,
    build_setup_embed,
    build_tournament_embed,
    build_tournament_list_embed,
    render_user_stats,
)

if TYPE_CHECKING:
    from guildkeeper.bot.core import GuildkeeperBot
    from guildkeeper.engine.tournament import TournamentEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TournamentForm:
    name: str
    max_roll: int
    roll_limit: int
    deadline_hours: int


def _bounded_int(raw: str | int, low: int, high: int, message: str) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValueError(message) from None
    if not low <= value <= high:
        raise ValueError(message)
    return value


def validate_tournament_form(
    name: str, max_roll: str | int, roll_limit: str | int, deadline_hours: str | int
) -> TournamentForm:
    """Parse and bound-check the create-tournament inputs.

    Raises
    ------
    ValueError
        With a user-facing message describing the first invalid field.
    """
    name = name.strip()
    if not name:
        raise ValueError("Tournament name cannot be empty.")
    return TournamentForm(
        name=name[:100],
        max_roll=_bounded_int(
            max_roll, MAX_ROLL_MIN, MAX_ROLL_MAX,
            f"Maximum roll must be between {MAX_ROLL_MIN} and {MAX_ROLL_MAX}.",
        ),
        roll_limit=_bounded_int(
            roll_limit, ROLL_LIMIT_MIN, ROLL_LIMIT_MAX,
            f"Roll limit must be between {ROLL_LIMIT_MIN} and {ROLL_LIMIT_MAX}.",
        ),
        deadline_hours=_bounded_int(
            deadline_hours, DEADLINE_HOURS_MIN, DEADLINE_HOURS_MAX,
            f"Deadline must be between {DEADLINE_HOURS_MIN} and {DEADLINE_HOURS_MAX} hours.",
        ),
    )


# ---------------------------------------------------------------------------
# Persistent buttons
# ---------------------------------------------------------------------------
class TournamentButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"tournament:(?P<action>[a-z]+)(?::(?P<tournament_id>[\w-]+))?",
):
    def __init__(
        self,
        action: str,
        tournament_id: str | None = None,
        *,
        label: str | None = None,
        style: discord.ButtonStyle = discord.ButtonStyle.secondary,
    ) -> None:
        custom_id = f"tournament:{action}" + (f":{tournament_id}" if tournament_id else "")
        super().__init__(discord.ui.Button(label=label or action, style=style, custom_id=custom_id))
        self.action = action
        self.tournament_id = tournament_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> TournamentButton:
        return cls(match["action"], match["tournament_id"])

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        return await check_rate_limit(interaction, f"tournament:{self.action}")

    async def callback(self, interaction: discord.Interaction) -> None:
        cog: Tournament | None = interaction.client.get_cog("Tournament")  # type: ignore[union-attr]
        if cog is None:
            await send_ephemeral(interaction, "❌ Tournaments are not available right now.")
            return
        try:
            await cog.handle_button(interaction, self.action, self.tournament_id)
        except Exception:
            logger.exception("Tournament button %s failed", self.custom_id)
            await send_ephemeral(interaction, GENERIC_ERROR)


def build_tournament_view(config: TournamentConfig) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    if config.status == TournamentStatus.ACTIVE:
        view.add_item(TournamentButton("roll", config.id, label="🎲 Roll", style=discord.ButtonStyle.primary))
        view.add_item(TournamentButton("stats", config.id, label="📊 My Stats"))
        view.add_item(TournamentButton("refresh", config.id, label="🔄 Refresh", style=discord.ButtonStyle.success))
    return view


def build_setup_view() -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(TournamentButton("create", label="➕ Create Tournament", style=discord.ButtonStyle.success))
    view.add_item(TournamentButton("list", label="📋 List Tournaments"))
    return view


def build_list_view(tournaments: list[TournamentConfig]) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    # A view holds at most 25 components.
    for t in tournaments[:8]:
        view.add_item(TournamentButton("view", t.id, label=f"View {t.name}"[:80], style=discord.ButtonStyle.primary))
        view.add_item(TournamentButton("endround", t.id, label="End Round", style=discord.ButtonStyle.danger))
    view.add_item(TournamentButton("create", label="➕ Create New", style=discord.ButtonStyle.success))
    view.add_item(TournamentButton("listrefresh", label="🔄 Refresh"))
    return view


# ---------------------------------------------------------------------------
# Create modal
# ---------------------------------------------------------------------------
class CreateTournamentModal(discord.ui.Modal, title="Create Tournament"):
    name = discord.ui.TextInput(
        label="Tournament Name", max_length=100, placeholder="e.g., Weekly Roll Championship"
    )
    max_roll = discord.ui.TextInput(label="Maximum Roll Number", default="100", max_length=5)
    roll_limit = discord.ui.TextInput(label="Roll Limit per Player", default="3", max_length=2)
    deadline = discord.ui.TextInput(label="Deadline (hours from now)", default="24", max_length=3)

    def __init__(self, cog: Tournament) -> None:
        super().__init__()
        self.cog = cog

    async def on_submit(self, interaction: discord.Interaction) -> None:
        try:
            form = validate_tournament_form(
                self.name.value, self.max_roll.value, self.roll_limit.value, self.deadline.value
            )
        except ValueError as exc:
            await send_ephemeral(interaction, f"❌ {exc}")
            return
        await self.cog.create_and_announce(interaction, form)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.error("Create-tournament modal failed", exc_info=error)
        await send_ephemeral(interaction, "❌ Failed to create tournament. Please try again.")


# ---------------------------------------------------------------------------
# Cog
# ---------------------------------------------------------------------------
class Tournament(commands.Cog, name="Tournament"):
    """Roll-off elimination tournaments."""

    tournament = app_commands.Group(name="tournament", description="Roll-off elimination tournaments.")

    def __init__(self, bot: GuildkeeperBot) -> None:
        self.bot = bot
        self._buttons: dict[str, Callable[[discord.Interaction, str | None], Awaitable[None]]] = {
            "setup": self._on_setup,
            "list": self._on_list,
            "listrefresh": self._on_list,
            "create": self._on_create,
            "roll": self._on_roll,
            "stats": self._on_stats,
            "refresh": self._on_refresh,
            "view": self._on_view,
            "endround": self._on_end_round,
        }

    @property
    def engine(self) -> TournamentEngine:
        return self.bot.context.tournaments

    # -------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------
    async def _render(self, config: TournamentConfig) -> tuple[discord.Embed, discord.ui.View]:
        stats = await self.engine.calculate_stats(config.id)
        leaderboard = await self.engine.get_leaderboard(config.id)
        return build_tournament_embed(config, leaderboard, stats), build_tournament_view(config)

    async def _active_tournaments(self) -> list[TournamentConfig]:
        configs = await self.bot.context.tournament_store.list_active_tournaments()
        return [c for c in configs if not c.status.is_terminal]

    async def _refresh_public_message(self, config: TournamentConfig) -> None:
        """Re-render the public tournament message, if we know where it is."""
        if not config.message_id:
            return
        channel = self.bot.get_channel(int(config.channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            return
        try:
            message = await channel.fetch_message(int(config.message_id))
            embed, view = await self._render(config)
            await message.edit(embed=embed, view=view)
        except discord.HTTPException:
            logger.warning("Could not refresh tournament message for %s", config.id)

    async def create_and_announce(self, interaction: discord.Interaction, form: TournamentForm) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        if interaction.channel_id is None:
            await interaction.followup.send("❌ Could not determine channel.", ephemeral=True)
            return

        config = await self.engine.create_tournament(
            form.name, form.max_roll, form.roll_limit, form.deadline_hours, str(interaction.channel_id)
        )
        embed, view = await self._render(config)
        channel = interaction.channel
        if isinstance(channel, discord.abc.Messageable):
            message = await channel.send(embed=embed, view=view)
            await self.engine.set_message_id(config.id, str(message.id))

        await interaction.followup.send(
            f"✅ Tournament **{config.name}** created successfully!\n\nTournament ID: `{config.id}`",
            ephemeral=True,
        )
        logger.info("Tournament %s created by %s", config.id, interaction.user.id)

    async def handle_button(
        self, interaction: discord.Interaction, action: str, tournament_id: str | None
    ) -> None:
        handler = self._buttons.get(action)
        if handler is None:
            logger.warning("Unknown tournament action: %s", action)
            await send_ephemeral(interaction, "❌ Unknown action.")
            return
        await handler(interaction, tournament_id)

    # -------------------------------------------------------------------
    # Button handlers
    # -------------------------------------------------------------------
    async def _on_setup(self, interaction: discord.Interaction, _: str | None) -> None:
        if not interaction_is_admin(interaction):
            await send_ephemeral(interaction, "❌ Only administrators can access tournament setup.")
            return
        await send_ephemeral(interaction, embed=build_setup_embed(), view=build_setup_view())

    async def _on_list(self, interaction: discord.Interaction, _: str | None) -> None:
        tournaments = await self._active_tournaments()
        embed = build_tournament_list_embed(tournaments)
        view = build_list_view(tournaments)
        data = interaction.data or {}
        if data.get("custom_id") == "tournament:listrefresh":
            await interaction.response.edit_message(embed=embed, view=view)
        else:
            await send_ephemeral(interaction, embed=embed, view=view)

    async def _on_create(self, interaction: discord.Interaction, _: str | None) -> None:
        if not interaction_is_admin(interaction):
            await send_ephemeral(interaction, "❌ Only administrators can create tournaments.")
            return
        await interaction.response.send_modal(CreateTournamentModal(self))

    async def _on_roll(self, interaction: discord.Interaction, tournament_id: str | None) -> None:
        if not tournament_id:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        result = await self.engine.process_user_roll(
            tournament_id, str(interaction.user.id), interaction.user.display_name
        )
        if not result.success:
            await send_ephemeral(interaction, f"❌ {result.message}")
            return
        await send_ephemeral(interaction, f"🎲 {result.message}")

        config = await self.engine.get_tournament(tournament_id)
        if config is None:
            return
        if interaction.message is None:
            await self._refresh_public_message(config)
            return
        try:
            embed, view = await self._render(config)
            await interaction.message.edit(embed=embed, view=view)
        except discord.HTTPException:
            logger.warning("Failed to refresh tournament message after roll in %s", tournament_id)

    async def _on_stats(self, interaction: discord.Interaction, tournament_id: str | None) -> None:
        config = await self.engine.get_tournament(tournament_id) if tournament_id else None
        if config is None:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        user_id = str(interaction.user.id)
        roll = await self.bot.context.tournament_store.get_user_roll(config.id, user_id)
        ranking = await self.engine.get_leaderboard(config.id, limit=10_000)
        rank = next((i + 1 for i, r in enumerate(ranking) if r.user_id == user_id), len(ranking) + 1)
        await send_ephemeral(interaction, render_user_stats(config, roll, rank))

    async def _on_refresh(self, interaction: discord.Interaction, tournament_id: str | None) -> None:
        config = await self.engine.get_tournament(tournament_id) if tournament_id else None
        if config is None:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        embed, view = await self._render(config)
        await interaction.response.edit_message(embed=embed, view=view)

    async def _on_view(self, interaction: discord.Interaction, tournament_id: str | None) -> None:
        config = await self.engine.get_tournament(tournament_id) if tournament_id else None
        if config is None:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        embed, view = await self._render(config)
        await send_ephemeral(interaction, embed=embed, view=view)

    async def _on_end_round(self, interaction: discord.Interaction, tournament_id: str | None) -> None:
        if not interaction_is_admin(interaction):
            await send_ephemeral(interaction, "❌ Only administrators can end tournament rounds.")
            return
        if not tournament_id:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        await self._end_round(interaction, tournament_id, DEFAULT_ELIMINATION_PERCENTAGE)

    async def _end_round(
        self, interaction: discord.Interaction, tournament_id: str, percentage: float
    ) -> None:
        result = await self.engine.end_round(tournament_id, percentage)
        if not result.success:
            await interaction.followup.send(f"❌ {result.message}", ephemeral=True)
            return

        await interaction.followup.send(
            f"✅ {result.message}\n\nEliminated players: {len(result.eliminated)}", ephemeral=True
        )
        config = await self.engine.get_tournament(tournament_id)
        if config is not None:
            await self._refresh_public_message(config)

    # -------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------
    @tournament.command(name="create", description="Create a new tournament in this channel.")
    @app_commands.describe(
        name="Tournament name",
        max_roll=f"Highest possible roll ({MAX_ROLL_MIN}-{MAX_ROLL_MAX})",
        roll_limit=f"Rolls per player per round ({ROLL_LIMIT_MIN}-{ROLL_LIMIT_MAX})",
        deadline_hours=f"Hours until the deadline ({DEADLINE_HOURS_MIN}-{DEADLINE_HOURS_MAX})",
    )
    @is_admin()
    async def create(
        self,
        interaction: discord.Interaction,
        name: str,
        max_roll: int = 100,
        roll_limit: int = 3,
        deadline_hours: int = 24,
    ) -> None:
        try:
            form = validate_tournament_form(name, max_roll, roll_limit, deadline_hours)
        except ValueError as exc:
            await send_ephemeral(interaction, f"❌ {exc}")
            return
        await self.create_and_announce(interaction, form)

    @tournament.command(name="setup", description="Show the tournament setup panel.")
    @is_admin()
    async def setup_panel(self, interaction: discord.Interaction) -> None:
        await send_ephemeral(interaction, embed=build_setup_embed(), view=build_setup_view())

    @tournament.command(name="roll", description="Roll in a tournament.")
    @app_commands.describe(tournament="The tournament to roll in")
    async def roll(self, interaction: discord.Interaction, tournament: str) -> None:
        await self._on_roll(interaction, tournament)

    @tournament.command(name="end-round", description="End the current round and eliminate the bottom players.")
    @app_commands.describe(
        tournament="The tournament",
        percentage="Share of players to eliminate (default 50)",
    )
    @is_admin()
    async def end_round(
        self,
        interaction: discord.Interaction,
        tournament: str,
        percentage: app_commands.Range[int, 1, 99] = DEFAULT_ELIMINATION_PERCENTAGE,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await self._end_round(interaction, tournament, percentage)

    @tournament.command(name="cancel", description="Cancel a tournament.")
    @app_commands.describe(tournament="The tournament to cancel")
    @is_admin()
    async def cancel(self, interaction: discord.Interaction, tournament: str) -> None:
        if not await self.engine.cancel_tournament(tournament):
            await send_ephemeral(interaction, "❌ Tournament not found or already completed.")
            return
        await send_ephemeral(interaction, "✅ Tournament cancelled.")
        config = await self.engine.get_tournament(tournament)
        if config is not None:
            await self._refresh_public_message(config)

    @tournament.command(name="leaderboard", description="Show a tournament's standings.")
    @app_commands.describe(tournament="The tournament")
    async def leaderboard(self, interaction: discord.Interaction, tournament: str) -> None:
        await self._on_view(interaction, tournament)

    @tournament.command(name="history", description="Show a tournament's finished rounds.")
    @app_commands.describe(tournament="The tournament")
    async def history(self, interaction: discord.Interaction, tournament: str) -> None:
        config = await self.engine.get_tournament(tournament)
        if config is None:
            await send_ephemeral(interaction, "❌ Tournament not found.")
            return
        rounds = await self.engine.get_round_history(config.id)
        await send_ephemeral(interaction, embed=build_round_history_embed(config, rounds))

    @tournament.command(name="list", description="List active tournaments.")
    async def list_tournaments(self, interaction: discord.Interaction) -> None:
        await self._on_list(interaction, None)

    @roll.autocomplete("tournament")
    @end_round.autocomplete("tournament")
    @cancel.autocomplete("tournament")
    @leaderboard.autocomplete("tournament")
    @history.autocomplete("tournament")
    async def tournament_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        tournaments = await self._active_tournaments()
        current = current.lower()
        return [
            app_commands.Choice(name=f"{t.name} (round {t.current_round})"[:100], value=t.id)
            for t in tournaments
            if current in t.name.lower() or current in t.id
        ][:25]


async def setup(bot: GuildkeeperBot) -> None:
    await bot.add_cog(Tournament(bot))
