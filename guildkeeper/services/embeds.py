"""
guildkeeper.services.embeds — Discord embed builders
=====================================================

All embed construction lives here so cogs only need to supply data.
"""

from __future__ import annotations

import discord

from guildkeeper.constants import EMBED_COLOR, RANK_BADGES, TOURNAMENT_STATUS_EMOJI
from guildkeeper.engine.models import (
    GameState,
    RoundData,
    TournamentConfig,
    TournamentStats,
    TournamentStatus,
    UserRoll,
)


def _ts(epoch_ms: int, style: str = "R") -> str:
    """Discord timestamp markup for an epoch-ms value."""
    return f"<t:{epoch_ms // 1000}:{style}>"


def _status_line(status: TournamentStatus) -> str:
    return f"{TOURNAMENT_STATUS_EMOJI.get(str(status), '❔')} {str(status).upper()}"


def rank_label(index: int) -> str:
    """Medal for the podium, ``N.`` below it (0-based *index*)."""
    return RANK_BADGES[index] if index < len(RANK_BADGES) else f"{index + 1}."


# ---------------------------------------------------------------------------
# Tournaments
# ---------------------------------------------------------------------------
def build_tournament_embed(
    config: TournamentConfig,
    leaderboard: list[UserRoll],
    stats: TournamentStats | None,
) -> discord.Embed:
    """The public tournament message: info, live stats and top 10."""
    embed = discord.Embed(
        title=f"\U0001f3c6 {config.name}",
        description=f"**Round {config.current_round}** • Status: {_status_line(config.status)}",
        color=EMBED_COLOR,
    )
    embed.add_field(
        name="Tournament Info",
        value=(
            f"\U0001f3b2 Roll Range: 1-{config.max_roll}\n"
            f"\U0001f504 Roll Limit: {config.roll_limit} per player\n"
            f"⏰ Deadline: {_ts(config.deadline)}"
        ),
        inline=False,
    )

    if stats is not None:
        lines = [
            f"\U0001f465 Active Players: **{stats.active_participants}**",
            f"\U0001f3b2 Total Rolls: **{stats.total_rolls}**",
            f"\U0001f4ca Average Roll: **{stats.average_roll}**",
        ]
        if stats.highest_roll is not None:
            lines.append(
                f"\U0001f525 Highest Roll: **{stats.highest_roll.roll}** "
                f"by {stats.highest_roll.username}"
            )
        embed.add_field(name="Current Statistics", value="\n".join(lines), inline=False)

    if leaderboard:
        board = "\n".join(
            f"{rank_label(i)} **{r.username}** - {r.roll} ({r.rolls_used}/{config.roll_limit} rolls)"
            for i, r in enumerate(leaderboard[:10])
        )
        embed.add_field(name="\U0001f3c5 Top 10 Leaderboard", value=board, inline=False)

    if config.status == TournamentStatus.COMPLETED:
        embed.add_field(
            name="\U0001f389 Tournament Complete!",
            value="Congratulations to the winner!",
            inline=False,
        )

    embed.set_footer(text=f"ID: {config.id}")
    return embed


def render_user_stats(config: TournamentConfig, roll: UserRoll | None, rank: int) -> str:
    """Ephemeral "My Stats" text for one player."""
    if roll is None:
        return (
            f"❌ You haven't rolled yet in **{config.name}**!\n\n"
            f"Roll Range: 1-{config.max_roll}\n"
            f"Rolls Remaining: {config.roll_limit}"
        )
    return (
        "## \U0001f4ca Your Tournament Stats\n\n"
        f"**Tournament:** {config.name}\n"
        f"**Your Best Roll:** {roll.roll}\n"
        f"**Current Rank:** #{rank}\n"
        f"**Rolls Used:** {roll.rolls_used}/{config.roll_limit}\n"
        f"**Rolls Remaining:** {config.roll_limit - roll.rolls_used}\n"
        f"**Best Roll Drawn:** {_ts(roll.timestamp)}"
    )


def build_setup_embed() -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f3c6 Tournament Setup",
        description="Use the buttons below to create or browse tournaments.",
        color=EMBED_COLOR,
    )
    embed.add_field(
        name="Tournament Features",
        value=(
            "• \U0001f3b2 Players roll numbers within a chosen range\n"
            "• \U0001f504 Limited rolls per player (best roll counts)\n"
            "• ⏰ Time-limited rounds with deadlines\n"
            "• \U0001f3c5 Elimination rounds remove the bottom performers\n"
            "• \U0001f3c6 Last player standing wins"
        ),
        inline=False,
    )
    return embed


def build_tournament_list_embed(tournaments: list[TournamentConfig]) -> discord.Embed:
    embed = discord.Embed(title="\U0001f4cb Active Tournaments", color=EMBED_COLOR)
    if not tournaments:
        embed.description = "No active tournaments found.\nCreate a new tournament to get started!"
        return embed

    for t in tournaments[:25]:
        embed.add_field(
            name=t.name,
            value=(
                f"{_status_line(t.status)}\n"
                f"\U0001f3b2 Roll Range: 1-{t.max_roll}\n"
                f"\U0001f504 Roll Limit: {t.roll_limit}\n"
                f"\U0001f4c5 Round: {t.current_round}\n"
                f"⏰ Deadline: {_ts(t.deadline)}\n"
                f"`{t.id}`"
            ),
            inline=True,
        )
    return embed


def build_round_history_embed(config: TournamentConfig, rounds: list[RoundData]) -> discord.Embed:
    embed = discord.Embed(title=f"\U0001f4dc {config.name} — Round History", color=EMBED_COLOR)
    if not rounds:
        embed.description = "No rounds recorded yet."
        return embed

    for rd in rounds[:25]:
        if rd.end_time is None:
            value = (
                f"In progress since {_ts(rd.start_time)}\n"
                f"Seeded players: {len(rd.participants) or 'open'}"
            )
        else:
            value = (
                f"Ended {_ts(rd.end_time)}\n"
                f"Players: {len(rd.participants)} • Eliminated: {len(rd.eliminated)}\n"
                f"Cutoff roll: {rd.cutoff_roll}"
            )
        embed.add_field(name=f"Round {rd.round_number}", value=value, inline=False)
    return embed


# ---------------------------------------------------------------------------
# Flask-gamba
# ---------------------------------------------------------------------------
def build_flaskgamba_embed(state: GameState) -> discord.Embed:
    data = state.data
    bets = data.get("bets", [])
    tally = {option: 0 for option in data.get("options", [])}
    for bet in bets:
        if bet.get("choice") in tally:
            tally[bet["choice"]] += 1

    embed = discord.Embed(
        title="\U0001f9ea Flask Gamba",
        description=f"**{data.get('question', '?')}**",
        color=EMBED_COLOR,
    )
    embed.add_field(
        name="Options",
        value="\n".join(f"• {opt} — {n} bet(s)" for opt, n in tally.items()) or "—",
        inline=False,
    )
    if "winningChoice" in data:
        winners = data.get("winners", [])
        embed.add_field(
            name="\U0001f389 Result",
            value=(
                f"Winning choice: **{data['winningChoice']}**\n"
                + (" ".join(f"<@{w}>" for w in winners) if winners else "No winners this time.")
            ),
            inline=False,
        )
    embed.set_footer(text=f"ID: {state.game_id} • {state.status}")
    return embed
