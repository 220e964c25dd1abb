"""
tests/test_embeds.py — Embed Builder Tests
===========================================
"""

from __future__ import annotations

from guildkeeper.engine.models import (
    GameState,
    GameStatus,
    RoundData,
    TournamentConfig,
    TournamentStats,
    TournamentStatus,
    UserRoll,
)
from guildkeeper.services.embeds import (
    build_flaskgamba_embed,
    build_round_history_embed,
    build_tournament_embed,
    build_tournament_list_embed,
    rank_label,
    render_user_stats,
)

START = 1_714_564_800_000


def make_config(**overrides) -> TournamentConfig:
    fields = {
        "id": "tournament-1",
        "name": "Cup",
        "max_roll": 100,
        "roll_limit": 3,
        "deadline": START + 3_600_000,
        "current_round": 2,
        "status": TournamentStatus.ACTIVE,
        "channel_id": "555",
        "created_at": START,
        "updated_at": START,
    }
    fields.update(overrides)
    return TournamentConfig(**fields)


class TestRankLabel:
    def test_podium_then_numbers(self):
        assert rank_label(0) == "\U0001f947"
        assert rank_label(2) == "\U0001f949"
        assert rank_label(3) == "4."


class TestTournamentEmbed:
    def test_footer_carries_id(self):
        embed = build_tournament_embed(make_config(), [], None)
        assert embed.footer.text == "ID: tournament-1"
        assert "Round 2" in embed.description

    def test_leaderboard_and_stats(self):
        rolls = [UserRoll("2", "bob", 80, START, 1), UserRoll("1", "alice", 40, START, 2)]
        stats = TournamentStats(2, 2, 0, 3, 60.0, highest_roll=rolls[0], lowest_roll=rolls[1])
        embed = build_tournament_embed(make_config(), rolls, stats)

        names = [f.name for f in embed.fields]
        assert "Current Statistics" in names
        board = next(f for f in embed.fields if "Leaderboard" in f.name)
        assert board.value.splitlines()[0].endswith("**bob** - 80 (1/3 rolls)")

    def test_completed_banner(self):
        embed = build_tournament_embed(make_config(status=TournamentStatus.COMPLETED), [], None)
        assert any("Complete" in f.name for f in embed.fields)


class TestUserStats:
    def test_without_roll(self):
        text = render_user_stats(make_config(), None, 0)
        assert "haven't rolled yet" in text
        assert "Rolls Remaining: 3" in text

    def test_with_roll(self):
        text = render_user_stats(make_config(), UserRoll("1", "alice", 40, START, 2), 5)
        assert "**Current Rank:** #5" in text
        assert "**Rolls Remaining:** 1" in text


class TestLists:
    def test_empty_list(self):
        assert "No active tournaments" in build_tournament_list_embed([]).description

    def test_history_marks_open_round(self):
        rounds = [
            RoundData(1, START, ["1", "2"], ["2"], end_time=START + 1000, cutoff_roll=40),
            RoundData(2, START + 1000, ["1"]),
        ]
        embed = build_round_history_embed(make_config(), rounds)
        assert "Cutoff roll: 40" in embed.fields[0].value
        assert embed.fields[1].value.startswith("In progress")


class TestFlaskGambaEmbed:
    def test_tally_and_result(self):
        state = GameState(
            game_id="flaskgamba-1",
            type="flaskgamba",
            status=GameStatus.COMPLETED,
            players=["u1", "u2"],
            data={
                "question": "Which flask?",
                "options": ["red", "blue"],
                "bets": [{"userId": "u1", "choice": "red"}, {"userId": "u2", "choice": "red"}],
                "winningChoice": "red",
                "winners": ["u1", "u2"],
            },
        )
        embed = build_flaskgamba_embed(state)
        assert "red — 2 bet(s)" in embed.fields[0].value
        assert "blue — 0 bet(s)" in embed.fields[0].value
        assert "<@u1> <@u2>" in embed.fields[1].value
        assert embed.footer.text == "ID: flaskgamba-1 • completed"
