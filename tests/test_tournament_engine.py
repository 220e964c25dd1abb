"""
tests/test_tournament_engine.py — Roll-Off Elimination Engine Tests
====================================================================

Runs the engine against the in-memory Redis double with a pinned clock
and, where exact draws matter, a scripted RNG.
"""

from __future__ import annotations

import pytest
from conftest import START_MS, ScriptedRng, run_async
from redis.exceptions import RedisError

from guildkeeper.engine.models import TournamentError, TournamentStatus, UserRoll
from guildkeeper.engine.tournament import TournamentEngine, rank_rolls

HOUR_MS = 3_600_000


def create(engine, name="Cup", max_roll=100, roll_limit=3, deadline_hours=24):
    return run_async(engine.create_tournament(name, max_roll, roll_limit, deadline_hours, "555"))


def scripted_engine(store, clock, draws):
    return TournamentEngine(store, rng=ScriptedRng(draws), clock=clock)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------
class TestRankRolls:
    def test_higher_roll_first(self):
        rolls = [
            UserRoll("a", "A", 10, 1, 1),
            UserRoll("b", "B", 90, 2, 1),
            UserRoll("c", "C", 50, 3, 1),
        ]
        assert [r.user_id for r in rank_rolls(rolls)] == ["b", "c", "a"]

    def test_earlier_roll_wins_ties(self):
        rolls = [UserRoll("late", "L", 50, 200, 1), UserRoll("early", "E", 50, 100, 1)]
        assert [r.user_id for r in rank_rolls(rolls)] == ["early", "late"]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
class TestCreate:
    def test_new_tournament_is_active_in_round_one(self, engine, store):
        config = create(engine, deadline_hours=24)
        assert config.id == f"tournament-{START_MS}"
        assert config.status == TournamentStatus.ACTIVE
        assert config.current_round == 1
        assert config.deadline == START_MS + 24 * HOUR_MS
        assert config.created_at == config.updated_at == START_MS

        assert run_async(engine.get_tournament(config.id)) == config
        first = run_async(store.get_round(config.id, 1))
        assert first.start_time == START_MS
        assert first.end_time is None
        assert first.participants == []

    def test_same_millisecond_gets_distinct_id(self, engine):
        first = create(engine)
        second = create(engine)
        assert first.id != second.id
        assert second.id == f"tournament-{START_MS + 1}"

    def test_store_outage_raises(self, engine, fake_redis):
        fake_redis.down = True
        with pytest.raises(RedisError):
            create(engine)


class TestCancel:
    def test_missing(self, engine):
        assert run_async(engine.cancel_tournament("tournament-0")) is False

    def test_active_then_again(self, engine):
        config = create(engine)
        assert run_async(engine.cancel_tournament(config.id)) is True
        assert run_async(engine.get_tournament(config.id)).status == TournamentStatus.CANCELLED
        assert run_async(engine.cancel_tournament(config.id)) is True

    def test_completed_cannot_be_cancelled(self, engine):
        config = create(engine)
        run_async(engine.process_user_roll(config.id, "1", "solo"))
        run_async(engine.end_round(config.id))
        assert run_async(engine.cancel_tournament(config.id)) is False
        assert run_async(engine.get_tournament(config.id)).status == TournamentStatus.COMPLETED


class TestMessageId:
    def test_set_message_id(self, engine, clock):
        config = create(engine)
        clock.advance(10)
        assert run_async(engine.set_message_id(config.id, "msg-1")) is True
        stored = run_async(engine.get_tournament(config.id))
        assert stored.message_id == "msg-1"
        assert stored.updated_at == START_MS + 10

    def test_missing_tournament(self, engine):
        assert run_async(engine.set_message_id("tournament-0", "msg-1")) is False


# ---------------------------------------------------------------------------
# Rolling
# ---------------------------------------------------------------------------
class TestRoll:
    def test_first_roll_in_range(self, engine):
        config = create(engine, max_roll=100)
        result = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert result.success
        assert 1 <= result.roll.roll <= 100
        assert result.roll.rolls_used == 1
        assert result.drawn == result.roll.roll
        assert result.message == f"Rolled {result.drawn}! (1/3 rolls used)"

    def test_roll_limit_enforced(self, engine, store):
        config = create(engine, roll_limit=3)
        for _ in range(3):
            assert run_async(engine.process_user_roll(config.id, "1", "alice")).success

        refused = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert not refused.success
        assert refused.error == TournamentError.ROLL_LIMIT_EXCEEDED
        assert refused.message == "You have used all 3 rolls"
        assert run_async(store.get_user_roll(config.id, "1")).rolls_used == 3

    def test_best_roll_never_decreases(self, store, clock):
        engine = scripted_engine(store, clock, [50, 20, 70])
        config = create(engine)

        first = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert first.roll.roll == 50
        first_time = first.roll.timestamp

        clock.advance(1000)
        worse = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert worse.success
        assert worse.drawn == 20
        assert worse.roll.roll == 50
        assert worse.roll.rolls_used == 2
        assert worse.roll.timestamp == first_time
        assert "previous roll of 50 was better" in worse.message

        clock.advance(1000)
        better = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert better.roll.roll == 70
        assert better.roll.rolls_used == 3
        assert better.roll.timestamp == first_time + 2000

    def test_unknown_tournament(self, engine):
        result = run_async(engine.process_user_roll("tournament-0", "1", "alice"))
        assert not result.success
        assert result.error == TournamentError.NOT_FOUND

    def test_cancelled_tournament(self, engine):
        config = create(engine)
        run_async(engine.cancel_tournament(config.id))
        result = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert result.error == TournamentError.INVALID_STATE

    def test_deadline_passed(self, engine, clock):
        config = create(engine, deadline_hours=1)
        clock.advance(HOUR_MS + 1)
        result = run_async(engine.process_user_roll(config.id, "1", "alice"))
        assert not result.success
        assert result.error == TournamentError.DEADLINE_PASSED


# ---------------------------------------------------------------------------
# Rounds
# ---------------------------------------------------------------------------
class TestEndRound:
    def test_ten_players_half_eliminated(self, store, clock):
        engine = scripted_engine(store, clock, list(range(1, 11)))
        config = create(engine)
        for i in range(1, 11):
            run_async(engine.process_user_roll(config.id, str(i), f"player{i}"))

        result = run_async(engine.end_round(config.id, 50))
        assert result.success
        assert not result.completed
        assert sorted(result.eliminated, key=int) == ["1", "2", "3", "4", "5"]
        assert result.cutoff_roll == 6
        assert result.round_number == 1
        assert result.message == "Round 1 ended. 5 players eliminated. Starting round 2!"

        updated = run_async(engine.get_tournament(config.id))
        assert updated.current_round == 2
        assert updated.status == TournamentStatus.ACTIVE
        assert run_async(store.get_all_user_rolls(config.id)) == []

        closed, opened = run_async(engine.get_round_history(config.id))
        assert closed.round_number == 1
        assert closed.end_time == START_MS
        assert closed.start_time == START_MS
        assert len(closed.participants) == 10
        assert opened.round_number == 2
        assert sorted(opened.participants, key=int) == ["6", "7", "8", "9", "10"]

    def test_eliminated_count_is_floored(self, store, clock):
        engine = scripted_engine(store, clock, [10, 20, 30])
        config = create(engine)
        for i in range(1, 4):
            run_async(engine.process_user_roll(config.id, str(i), f"player{i}"))

        result = run_async(engine.end_round(config.id, 50))
        assert result.eliminated == ["1"]
        assert result.cutoff_roll == 20

    def test_tied_cutoff_keeps_earlier_roll(self, store, clock):
        engine = scripted_engine(store, clock, [40, 40, 90])
        config = create(engine)
        run_async(engine.process_user_roll(config.id, "early", "E"))
        clock.advance(5)
        run_async(engine.process_user_roll(config.id, "late", "L"))
        clock.advance(5)
        run_async(engine.process_user_roll(config.id, "top", "T"))

        result = run_async(engine.end_round(config.id, 34))
        assert result.eliminated == ["late"]

    def test_two_players_completes(self, store, clock):
        engine = scripted_engine(store, clock, [30, 80])
        config = create(engine)
        run_async(engine.process_user_roll(config.id, "1", "alice"))
        run_async(engine.process_user_roll(config.id, "2", "bob"))

        result = run_async(engine.end_round(config.id))
        assert result.completed
        assert result.winner.user_id == "2"
        assert result.eliminated == ["1"]
        assert result.message == "Tournament complete! Winner: bob"
        assert run_async(engine.get_tournament(config.id)).status == TournamentStatus.COMPLETED

    def test_no_participants(self, engine):
        config = create(engine)
        result = run_async(engine.end_round(config.id))
        assert not result.success
        assert result.error == TournamentError.NO_PARTICIPANTS

    def test_not_active(self, engine):
        config = create(engine)
        run_async(engine.cancel_tournament(config.id))
        assert run_async(engine.end_round(config.id)).error == TournamentError.INVALID_STATE

    def test_cup_scenario(self, engine, store):
        config = create(engine, name="Cup", max_roll=100, roll_limit=1, deadline_hours=24)
        assert config.status == TournamentStatus.ACTIVE
        assert config.current_round == 1

        first = run_async(engine.process_user_roll(config.id, "A", "A"))
        assert first.success
        assert 1 <= first.roll.roll <= 100
        assert first.roll.rolls_used == 1

        second = run_async(engine.process_user_roll(config.id, "A", "A"))
        assert not second.success
        assert second.error == TournamentError.ROLL_LIMIT_EXCEEDED

        result = run_async(engine.end_round(config.id))
        assert result.completed
        assert result.eliminated == []
        assert result.winner.user_id == "A"
        assert run_async(engine.get_tournament(config.id)).status == TournamentStatus.COMPLETED


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
class TestStatsAndLeaderboard:
    def test_stats_none_without_rolls(self, engine):
        config = create(engine)
        assert run_async(engine.calculate_stats(config.id)) is None

    def test_stats_snapshot_saved(self, store, clock):
        engine = scripted_engine(store, clock, [10, 20, 30])
        config = create(engine)
        run_async(engine.process_user_roll(config.id, "1", "alice"))
        run_async(engine.process_user_roll(config.id, "1", "alice"))
        run_async(engine.process_user_roll(config.id, "2", "bob"))

        stats = run_async(engine.calculate_stats(config.id))
        assert stats.total_participants == 2
        assert stats.active_participants == 2
        assert stats.total_rolls == 3
        assert stats.average_roll == 25.0
        assert stats.highest_roll.user_id == "2"
        assert stats.lowest_roll.user_id == "1"
        assert run_async(store.get_stats(config.id)) == stats

    def test_leaderboard_ranked_and_limited(self, store, clock):
        engine = scripted_engine(store, clock, [5, 50, 25])
        config = create(engine)
        for uid in ("1", "2", "3"):
            run_async(engine.process_user_roll(config.id, uid, f"player{uid}"))

        board = run_async(engine.get_leaderboard(config.id, limit=2))
        assert [r.user_id for r in board] == ["2", "3"]
