"""
guildkeeper.engine.tournament — Roll-Off Elimination Engine
============================================================

State machine::

    setup ──► active ──► (round ending) ──► active (next round)
      │         │                      └──► completed
      └─────────┴──► cancelled

``completed`` and ``cancelled`` are terminal.  Round ending is transient
and never persisted: :meth:`TournamentEngine.end_round` goes straight from
``active`` to either the next ``active`` round or ``completed``.

Players roll a uniform integer in ``[1, max_roll]`` up to ``roll_limit``
times per round; only their best roll counts.  Ending a round drops the
bottom ``elimination_percentage`` of the ranking.

Ranking order everywhere (end-round, leaderboard, stats): roll descending,
then the time the best roll was drawn ascending.  Earlier rolls win ties.

Domain failures come back as :class:`RollResult` / :class:`RoundResult`
values with a :class:`TournamentError` code.  Store failures are *not*
caught here: they propagate to the caller.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable

from guildkeeper.constants import DEFAULT_ELIMINATION_PERCENTAGE, LEADERBOARD_SIZE, now_ms
from guildkeeper.engine.models import (
    RollResult,
    RoundData,
    RoundResult,
    TournamentConfig,
    TournamentError,
    TournamentStats,
    TournamentStatus,
    UserRoll,
)
from guildkeeper.services.tournament_store import TournamentStore

logger = logging.getLogger(__name__)

_HOUR_MS = 60 * 60 * 1000


def rank_rolls(rolls: Iterable[UserRoll]) -> list[UserRoll]:
    """Sort *rolls* best first: higher roll, then earlier timestamp."""
    return sorted(rolls, key=lambda r: (-r.roll, r.timestamp))


class TournamentEngine:
    """Tournament lifecycle on top of a :class:`TournamentStore`.

    Parameters
    ----------
    store:
        Fail-loud tournament persistence.
    rng:
        Source of rolls.  Defaults to a fresh :class:`random.Random`.
    clock:
        Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        store: TournamentStore,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    async def create_tournament(
        self,
        name: str,
        max_roll: int,
        roll_limit: int,
        deadline_hours: int,
        channel_id: str,
    ) -> TournamentConfig:
        """Create an ``active`` tournament with an empty round 1.

        Bounds (``max_roll``, ``roll_limit``, ``deadline_hours``) are checked
        by the Discord layer before we get here.
        """
        now = self.clock()
        stamp = now
        while await self.store.get_config(f"tournament-{stamp}") is not None:
            stamp += 1

        config = TournamentConfig(
            id=f"tournament-{stamp}",
            name=name,
            max_roll=max_roll,
            roll_limit=roll_limit,
            deadline=now + deadline_hours * _HOUR_MS,
            current_round=1,
            status=TournamentStatus.ACTIVE,
            channel_id=channel_id,
            created_at=now,
            updated_at=now,
        )
        await self.store.save_config(config)
        await self.store.save_round(config.id, RoundData(round_number=1, start_time=now))

        logger.info("Tournament created: %s (%s)", config.id, name)
        return config

    async def get_tournament(self, tournament_id: str) -> TournamentConfig | None:
        return await self.store.get_config(tournament_id)

    async def set_message_id(self, tournament_id: str, message_id: str) -> bool:
        """Remember which Discord message shows this tournament."""
        config = await self.store.get_config(tournament_id)
        if config is None:
            return False
        config.message_id = message_id
        config.updated_at = self.clock()
        await self.store.save_config(config)
        return True

    async def cancel_tournament(self, tournament_id: str) -> bool:
        """Cancel from any non-terminal status.

        ``False`` if the tournament is missing or already completed;
        cancelling a cancelled tournament is a no-op ``True``.
        """
        config = await self.store.get_config(tournament_id)
        if config is None:
            return False
        if config.status == TournamentStatus.CANCELLED:
            return True
        if config.status == TournamentStatus.COMPLETED:
            logger.info("Refusing to cancel completed tournament %s", tournament_id)
            return False

        config.status = TournamentStatus.CANCELLED
        config.updated_at = self.clock()
        await self.store.save_config(config)

        logger.info("Tournament cancelled: %s", tournament_id)
        return True

    # -----------------------------------------------------------------------
    # Rolling
    # -----------------------------------------------------------------------
    async def process_user_roll(
        self, tournament_id: str, user_id: str, username: str
    ) -> RollResult:
        """Draw a roll for *user_id*, keeping only their best of the round.

        A roll that does not beat the stored best still uses up one of the
        player's attempts, and the message tells them what they drew.
        """
        config = await self.store.get_config(tournament_id)
        if config is None:
            return RollResult(False, "Tournament not found", error=TournamentError.NOT_FOUND)
        if config.status != TournamentStatus.ACTIVE:
            return RollResult(
                False, "Tournament is not active", error=TournamentError.INVALID_STATE
            )

        now = self.clock()
        if now > config.deadline:
            return RollResult(
                False, "Tournament deadline has passed", error=TournamentError.DEADLINE_PASSED
            )

        existing = await self.store.get_user_roll(tournament_id, user_id)
        if existing is not None and existing.rolls_used >= config.roll_limit:
            return RollResult(
                False,
                f"You have used all {config.roll_limit} rolls",
                roll=existing,
                error=TournamentError.ROLL_LIMIT_EXCEEDED,
            )

        drawn = self.rng.randint(1, config.max_roll)
        rolls_used = existing.rolls_used + 1 if existing else 1
        usage = f"({rolls_used}/{config.roll_limit} rolls used)"

        if existing is None or drawn > existing.roll:
            best = UserRoll(
                user_id=user_id,
                username=username,
                roll=drawn,
                timestamp=now,
                rolls_used=rolls_used,
            )
            await self.store.save_user_roll(tournament_id, best)
            return RollResult(True, f"Rolled {drawn}! {usage}", roll=best, drawn=drawn)

        existing.rolls_used = rolls_used
        await self.store.save_user_roll(tournament_id, existing)
        return RollResult(
            True,
            f"Rolled {drawn}, but your previous roll of {existing.roll} was better. {usage}",
            roll=existing,
            drawn=drawn,
        )

    # -----------------------------------------------------------------------
    # Rounds
    # -----------------------------------------------------------------------
    async def end_round(
        self,
        tournament_id: str,
        elimination_percentage: float = DEFAULT_ELIMINATION_PERCENTAGE,
    ) -> RoundResult:
        """Close the current round and eliminate the bottom performers.

        With ``n`` ranked players, ``floor(n * pct / 100)`` are eliminated
        from the bottom of the ranking.  If at most one player remains the
        tournament completes and the top-ranked player wins.
        """
        config = await self.store.get_config(tournament_id)
        if config is None:
            return RoundResult(False, "Tournament not found", error=TournamentError.NOT_FOUND)
        if config.status != TournamentStatus.ACTIVE:
            return RoundResult(
                False, "Tournament is not active", error=TournamentError.INVALID_STATE
            )

        ranked = rank_rolls(await self.store.get_all_user_rolls(tournament_id))
        if not ranked:
            return RoundResult(
                False, "No participants in this round", error=TournamentError.NO_PARTICIPANTS
            )

        n = len(ranked)
        eliminate_count = int(n * elimination_percentage // 100)
        cutoff_index = max(0, n - eliminate_count - 1)
        cutoff_roll = ranked[cutoff_index].roll
        eliminated = [r.user_id for r in ranked[n - eliminate_count:]]
        round_number = config.current_round

        now = self.clock()
        previous = await self.store.get_round(tournament_id, round_number)
        await self.store.save_round(
            tournament_id,
            RoundData(
                round_number=round_number,
                start_time=previous.start_time if previous else now,
                end_time=now,
                participants=[r.user_id for r in ranked],
                eliminated=eliminated,
                cutoff_roll=cutoff_roll,
            ),
        )
        await self.store.delete_all_user_rolls(tournament_id)

        remaining = n - eliminate_count
        if remaining <= 1:
            winner = ranked[0]
            config.status = TournamentStatus.COMPLETED
            config.updated_at = now
            await self.store.save_config(config)

            logger.info("Tournament %s completed, winner %s", tournament_id, winner.user_id)
            return RoundResult(
                True,
                f"Tournament complete! Winner: {winner.username}",
                eliminated=eliminated,
                round_number=round_number,
                cutoff_roll=cutoff_roll,
                completed=True,
                winner=winner,
            )

        config.current_round = round_number + 1
        config.updated_at = now
        await self.store.save_config(config)
        await self.store.save_round(
            tournament_id,
            RoundData(
                round_number=config.current_round,
                start_time=now,
                participants=[r.user_id for r in ranked[:remaining]],
            ),
        )

        logger.info(
            "Tournament %s round %d ended: %d eliminated, cutoff %d",
            tournament_id, round_number, eliminate_count, cutoff_roll,
        )
        return RoundResult(
            True,
            f"Round {round_number} ended. {eliminate_count} players eliminated. "
            f"Starting round {config.current_round}!",
            eliminated=eliminated,
            round_number=round_number,
            cutoff_roll=cutoff_roll,
        )

    async def get_round_history(self, tournament_id: str) -> list[RoundData]:
        """Every round so far, ascending by round number."""
        return await self.store.get_all_rounds(tournament_id)

    # -----------------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------------
    async def calculate_stats(self, tournament_id: str) -> TournamentStats | None:
        """Recompute stats from the live rolls and cache the snapshot.

        ``None`` when nobody has rolled this round.
        """
        ranked = rank_rolls(await self.store.get_all_user_rolls(tournament_id))
        if not ranked:
            return None

        stats = TournamentStats(
            total_participants=len(ranked),
            active_participants=len(ranked),
            eliminated_participants=0,
            total_rolls=sum(r.rolls_used for r in ranked),
            average_roll=round(sum(r.roll for r in ranked) / len(ranked), 2),
            highest_roll=ranked[0],
            lowest_roll=ranked[-1],
        )
        await self.store.save_stats(tournament_id, stats)
        return stats

    async def get_leaderboard(
        self, tournament_id: str, limit: int = LEADERBOARD_SIZE
    ) -> list[UserRoll]:
        return rank_rolls(await self.store.get_all_user_rolls(tournament_id))[:limit]
