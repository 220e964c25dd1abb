"""
guildkeeper.services.game_state — Mini-Game Lifecycle
======================================================

Generic lifecycle for the simpler mini-games::

    pending ──► active ──► completed
       │          │
       └──────────┴──► cancelled

Games live in the storage façade under ``game:<id>:state`` (24h in Redis,
mirrored to disk).  Lifecycle events are appended to the ``game`` event
log, and completed games are snapshotted under ``backups/game-<type>/``.

Every mutation re-reads the whole document, changes it, and writes the
whole document back.  There is no lock and no version check, so two
concurrent mutations of the *same* game are last-writer-wins.  Discord
delivers one interaction per user at a time and admin actions are rare,
so this stays a known limitation.

Flask-gamba (a pick-an-option betting round) is built on the same
lifecycle at the bottom of this module.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from guildkeeper.constants import utc_iso
from guildkeeper.engine.models import GameScore, GameState, GameStatus
from guildkeeper.services.storage import StorageService

logger = logging.getLogger(__name__)

FLASKGAMBA = "flaskgamba"

_MALFORMED = (KeyError, TypeError, ValueError, AttributeError)


class GameStateManager:
    """Owns the :class:`GameState` lifecycle.  All methods are fail-soft."""

    def __init__(
        self,
        storage: StorageService,
        *,
        now: Callable[[], datetime] | None = None,
        id_clock: Callable[[], int] | None = None,
    ) -> None:
        self.storage = storage
        self._now = now or (lambda: datetime.now(UTC))
        self._id_clock = id_clock or (lambda: int(self._now().timestamp() * 1000))

    async def _save(self, state: GameState) -> bool:
        return await self.storage.store_game_state(state.game_id, state.to_dict())

    async def _load(self, game_id: str) -> GameState | None:
        state = await self.get_game(game_id)
        if state is None:
            logger.error("Game not found: %s", game_id)
        return state

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    async def create_game(
        self,
        game_id: str,
        game_type: str,
        initial_data: dict[str, Any] | None = None,
    ) -> bool:
        state = GameState(game_id=game_id, type=game_type, data=dict(initial_data or {}))
        if not await self._save(state):
            logger.error("Failed to create game %s (%s)", game_id, game_type)
            return False

        await self.storage.log_event(
            "game", {"action": "create", "gameId": game_id, "type": game_type}
        )
        logger.info("Game created: %s (%s)", game_id, game_type)
        return True

    async def get_game(self, game_id: str) -> GameState | None:
        """Current state, or ``None`` if the game is absent or malformed."""
        raw = await self.storage.retrieve_game_state(game_id)
        if raw is None:
            return None
        try:
            return GameState.from_dict(raw)
        except _MALFORMED as exc:
            logger.error("Malformed state for game %s: %s", game_id, exc)
            return None

    async def start_game(self, game_id: str) -> bool:
        """Mark a pending game active.  Re-starting an active game just resets ``started_at``."""
        state = await self._load(game_id)
        if state is None:
            return False
        if state.status not in (GameStatus.PENDING, GameStatus.ACTIVE):
            logger.warning("Cannot start game %s in status %s", game_id, state.status)
            return False

        state.status = GameStatus.ACTIVE
        state.started_at = utc_iso(self._now())
        if not await self._save(state):
            return False

        await self.storage.log_event(
            "game", {"action": "start", "gameId": game_id, "type": state.type}
        )
        logger.info("Game started: %s", game_id)
        return True

    async def complete_game(
        self, game_id: str, final_data: dict[str, Any] | None = None
    ) -> bool:
        """Finish an active game, merging *final_data* and saving a backup."""
        state = await self._load(game_id)
        if state is None:
            return False
        if state.status != GameStatus.ACTIVE:
            logger.warning("Cannot complete game %s in status %s", game_id, state.status)
            return False

        ended = self._now()
        state.status = GameStatus.COMPLETED
        state.ended_at = utc_iso(ended)
        if final_data:
            state.data = {**state.data, **final_data}
        if not await self._save(state):
            return False

        duration = 0
        if state.started_at:
            try:
                started = datetime.fromisoformat(state.started_at)
                duration = int((ended - started).total_seconds() * 1000)
            except (TypeError, ValueError):
                logger.warning("Unparseable start time on game %s", game_id)
        await self.storage.log_event(
            "game",
            {
                "action": "complete",
                "gameId": game_id,
                "type": state.type,
                "playerCount": len(state.players),
                "duration": duration,
            },
        )
        await self.storage.save_backup(f"game-{state.type}", state.to_dict())
        logger.info("Game completed: %s", game_id)
        return True

    async def cancel_game(self, game_id: str, reason: str | None = None) -> bool:
        state = await self._load(game_id)
        if state is None:
            return False
        if state.status not in (GameStatus.PENDING, GameStatus.ACTIVE):
            logger.warning("Cannot cancel game %s in status %s", game_id, state.status)
            return False

        state.status = GameStatus.CANCELLED
        state.ended_at = utc_iso(self._now())
        if reason:
            state.data["cancelReason"] = reason
        if not await self._save(state):
            return False

        await self.storage.log_event(
            "game",
            {"action": "cancel", "gameId": game_id, "type": state.type, "reason": reason},
        )
        logger.info("Game cancelled: %s (%s)", game_id, reason)
        return True

    # -----------------------------------------------------------------------
    # Players & data
    # -----------------------------------------------------------------------
    async def add_player(self, game_id: str, user_id: str) -> bool:
        """Idempotent: re-adding a player succeeds without duplicating them."""
        state = await self._load(game_id)
        if state is None:
            return False
        if user_id in state.players:
            logger.debug("Player %s already in game %s", user_id, game_id)
            return True

        state.players.append(user_id)
        if not await self._save(state):
            return False

        await self.storage.log_event(
            "game",
            {
                "action": "player_join",
                "gameId": game_id,
                "userId": user_id,
                "playerCount": len(state.players),
            },
        )
        return True

    async def remove_player(self, game_id: str, user_id: str) -> bool:
        """Idempotent: removing an absent player is a successful no-op."""
        state = await self._load(game_id)
        if state is None:
            return False
        if user_id not in state.players:
            logger.debug("Player %s not in game %s", user_id, game_id)
            return True

        state.players.remove(user_id)
        if not await self._save(state):
            return False

        await self.storage.log_event(
            "game",
            {
                "action": "player_leave",
                "gameId": game_id,
                "userId": user_id,
                "playerCount": len(state.players),
            },
        )
        return True

    async def update_game_data(self, game_id: str, data: dict[str, Any]) -> bool:
        """Shallow-merge *data* into the game's data bag (later keys win)."""
        state = await self._load(game_id)
        if state is None:
            return False
        state.data = {**state.data, **data}
        return await self._save(state)

    async def record_score(self, game_id: str, user_id: str, score: float) -> bool:
        """Append a timestamped score.  Earlier scores of the same user are kept."""
        state = await self._load(game_id)
        if state is None:
            return False

        entry: GameScore = {"userId": user_id, "score": score, "timestamp": utc_iso(self._now())}
        state.data.setdefault("scores", []).append(entry)
        if not await self._save(state):
            return False

        await self.storage.log_event(
            "game", {"action": "score", "gameId": game_id, "userId": user_id, "score": score}
        )
        return True

    # -----------------------------------------------------------------------
    # Flask-gamba
    # -----------------------------------------------------------------------
    async def create_flaskgamba_round(
        self, channel_id: str, question: str, options: list[str]
    ) -> str | None:
        """Open a betting round; returns its game id, or ``None`` on failure."""
        game_id = f"{FLASKGAMBA}-{self._id_clock()}"
        created = await self.create_game(
            game_id,
            FLASKGAMBA,
            {"channelId": channel_id, "question": question, "options": list(options), "bets": []},
        )
        if not created or not await self.start_game(game_id):
            return None
        return game_id

    async def place_bet(
        self, game_id: str, user_id: str, choice: str, amount: int
    ) -> bool:
        """One bet per user on an open round; *choice* must be one of the options."""
        state = await self.get_game(game_id)
        if state is None or state.type != FLASKGAMBA:
            logger.error("Invalid game for betting: %s", game_id)
            return False
        if state.status not in (GameStatus.PENDING, GameStatus.ACTIVE):
            logger.warning("Betting is closed on %s", game_id)
            return False
        if choice not in state.data.get("options", []):
            logger.warning("Unknown choice %r on %s", choice, game_id)
            return False

        bets: list[dict[str, Any]] = state.data.setdefault("bets", [])
        if any(bet.get("userId") == user_id for bet in bets):
            logger.warning("User %s already placed a bet on %s", user_id, game_id)
            return False

        bets.append(
            {
                "userId": user_id,
                "choice": choice,
                "amount": amount,
                "timestamp": utc_iso(self._now()),
            }
        )
        if user_id not in state.players:
            state.players.append(user_id)
        if not await self._save(state):
            return False

        await self.storage.log_event(
            FLASKGAMBA,
            {
                "action": "bet",
                "gameId": game_id,
                "userId": user_id,
                "choice": choice,
                "amount": amount,
            },
        )
        return True

    async def resolve_flaskgamba_round(
        self, game_id: str, winning_choice: str
    ) -> list[str] | None:
        """Close the round and return the ids of users who picked *winning_choice*."""
        state = await self.get_game(game_id)
        if state is None or state.type != FLASKGAMBA:
            logger.error("Invalid game to resolve: %s", game_id)
            return None
        if winning_choice not in state.data.get("options", []):
            logger.warning("Unknown winning choice %r on %s", winning_choice, game_id)
            return None

        winners = [
            bet["userId"]
            for bet in state.data.get("bets", [])
            if bet.get("choice") == winning_choice
        ]
        if not await self.complete_game(
            game_id, {"winningChoice": winning_choice, "winners": winners}
        ):
            return None

        await self.storage.log_event(
            FLASKGAMBA,
            {"action": "resolve", "gameId": game_id, "choice": winning_choice, "winners": winners},
        )
        return winners
