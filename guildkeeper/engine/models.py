"""
guildkeeper.engine.models — Tournament & Game Records
======================================================

Plain dataclasses for everything the engine persists.  Each record
serializes to a camelCase JSON dict (``to_dict``) and back
(``from_dict``) so stored payloads stay language-neutral.

``from_dict`` raises ``KeyError`` / ``TypeError`` / ``ValueError`` on
malformed input; the stores decide whether that is fatal.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, TypedDict

__all__ = [
    "GameScore",
    "GameState",
    "GameStatus",
    "RollResult",
    "RoundData",
    "RoundResult",
    "TournamentConfig",
    "TournamentError",
    "TournamentStats",
    "TournamentStatus",
    "UserRoll",
]


class TournamentStatus(enum.StrEnum):
    SETUP = "setup"
    ACTIVE = "active"
    ROUND_ENDING = "round_ending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)


class TournamentError(enum.StrEnum):
    """Expected, user-facing failure reasons (returned, never raised)."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    DEADLINE_PASSED = "deadline_passed"
    ROLL_LIMIT_EXCEEDED = "roll_limit_exceeded"
    NO_PARTICIPANTS = "no_participants"


class GameStatus(enum.StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Tournament records
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class TournamentConfig:
    """Tournament identity, rules and lifecycle state.  Timestamps are epoch ms."""

    id: str
    name: str
    max_roll: int
    roll_limit: int
    deadline: int
    current_round: int
    status: TournamentStatus
    channel_id: str
    created_at: int
    updated_at: int
    message_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "maxRoll": self.max_roll,
            "rollLimit": self.roll_limit,
            "deadline": self.deadline,
            "currentRound": self.current_round,
            "status": str(self.status),
            "channelId": self.channel_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.message_id is not None:
            data["messageId"] = self.message_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TournamentConfig:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            max_roll=int(data["maxRoll"]),
            roll_limit=int(data["rollLimit"]),
            deadline=int(data["deadline"]),
            current_round=int(data["currentRound"]),
            status=TournamentStatus(data["status"]),
            channel_id=str(data["channelId"]),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            message_id=data.get("messageId"),
        )


@dataclass(slots=True)
class UserRoll:
    """A player's best roll in the current round."""

    user_id: str
    username: str
    roll: int
    timestamp: int  # when the current best was drawn
    rolls_used: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "roll": self.roll,
            "timestamp": self.timestamp,
            "rollsUsed": self.rolls_used,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserRoll:
        return cls(
            user_id=str(data["userId"]),
            username=str(data["username"]),
            roll=int(data["roll"]),
            timestamp=int(data["timestamp"]),
            rolls_used=int(data["rollsUsed"]),
        )


@dataclass(slots=True)
class RoundData:
    """One elimination phase.  Immutable once ``end_time`` is set."""

    round_number: int
    start_time: int
    participants: list[str] = field(default_factory=list)
    eliminated: list[str] = field(default_factory=list)
    end_time: int | None = None
    cutoff_roll: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "roundNumber": self.round_number,
            "startTime": self.start_time,
            "participants": list(self.participants),
            "eliminated": list(self.eliminated),
        }
        if self.end_time is not None:
            data["endTime"] = self.end_time
        if self.cutoff_roll is not None:
            data["cutoffRoll"] = self.cutoff_roll
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoundData:
        end_time = data.get("endTime")
        cutoff = data.get("cutoffRoll")
        return cls(
            round_number=int(data["roundNumber"]),
            start_time=int(data["startTime"]),
            participants=[str(p) for p in data.get("participants", [])],
            eliminated=[str(p) for p in data.get("eliminated", [])],
            end_time=int(end_time) if end_time is not None else None,
            cutoff_roll=int(cutoff) if cutoff is not None else None,
        )


@dataclass(slots=True)
class TournamentStats:
    """Derived snapshot of the live roll set — safe to discard and rebuild."""

    total_participants: int
    active_participants: int
    eliminated_participants: int
    total_rolls: int
    average_roll: float
    highest_roll: UserRoll | None = None
    lowest_roll: UserRoll | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "totalParticipants": self.total_participants,
            "activeParticipants": self.active_participants,
            "eliminatedParticipants": self.eliminated_participants,
            "totalRolls": self.total_rolls,
            "averageRoll": self.average_roll,
        }
        if self.highest_roll is not None:
            data["highestRoll"] = self.highest_roll.to_dict()
        if self.lowest_roll is not None:
            data["lowestRoll"] = self.lowest_roll.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TournamentStats:
        highest = data.get("highestRoll")
        lowest = data.get("lowestRoll")
        return cls(
            total_participants=int(data["totalParticipants"]),
            active_participants=int(data["activeParticipants"]),
            eliminated_participants=int(data["eliminatedParticipants"]),
            total_rolls=int(data["totalRolls"]),
            average_roll=float(data["averageRoll"]),
            highest_roll=UserRoll.from_dict(highest) if highest else None,
            lowest_roll=UserRoll.from_dict(lowest) if lowest else None,
        )


# ---------------------------------------------------------------------------
# Engine results: domain outcomes, not exceptions
# ---------------------------------------------------------------------------
@dataclass
class RollResult:
    """Outcome of a roll attempt.

    ``roll`` is the record the player now holds; ``drawn`` is the value
    rolled this time (which may be lower than ``roll.roll``).
    """

    success: bool
    message: str
    roll: UserRoll | None = None
    drawn: int | None = None
    error: TournamentError | None = None


@dataclass
class RoundResult:
    """Outcome of closing a round."""

    success: bool
    message: str
    eliminated: list[str] = field(default_factory=list)
    round_number: int | None = None
    cutoff_roll: int | None = None
    completed: bool = False
    winner: UserRoll | None = None
    error: TournamentError | None = None


# ---------------------------------------------------------------------------
# Generic game state
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class GameState:
    """Lifecycle document for a simple mini-game.  ``data`` is an open bag."""

    game_id: str
    type: str
    status: GameStatus = GameStatus.PENDING
    players: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    started_at: str | None = None
    ended_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "gameId": self.game_id,
            "type": self.type,
            "status": str(self.status),
            "players": list(self.players),
            "data": self.data,
        }
        if self.started_at is not None:
            data["startedAt"] = self.started_at
        if self.ended_at is not None:
            data["endedAt"] = self.ended_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameState:
        players: list[str] = []
        for player in data.get("players", []):
            if player not in players:
                players.append(str(player))
        bag = data.get("data", {})
        if not isinstance(bag, dict):
            raise TypeError("game data must be an object")
        return cls(
            game_id=str(data["gameId"]),
            type=str(data["type"]),
            status=GameStatus(data["status"]),
            players=players,
            data=bag,
            started_at=data.get("startedAt"),
            ended_at=data.get("endedAt"),
        )


class GameScore(TypedDict):
    """One entry of ``GameState.data["scores"]``.  Never overwritten."""

    userId: str
    score: float
    timestamp: str
