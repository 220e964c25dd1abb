"""
guildkeeper.constants — Shared Constants & Helpers
===================================================

Single source of truth for presentation constants and tournament bounds.
Import from here instead of duplicating in cogs, services, and embeds.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

TOURNAMENT_STATUS_EMOJI: dict[str, str] = {
    "setup": "\u2699\ufe0f",       # ⚙️
    "active": "\U0001f7e2",          # 🟢
    "round_ending": "\U0001f7e1",    # 🟡
    "completed": "\u2705",          # ✅
    "cancelled": "\u274c",          # ❌
}

EMBED_COLOR = 0x5865F2  # Discord blurple

# ---------------------------------------------------------------------------
# Tournament bounds: enforced at the Discord boundary, trusted by the engine
# ---------------------------------------------------------------------------
MAX_ROLL_MIN, MAX_ROLL_MAX = 10, 10_000
ROLL_LIMIT_MIN, ROLL_LIMIT_MAX = 1, 10
DEADLINE_HOURS_MIN, DEADLINE_HOURS_MAX = 1, 168
DEFAULT_ELIMINATION_PERCENTAGE = 50
LEADERBOARD_SIZE = 10


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def utc_iso(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2024-05-01T12:00:00.000Z``."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
