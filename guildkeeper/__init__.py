"""
Guildkeeper — Community Management Bot for Discord
===================================================
Slash commands, an admin dashboard, rate limiting and a handful of
mini-games (roll tournaments, flask-gamba) on top of a two-tier storage
layer: Redis for speed, a mounted disk for durability.

Package layout::

    guildkeeper/
    ├── config.py            # YAML + env → typed Python config
    ├── constants.py         # Presentation constants & tournament bounds
    ├── backends/
    │   ├── redis_client.py  # Fail-soft Redis wrapper
    │   ├── disk.py          # Rooted file store (logs, backups, fallback)
    │   └── context.py       # AppContext, owns every client
    ├── engine/
    │   ├── models.py        # Tournament + game dataclasses
    │   ├── tournament.py    # Elimination state machine
    │   └── rate_limit.py    # Per-user interaction limiter
    ├── services/
    │   ├── storage.py       # Cache-first, disk-fallback façade
    │   ├── tournament_store.py  # Tournament key namespace in Redis
    │   ├── game_state.py    # Generic game lifecycle + flask-gamba
    │   └── embeds.py        # Embed builders
    └── bot/
        ├── core.py          # Bot subclass, extension registry
        ├── checks.py        # Admin check, rate-limit guard, replies
        └── cogs/            # tournament, dashboard, games, meta, tasks
"""

__version__ = "0.1.0"
