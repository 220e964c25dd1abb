"""
guildkeeper.config — YAML + Environment Configuration Loader
=============================================================

Two sources, two objects:

* ``config.yaml`` holds **soft** settings (community identity, channel
  wiring, rate-limit tuning) → :class:`GuildkeeperConfig`.
* The process environment (``.env`` is loaded by the entry point) holds
  **secrets and infrastructure** (Redis credentials, disk mount) →
  :class:`StorageSettings`.

Usage::

    from guildkeeper.config import load_config, load_storage_settings

    cfg = load_config()                 # reads ./config.yaml by default
    storage = load_storage_settings()   # reads os.environ
    print(storage.redis_url)            # "redis://localhost:6379/0"
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import yaml

_TRUTHY = frozenset({"1", "true", "yes", "on"})


# ---------------------------------------------------------------------------
# Soft settings (config.yaml)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GuildkeeperConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake

    # Optional wiring
    admin_role_id: int | None = None  # Role that counts as admin besides the Administrator bit
    dashboard_channel_id: int | None = None
    tournament_channel_id: int | None = None
    flaskgamba_channel_id: int | None = None

    # Interaction rate limiting
    rate_limit_max: int = 5
    rate_limit_window: int = 10  # seconds


# ---------------------------------------------------------------------------
# Infrastructure settings (environment)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StorageSettings:
    """Connection settings for the key-value store and the persistent disk."""

    redis_url: str
    redis_enabled: bool = True
    redis_max_connections: int = 20
    redis_socket_timeout: float = 5.0
    redis_retries: int = 3
    redis_health_check_interval: int = 30
    disk_path: str = "/data"


def _optional_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    return int(value) if value else None


def _flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


def build_redis_url(
    host: str = "localhost",
    port: int | str = 6379,
    password: str | None = None,
    tls: bool = False,
) -> str:
    """Assemble a ``redis://`` (or ``rediss://`` for TLS) connection URL."""
    scheme = "rediss" if tls else "redis"
    auth = f":{quote(password, safe='')}@" if password else ""
    return f"{scheme}://{auth}{host}:{port}/0"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GuildkeeperConfig:
    """Read *path* and return a :class:`GuildkeeperConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return GuildkeeperConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        admin_role_id=_optional_int(raw, "admin_role_id"),
        dashboard_channel_id=_optional_int(raw, "dashboard_channel_id"),
        tournament_channel_id=_optional_int(raw, "tournament_channel_id"),
        flaskgamba_channel_id=_optional_int(raw, "flaskgamba_channel_id"),
        rate_limit_max=int(raw.get("rate_limit_max", 5)),
        rate_limit_window=int(raw.get("rate_limit_window", 10)),
    )


def load_storage_settings(environ: Mapping[str, str] | None = None) -> StorageSettings:
    """Build :class:`StorageSettings` from environment variables.

    ``REDIS_URL`` wins when present; otherwise the URL is assembled from
    ``REDIS_HOST`` / ``REDIS_PORT`` / ``REDIS_PASSWORD`` / ``REDIS_TLS``.

    Raises
    ------
    ValueError
        If ``REDIS_PORT`` is not an integer.
    """
    env = os.environ if environ is None else environ

    redis_url = env.get("REDIS_URL")
    if not redis_url:
        port = env.get("REDIS_PORT", "6379")
        if not port.isdigit():
            raise ValueError(f"REDIS_PORT must be an integer, got {port!r}")
        redis_url = build_redis_url(
            host=env.get("REDIS_HOST", "localhost"),
            port=port,
            password=env.get("REDIS_PASSWORD") or None,
            tls=_flag(env.get("REDIS_TLS"), False),
        )

    return StorageSettings(
        redis_url=redis_url,
        redis_enabled=_flag(env.get("REDIS_ENABLED"), True),
        redis_max_connections=int(env.get("REDIS_MAX_CONNECTIONS", 20)),
        redis_socket_timeout=float(env.get("REDIS_SOCKET_TIMEOUT", 5.0)),
        redis_retries=int(env.get("REDIS_RETRIES", 3)),
        disk_path=env.get("PERSISTENT_DISK_PATH", "/data"),
    )
