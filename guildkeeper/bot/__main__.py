"""
guildkeeper.bot.__main__ — Entry point for ``python -m guildkeeper.bot``
========================================================================

Wiring:
1. Load .env (secrets and infrastructure).
2. Load config.yaml (soft settings).
3. Build the AppContext (Redis client + disk store + services).
4. Create the GuildkeeperBot; it connects the context in ``setup_hook``.
5. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m guildkeeper.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from guildkeeper.backends.context import AppContext
from guildkeeper.bot.core import GuildkeeperBot
from guildkeeper.config import load_config, load_storage_settings

logger = logging.getLogger("guildkeeper")


def main() -> None:
    """Bootstrap and run the Guildkeeper bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Storage.
    settings = load_storage_settings()
    context = AppContext.from_settings(settings)
    logger.info("Persistent disk at %s", settings.disk_path)

    # 4. Bot.
    bot = GuildkeeperBot(cfg=cfg, context=context)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Guildkeeper bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
