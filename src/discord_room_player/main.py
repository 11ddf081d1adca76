#!/usr/bin/env python3
"""Main entry point for the room player bot."""

from __future__ import annotations

import logging
import sys

from discord_room_player.domain.shared.messages import ErrorMessages, LogTemplates
from discord_room_player.utils.logging import setup_logging


def main() -> int:
    from discord_room_player.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)

    logger = logging.getLogger(__name__)

    token_value = settings.discord.token.get_secret_value()
    if not token_value:
        logger.error(ErrorMessages.DISCORD_TOKEN_REQUIRED)
        return 1

    logger.info(LogTemplates.SETTINGS_LOADED, settings.environment)

    from discord_room_player.config.container import create_container
    from discord_room_player.infrastructure.discord.bot import create_bot

    container = create_container(settings)
    bot = create_bot(container, settings)

    try:
        bot.run_with_graceful_shutdown(token_value)
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception:
        logger.exception("Fatal error while running the bot")
        return 1


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
