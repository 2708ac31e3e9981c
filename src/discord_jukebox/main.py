#!/usr/bin/env python3
"""Console entry point for discord-jukebox."""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
from pathlib import Path
from typing import Any

from discord_jukebox.domain.shared.messages import ErrorMessages, LogTemplates

LOGGING_CONFIG_ENV = "JUKEBOX_LOGGING_CONFIG"
DEFAULT_LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

# Chatty third-party loggers capped at WARNING unless running with DEBUG.
NOISY_LOGGERS: tuple[str, ...] = ("discord.gateway", "discord.voice_state", "discord.player")


def _logging_config_path() -> Path:
    override = os.environ.get(LOGGING_CONFIG_ENV)
    return Path(override) if override else DEFAULT_LOGGING_CONFIG_PATH


def _load_logging_config(path: Path) -> dict[str, Any] | None:
    try:
        with open(path) as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return None


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging from ``logging_config.json``, or a plain console format without it."""
    resolved_level = getattr(logging, log_level.upper(), logging.INFO)
    path = _logging_config_path()

    config = _load_logging_config(path)
    if config is not None:
        try:
            logging.config.dictConfig(config)
        except ValueError:
            config = None

    if config is None:
        logging.basicConfig(
            level=resolved_level,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger(__name__).warning(
            "Could not load %s, falling back to basic config", path
        )

    logging.getLogger().setLevel(resolved_level)
    if resolved_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))


def main() -> int:
    from discord_jukebox.config.settings import get_settings

    settings = get_settings()
    setup_logging("DEBUG" if settings.debug else settings.log_level)

    logger = logging.getLogger(__name__)

    token_value = settings.discord.token.get_secret_value()
    if not token_value:
        logger.error(ErrorMessages.DISCORD_TOKEN_REQUIRED)
        return 1

    logger.info(LogTemplates.BOT_STARTING.format(environment=settings.environment))

    from discord_jukebox.config.container import create_container
    from discord_jukebox.infrastructure.discord.bot import create_bot

    bot = create_bot(create_container(settings), settings)

    try:
        logger.info(LogTemplates.BOT_STARTING_RUN)
        bot.run_until_signalled(token_value)
    except KeyboardInterrupt:
        logger.info(LogTemplates.BOT_KEYBOARD_INTERRUPT)
    except Exception as e:
        logger.exception(LogTemplates.BOT_FATAL_ERROR, e)
        return 1

    logger.info(LogTemplates.BOT_STOPPED)
    return 0


def cli() -> None:
    """Console script entry point (``discord-jukebox``)."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
