"""
Tests for main.py - Main Entry Point

Tests for the main entry point including:
- Logging configuration from JSON, the env override and the fallback
- Token validation
- Container and bot creation
- Error handling and exit codes
"""

import json
import logging
from unittest.mock import MagicMock, mock_open, patch

import pytest
from pydantic import SecretStr

from discord_jukebox.main import (
    LOGGING_CONFIG_ENV,
    NOISY_LOGGERS,
    _logging_config_path,
    cli,
    main,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_logger_levels():
    names = ("", *NOISY_LOGGERS)
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestLoggingSetup:
    """Tests for logging configuration."""

    def _make_valid_config(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "handlers": {},
            "loggers": {"yt_dlp": {"level": "WARNING"}},
            "root": {"level": "INFO", "handlers": []},
        }

    def test_dictconfig_called_when_json_exists(self):
        config = self._make_valid_config()
        with (
            patch("builtins.open", mock_open(read_data=json.dumps(config))),
            patch("logging.config.dictConfig") as mock_dc,
        ):
            setup_logging()

        mock_dc.assert_called_once_with(config)

    def test_fallback_to_basicconfig_when_json_missing(self):
        with (
            patch("builtins.open", side_effect=FileNotFoundError),
            patch("logging.basicConfig") as mock_bc,
        ):
            setup_logging()

        mock_bc.assert_called_once()
        assert mock_bc.call_args.kwargs["level"] == logging.INFO

    def test_fallback_when_json_malformed(self):
        with (
            patch("builtins.open", mock_open(read_data="{invalid json")),
            patch("logging.basicConfig") as mock_bc,
        ):
            setup_logging()

        mock_bc.assert_called_once()

    def test_fallback_when_dictconfig_rejects_config(self):
        with (
            patch("builtins.open", mock_open(read_data=json.dumps({"version": 99}))),
            patch("logging.config.dictConfig", side_effect=ValueError("bad version")),
            patch("logging.basicConfig") as mock_bc,
        ):
            setup_logging()

        mock_bc.assert_called_once()

    def test_root_level_follows_argument(self):
        with (
            patch("builtins.open", mock_open(read_data=json.dumps(self._make_valid_config()))),
            patch("logging.config.dictConfig"),
        ):
            setup_logging("ERROR")

        assert logging.getLogger().level == logging.ERROR

    def test_noisy_loggers_capped_at_warning(self):
        with (
            patch("builtins.open", mock_open(read_data=json.dumps(self._make_valid_config()))),
            patch("logging.config.dictConfig"),
        ):
            setup_logging("INFO")

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_noisy_loggers_untouched_in_debug(self):
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)

        with (
            patch("builtins.open", mock_open(read_data=json.dumps(self._make_valid_config()))),
            patch("logging.config.dictConfig"),
        ):
            setup_logging("DEBUG")

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.NOTSET

    def test_config_path_env_override(self, monkeypatch, tmp_path):
        custom = tmp_path / "logging.json"
        monkeypatch.setenv(LOGGING_CONFIG_ENV, str(custom))

        assert _logging_config_path() == custom

    def test_default_config_path(self, monkeypatch):
        monkeypatch.delenv(LOGGING_CONFIG_ENV, raising=False)

        assert _logging_config_path().name == "logging_config.json"


def _mock_settings(token="test_token_123"):
    settings = MagicMock()
    settings.discord.token = SecretStr(token)
    settings.debug = False
    settings.log_level = "INFO"
    settings.environment = "test"
    return settings


class TestMainFunction:
    """Tests for main entry point function."""

    def test_main_returns_error_without_token(self):
        with (
            patch("discord_jukebox.config.settings.get_settings", return_value=_mock_settings("")),
            patch("discord_jukebox.main.setup_logging"),
            patch("discord_jukebox.infrastructure.discord.bot.create_bot") as create_bot,
        ):
            assert main() == 1

        create_bot.assert_not_called()

    def test_main_successful_run(self):
        settings = _mock_settings()
        mock_bot = MagicMock()

        with (
            patch("discord_jukebox.config.settings.get_settings", return_value=settings),
            patch("discord_jukebox.main.setup_logging") as mock_setup_logging,
            patch("discord_jukebox.config.container.create_container") as create_container,
            patch(
                "discord_jukebox.infrastructure.discord.bot.create_bot", return_value=mock_bot
            ) as create_bot,
        ):
            exit_code = main()

        assert exit_code == 0
        mock_setup_logging.assert_called_once_with("INFO")
        create_container.assert_called_once_with(settings)
        create_bot.assert_called_once_with(create_container.return_value, settings)
        mock_bot.run_until_signalled.assert_called_once_with("test_token_123")

    def test_debug_forces_debug_logging(self):
        settings = _mock_settings("")
        settings.debug = True

        with (
            patch("discord_jukebox.config.settings.get_settings", return_value=settings),
            patch("discord_jukebox.main.setup_logging") as mock_setup_logging,
        ):
            main()

        mock_setup_logging.assert_called_once_with("DEBUG")

    def test_main_handles_keyboard_interrupt(self):
        mock_bot = MagicMock()
        mock_bot.run_until_signalled.side_effect = KeyboardInterrupt()

        with (
            patch("discord_jukebox.config.settings.get_settings", return_value=_mock_settings()),
            patch("discord_jukebox.main.setup_logging"),
            patch("discord_jukebox.config.container.create_container"),
            patch("discord_jukebox.infrastructure.discord.bot.create_bot", return_value=mock_bot),
        ):
            assert main() == 0

    def test_main_handles_exception(self):
        mock_bot = MagicMock()
        mock_bot.run_until_signalled.side_effect = RuntimeError("Bot crashed!")

        with (
            patch("discord_jukebox.config.settings.get_settings", return_value=_mock_settings()),
            patch("discord_jukebox.main.setup_logging"),
            patch("discord_jukebox.config.container.create_container"),
            patch("discord_jukebox.infrastructure.discord.bot.create_bot", return_value=mock_bot),
        ):
            assert main() == 1

    def test_cli_exits_with_main_code(self):
        with patch("discord_jukebox.main.main", return_value=1):
            with pytest.raises(SystemExit) as exc_info:
                cli()

        assert exc_info.value.code == 1
