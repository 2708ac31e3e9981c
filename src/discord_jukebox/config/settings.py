"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.messages import ErrorMessages
from ..domain.shared.types import (
    BackoffSeconds,
    ConnectTimeoutSeconds,
    MaxAttempts,
    VolumeFloat,
)


class DiscordSettings(BaseModel):
    """Discord bot configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    guild_ids: tuple[int, ...] = Field(
        default_factory=tuple, validation_alias=AliasChoices("guild_ids", "guilds", "guild_id")
    )
    sync_on_startup: bool = True

    @field_validator("guild_ids", mode="before")
    @classmethod
    def validate_snowflake_ids(cls, v: Any) -> tuple[int, ...]:
        """Validate Discord snowflake IDs; accepts a list, a tuple or a comma-separated string."""
        if isinstance(v, int):
            v = (v,)
        elif isinstance(v, str):
            v = tuple(int(part) for part in v.split(",") if part.strip())
        elif isinstance(v, list):
            v = tuple(v)
        for snowflake in v:
            if snowflake <= 0:
                raise ValueError(ErrorMessages.INVALID_SNOWFLAKE)
            if snowflake >= 2**64:
                raise ValueError(ErrorMessages.SNOWFLAKE_TOO_LARGE)
        return v


class AudioSettings(BaseModel):
    """Audio playback configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    default_volume: VolumeFloat = 0.5
    ffmpeg_options: dict[str, str] = Field(
        default_factory=lambda: {
            "before_options": "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5",
            "options": "-vn",
        }
    )
    ytdlp_format: str = "251/140/bestaudio[protocol^=http]/bestaudio/best"
    youtube_player_clients: list[str] = Field(default_factory=lambda: ["android", "web"])

    connect_timeout_seconds: ConnectTimeoutSeconds = Field(
        default=15.0,
        validation_alias=AliasChoices("connect_timeout_seconds", "connect_timeout"),
    )
    max_attempts: MaxAttempts = 2
    retry_backoff_seconds: BackoffSeconds = Field(
        default=0.8,
        validation_alias=AliasChoices("retry_backoff_seconds", "retry_backoff"),
    )


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, DISCORD__GUILD_IDS, DISCORD__SYNC_ON_STARTUP
    - AUDIO__CONNECT_TIMEOUT_SECONDS, AUDIO__MAX_ATTEMPTS, AUDIO__RETRY_BACKOFF_SECONDS, ...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels)
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
