"""Typed views over yt-dlp's loose info dicts, plus the options handed to ``YoutubeDL``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from discord_jukebox.domain.shared.types import (
    HttpUrlStr,
    NonEmptyStr,
    NonNegativeInt,
    PositiveInt,
)

if TYPE_CHECKING:
    from discord_jukebox.config.settings import AudioSettings

INFO_CACHE_TTL_SECONDS: Final[int] = 3600
INFO_CACHE_MAX_ENTRIES: Final[int] = 500
LOG_URL_TRUNCATE: Final[int] = 60
UNKNOWN_TITLE: Final[str] = "Unknown Title"


def _blank_to_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


class MediaFormat(BaseModel):
    """One entry of an info dict's ``formats`` list."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: NonEmptyStr | None = None
    acodec: NonEmptyStr | None = None

    @property
    def has_audio(self) -> bool:
        return bool(self.url) and self.acodec != "none"


class ExtractedMedia(BaseModel):
    """The handful of fields the jukebox reads from a yt-dlp extraction.

    yt-dlp hands back whatever the site gave it, so every field degrades
    to a safe default instead of failing validation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    webpage_url: HttpUrlStr | None = None
    url: NonEmptyStr | None = None
    title: NonEmptyStr = UNKNOWN_TITLE
    duration: NonNegativeInt | None = None
    formats: list[MediaFormat] = Field(default_factory=list)
    http_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("webpage_url", "url", mode="before")
    @classmethod
    def _blank_urls(cls, v: Any) -> str | None:
        return _blank_to_none(v)

    @field_validator("title", mode="before")
    @classmethod
    def _blank_title(cls, v: Any) -> str:
        return _blank_to_none(v) or UNKNOWN_TITLE

    @field_validator("duration", mode="before")
    @classmethod
    def _loose_duration(cls, v: Any) -> int | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            seconds = int(v)
        except (TypeError, ValueError):
            return None
        return seconds if seconds >= 0 else None

    @field_validator("http_headers", mode="before")
    @classmethod
    def _string_headers(cls, v: Any) -> dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {str(name): value for name, value in v.items() if isinstance(value, str)}

    @property
    def page_url(self) -> str | None:
        return self.webpage_url or self.url

    def best_audio_url(self) -> str | None:
        """Direct media URL if yt-dlp picked one, else the last audio-bearing format."""
        if self.url:
            return self.url
        audio = [fmt.url for fmt in self.formats if fmt.has_audio]
        return audio[-1] if audio else None


class CachedExtraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    info: ExtractedMedia
    cached_at: float = Field(ge=0.0)

    def is_fresh(self, now: float) -> bool:
        return now - self.cached_at < INFO_CACHE_TTL_SECONDS


class YtDlpParams(BaseModel):
    """Options passed to ``YoutubeDL(params=...)``. Metadata only, never downloads."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    default_search: NonEmptyStr = "ytsearch"
    forceipv4: bool = True
    skip_download: bool = True
    retries: PositiveInt = 3
    socket_timeout: PositiveInt = 10
    format: NonEmptyStr | None = None
    extractor_args: dict[str, dict[str, list[str]]] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: AudioSettings) -> YtDlpParams:
        return cls(
            format=settings.ytdlp_format,
            extractor_args={"youtube": {"player_client": list(settings.youtube_player_clients)}},
        )

    def as_params(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
