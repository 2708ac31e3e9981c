"""Audio infrastructure - yt-dlp resolver."""

from discord_jukebox.infrastructure.audio.models import (
    CachedExtraction,
    ExtractedMedia,
    MediaFormat,
    YtDlpParams,
)
from discord_jukebox.infrastructure.audio.ytdlp_resolver import YtDlpResolver

__all__ = [
    "CachedExtraction",
    "ExtractedMedia",
    "MediaFormat",
    "YtDlpParams",
    "YtDlpResolver",
]
