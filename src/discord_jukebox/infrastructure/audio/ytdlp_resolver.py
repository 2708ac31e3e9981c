"""AudioResolver implementation using yt-dlp for URL resolution and search."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Final, cast

from yt_dlp import YoutubeDL

from discord_jukebox.application.interfaces.audio_resolver import AudioResolver
from discord_jukebox.config.settings import AudioSettings
from discord_jukebox.domain.music.entities import Track
from discord_jukebox.domain.music.value_objects import StreamHandle
from discord_jukebox.domain.shared.exceptions import ResolveFailedError, StreamFailedError
from discord_jukebox.domain.shared.messages import ErrorMessages, LogTemplates
from discord_jukebox.infrastructure.audio.models import (
    INFO_CACHE_MAX_ENTRIES,
    LOG_URL_TRUNCATE,
    CachedExtraction,
    ExtractedMedia,
    YtDlpParams,
)

logger = logging.getLogger(__name__)

ANDROID_USER_AGENT: Final[str] = (
    "com.google.android.youtube/19.09.37 (Linux; U; Android 11) gzip"
)
MAX_TITLE_LENGTH: Final[int] = 500
MAX_DURATION_SECONDS: Final[int] = 86_400
_HTTP_PREFIXES: Final[tuple[str, str]] = ("http://", "https://")

# Keyed by page URL; shared by every resolver in the process.
_info_cache: dict[str, CachedExtraction] = {}

URL_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"https?://"),
    re.compile(r"www\."),
]


class YtDlpResolver(AudioResolver):

    def __init__(self, settings: AudioSettings | None = None) -> None:
        self._settings = settings or AudioSettings()
        self._params = YtDlpParams.from_settings(self._settings)

    def _ydl(self) -> YoutubeDL:
        return YoutubeDL(params=cast(Any, self._params.as_params()))

    def _info_to_track(self, info: ExtractedMedia) -> Track | None:
        page_url = info.page_url
        if not page_url or not page_url.startswith(_HTTP_PREFIXES):
            logger.warning(ErrorMessages.NO_URL_IN_INFO_DICT)
            return None

        duration = info.duration
        if duration is not None and duration > MAX_DURATION_SECONDS:
            duration = None

        return Track(
            title=info.title[:MAX_TITLE_LENGTH], source_ref=page_url, duration_seconds=duration
        )

    @staticmethod
    def _remember(info: ExtractedMedia, now: float) -> None:
        if info.webpage_url:
            _info_cache[info.webpage_url] = CachedExtraction(info=info, cached_at=now)

        if len(_info_cache) > INFO_CACHE_MAX_ENTRIES:
            for key in [k for k, entry in _info_cache.items() if not entry.is_fresh(now)]:
                del _info_cache[key]

    def _extract_info_sync(self, url: str, *, consume_cache: bool = False) -> ExtractedMedia | None:
        """Extract full info for a URL.

        With ``consume_cache`` a cached entry is used at most once, so a retry
        after a broken stream always fetches a fresh media URL.
        """
        now = time.time()
        cached = _info_cache.pop(url, None) if consume_cache else _info_cache.get(url)
        if cached is not None:
            if cached.is_fresh(now):
                logger.debug(LogTemplates.CACHE_HIT_URL, url[:LOG_URL_TRUNCATE])
                return cached.info
            _info_cache.pop(url, None)

        try:
            with self._ydl() as ydl:
                data = ydl.extract_info(url, download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT_INFO, url)
            return None

        if not isinstance(data, dict):
            return None

        info = ExtractedMedia.model_validate(dict(data))
        if not consume_cache:
            self._remember(info, now)
        return info

    def _search_sync(self, query: str, limit: int = 1) -> list[ExtractedMedia]:
        try:
            with self._ydl() as ydl:
                data = ydl.extract_info(f"ytsearch{limit}:{query}", download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_SEARCH, query)
            return []

        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []

        now = time.time()
        results = [ExtractedMedia.model_validate(dict(entry)) for entry in entries if entry]
        for info in results:
            self._remember(info, now)
        return results

    async def resolve(self, query: str) -> Track:
        if self.is_url(query):
            info = await asyncio.to_thread(self._extract_info_sync, query)
        else:
            results = await asyncio.to_thread(self._search_sync, query, 1)
            info = results[0] if results else None

        if info is None:
            logger.info(LogTemplates.YTDLP_NO_RESULTS, query)
            raise ResolveFailedError(query)

        track = self._info_to_track(info)
        if track is None:
            raise ResolveFailedError(query)
        return track

    async def stream(self, track: Track) -> StreamHandle:
        info = await asyncio.to_thread(
            self._extract_info_sync, track.source_ref, consume_cache=True
        )
        stream_url = info.best_audio_url() if info is not None else None
        if info is None or not stream_url or not stream_url.startswith(_HTTP_PREFIXES):
            raise StreamFailedError(
                track.title, ErrorMessages.NO_STREAM_URL_FOR_TRACK.format(title=track.title)
            )

        headers = dict(info.http_headers)
        headers.setdefault("User-Agent", ANDROID_USER_AGENT)
        return StreamHandle(url=stream_url, http_headers=headers)

    def is_url(self, query: str) -> bool:
        return any(pattern.search(query) for pattern in URL_PATTERNS)
