"""Dependency Injection Container

One container per process. It builds the session registry, the yt-dlp
resolver, the Discord voice transport and the two application services on
first use, and hands the same instances to every caller afterwards.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from ..domain.shared.messages import ErrorMessages

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.commands.play_track import PlayTrackHandler
    from ..application.interfaces.audio_resolver import AudioResolver
    from ..application.interfaces.voice_adapter import VoiceTransport
    from ..application.services.playback_service import PlaybackApplicationService
    from ..application.services.queue_service import QueueApplicationService
    from ..domain.music.repository import SessionRepository
    from .settings import Settings


class Container:
    """Lazily wired object graph.

    The voice transport talks to the gateway through the bot, so the bot has
    to be attached with ``set_bot`` before anything reaches for it.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bot: Bot | None = None

    def set_bot(self, bot: Bot) -> None:
        self._bot = bot

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            raise RuntimeError(ErrorMessages.BOT_NOT_ATTACHED)
        return self._bot

    def _built(self, name: str) -> bool:
        return name in self.__dict__

    # ── Adapters ────────────────────────────────────────────────────

    @cached_property
    def session_repository(self) -> SessionRepository:
        from ..infrastructure.persistence.repositories.session_repository import (
            InMemorySessionRepository,
        )

        return InMemorySessionRepository()

    @cached_property
    def audio_resolver(self) -> AudioResolver:
        from ..infrastructure.audio.ytdlp_resolver import YtDlpResolver

        return YtDlpResolver(self.settings.audio)

    @cached_property
    def voice_transport(self) -> VoiceTransport:
        from ..infrastructure.discord.adapters.voice_adapter import DiscordVoiceTransport

        return DiscordVoiceTransport(self.bot, self.settings.audio)

    # ── Application ─────────────────────────────────────────────────

    @cached_property
    def playback_service(self) -> PlaybackApplicationService:
        """The playback driver, configured with the per-track retry policy."""
        from ..application.services.playback_service import PlaybackApplicationService

        audio = self.settings.audio
        return PlaybackApplicationService(
            session_repository=self.session_repository,
            voice_transport=self.voice_transport,
            audio_resolver=self.audio_resolver,
            max_attempts=audio.max_attempts,
            retry_backoff_seconds=audio.retry_backoff_seconds,
        )

    @cached_property
    def queue_service(self) -> QueueApplicationService:
        from ..application.services.queue_service import QueueApplicationService

        return QueueApplicationService(
            session_repository=self.session_repository,
            playback_service=self.playback_service,
            connect_timeout_seconds=self.settings.audio.connect_timeout_seconds,
        )

    @cached_property
    def play_track_handler(self) -> PlayTrackHandler:
        from ..application.commands.play_track import PlayTrackHandler

        return PlayTrackHandler(
            queue_service=self.queue_service,
            audio_resolver=self.audio_resolver,
        )

    async def shutdown(self) -> None:
        """Leave every guild. Nothing to do if the queue manager was never built."""
        if self._built("queue_service"):
            await self.queue_service.shutdown()


def create_container(settings: Settings) -> Container:
    return Container(settings)
