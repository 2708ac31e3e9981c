"""Command and handler for playing a track from a query or URL."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from discord_jukebox.domain.music.entities import Track
from discord_jukebox.domain.shared.exceptions import NoVoiceChannelError
from discord_jukebox.domain.shared.types import DiscordSnowflake, NonEmptyStr, NonNegativeInt

if TYPE_CHECKING:
    from ..interfaces.audio_resolver import AudioResolver
    from ..services.queue_service import QueueApplicationService

logger = logging.getLogger(__name__)


class PlayTrackStatus(Enum):
    """Status codes for play track results."""

    QUEUED = "queued"
    NOW_PLAYING = "now_playing"


class PlayTrackCommand(BaseModel):
    """Request to resolve a query/URL, join the caller's channel and queue the track."""

    model_config = ConfigDict(frozen=True, strict=True)

    guild_id: DiscordSnowflake
    channel_id: DiscordSnowflake | None
    user_id: DiscordSnowflake
    user_name: NonEmptyStr
    query: NonEmptyStr

    requested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class PlayTrackResult(BaseModel):
    """Result of a play track command."""

    model_config = ConfigDict(frozen=True, strict=True)

    status: PlayTrackStatus
    track: Track
    queue_position: NonNegativeInt
    queue_length: NonNegativeInt = 0

    @property
    def started_playing(self) -> bool:
        return self.status is PlayTrackStatus.NOW_PLAYING


class PlayTrackHandler:
    """Resolves a track from a query, joins voice and enqueues it.

    Failures of the triggering command are raised to the caller and never
    retried: ``NoVoiceChannelError``, ``ResolveFailedError`` and
    ``ConnectFailedError``. Nothing is enqueued when any of them is raised.
    """

    def __init__(
        self,
        *,
        queue_service: QueueApplicationService,
        audio_resolver: AudioResolver,
    ) -> None:
        self._queue_service = queue_service
        self._audio_resolver = audio_resolver

    async def handle(self, command: PlayTrackCommand) -> PlayTrackResult:
        if command.channel_id is None:
            raise NoVoiceChannelError()

        track = await self._audio_resolver.resolve(command.query)
        track = track.with_requester(
            user_id=command.user_id,
            user_name=command.user_name,
            requested_at=command.requested_at,
        )

        await self._queue_service.join(command.guild_id, command.channel_id)
        result = await self._queue_service.enqueue(command.guild_id, track)

        logger.debug(
            "Play request from %s in guild %s queued '%s'",
            command.user_id,
            command.guild_id,
            track.title,
        )
        return PlayTrackResult(
            status=PlayTrackStatus.NOW_PLAYING if result.should_start else PlayTrackStatus.QUEUED,
            track=result.track,
            queue_position=result.position,
            queue_length=result.queue_length,
        )
