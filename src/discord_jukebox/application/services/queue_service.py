"""Queue Application Service - the per-guild queue manager."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from ...domain.music.entities import Track
from ...domain.music.value_objects import PlaybackState
from ...domain.shared.events import TrackAddedToQueue, get_event_bus
from ...domain.shared.exceptions import ConnectFailedError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.types import DiscordSnowflake, PositiveInt
from .queue_models import EnqueueResult, QueuePage, QueueStatus

if TYPE_CHECKING:
    from ...domain.music.repository import SessionRepository
    from .playback_service import PlaybackApplicationService

logger = logging.getLogger(__name__)

QUEUE_PAGE_SIZE = 10


class QueueApplicationService:
    """Owns each guild's FIFO queue and hands playback to the playback driver."""

    def __init__(
        self,
        *,
        session_repository: SessionRepository,
        playback_service: PlaybackApplicationService,
        connect_timeout_seconds: float = 15.0,
    ) -> None:
        self._session_repo = session_repository
        self._playback = playback_service
        self._connect_timeout = connect_timeout_seconds

    async def join(self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake) -> None:
        """Connect to, or move to, a voice channel.

        Waits at most the connect timeout for a playback attempt that is
        already holding the guild's voice connection.

        Raises:
            ConnectFailedError: The guild is left without a connection, or the
                wait for the in-flight attempt timed out.
        """
        session = await self._session_repo.get_or_create(guild_id)
        try:
            async with asyncio.timeout(self._connect_timeout):
                await session.lock.acquire()
        except TimeoutError as exc:
            logger.warning(LogTemplates.VOICE_BUSY_TIMEOUT, guild_id, self._connect_timeout)
            raise ConnectFailedError(
                channel_id, ErrorMessages.VOICE_BUSY.format(guild_id=guild_id)
            ) from exc

        try:
            await self._playback.connect(session, channel_id)
        finally:
            session.lock.release()

    async def enqueue(self, guild_id: DiscordSnowflake, track: Track) -> EnqueueResult:
        """Append a track to the guild queue, starting playback if the guild is idle."""
        session = await self._session_repo.get_or_create(guild_id)

        position = session.enqueue(track)
        logger.info(LogTemplates.QUEUE_ENQUEUED, track.title, position, guild_id)

        idle = session.state is PlaybackState.IDLE and session.current_track is None
        if idle:
            self._playback.request_advance(guild_id)

        await get_event_bus().publish(
            TrackAddedToQueue(
                guild_id=guild_id,
                track_title=track.title,
                requested_by_id=track.requested_by_id,
                queue_position=position,
            )
        )

        return EnqueueResult(
            track=track,
            position=position,
            queue_length=session.queue_length,
            should_start=idle and position == 1,
        )

    async def skip(self, guild_id: DiscordSnowflake) -> Track | None:
        """Skip the playing track. Raises NotConnectedError without a live connection."""
        return await self._playback.skip(guild_id)

    async def stop(self, guild_id: DiscordSnowflake) -> bool:
        return await self._playback.stop(guild_id)

    async def leave(self, guild_id: DiscordSnowflake) -> bool:
        """Stop everything and forget the guild session.

        Returns what ``stop`` reported, so a session left behind by a failed
        join does not count as having left voice.
        """
        stopped = await self._playback.stop(guild_id)
        await self._session_repo.delete(guild_id)
        return stopped

    async def handle_disconnect(
        self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> None:
        """The bot was removed from ``channel_id`` outside of a command.

        The gateway's word is final: the session is torn down even if the
        voice client has not yet noticed. Ignored when the session already
        released its connection itself, or owns one in another channel.
        """
        session = await self._session_repo.get(guild_id)
        if session is None or session.connection is None:
            return
        if session.connection.channel_id != channel_id:
            return

        logger.info(LogTemplates.VOICE_EXTERNAL_DISCONNECT, guild_id)
        await self.leave(guild_id)

    async def peek(self, guild_id: DiscordSnowflake) -> list[Track]:
        session = await self._session_repo.get(guild_id)
        if session is None:
            return []
        return session.snapshot()

    async def status(self, guild_id: DiscordSnowflake) -> QueueStatus:
        session = await self._session_repo.get(guild_id)
        if session is None:
            return QueueStatus(state=PlaybackState.IDLE)

        return QueueStatus(
            state=session.state,
            current_track=session.current_track,
            next_track=session.peek(),
            queue_length=session.queue_length,
            connected=session.is_connected,
        )

    async def page(self, guild_id: DiscordSnowflake, page: PositiveInt = 1) -> QueuePage:
        """Return one page of upcoming tracks, clamping ``page`` into range."""
        tracks = await self.peek(guild_id)
        total_pages = max(1, math.ceil(len(tracks) / QUEUE_PAGE_SIZE))
        page = min(max(1, page), total_pages)
        start = (page - 1) * QUEUE_PAGE_SIZE

        durations = [t.duration_seconds for t in tracks]
        total_duration = None if None in durations else sum(durations)

        return QueuePage(
            tracks=tracks[start : start + QUEUE_PAGE_SIZE],
            page=page,
            total_pages=total_pages,
            total_tracks=len(tracks),
            start_position=start + 1,
            total_duration_seconds=total_duration,
        )

    async def shutdown(self) -> None:
        """Leave every guild."""
        for session in await self._session_repo.get_all():
            await self.leave(session.guild_id)
