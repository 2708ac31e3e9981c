"""Playback Application Service - drives each guild's queue through voice playback."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING
from uuid import uuid4

from ...domain.music.entities import GuildSession, Track
from ...domain.music.value_objects import PlaybackEvent, PlaybackState, TrackFinishReason
from ...domain.shared.events import (
    PlaybackStopped,
    QueueExhausted,
    TrackDropped,
    TrackFinishedPlaying,
    TrackStartedPlaying,
    get_event_bus,
)
from ...domain.shared.exceptions import (
    ConnectFailedError,
    NotConnectedError,
    StreamFailedError,
)
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.types import DiscordSnowflake

if TYPE_CHECKING:
    from ...domain.music.repository import SessionRepository
    from ..interfaces.audio_resolver import AudioResolver
    from ..interfaces.voice_adapter import VoiceConnection, VoiceTransport

logger = logging.getLogger(__name__)


class PlaybackApplicationService:
    """Advances guild queues one track at a time.

    Every advancement runs as its own task under the guild session's lock, so
    at most one advancement is active per guild. A stream's end notification
    never continues the queue inline: it schedules a fresh task, and it is
    honoured only while the playback token it was issued with is current.
    """

    def __init__(
        self,
        *,
        session_repository: SessionRepository,
        voice_transport: VoiceTransport,
        audio_resolver: AudioResolver,
        max_attempts: int = 2,
        retry_backoff_seconds: float = 0.8,
    ) -> None:
        self._session_repo = session_repository
        self._voice_transport = voice_transport
        self._audio_resolver = audio_resolver
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff_seconds

        self._advance_tasks: dict[DiscordSnowflake, set[asyncio.Task[None]]] = {}

    # ── Scheduling ────────────────────────────────────────────────────

    def request_advance(
        self,
        guild_id: DiscordSnowflake,
        *,
        finished_token: str | None = None,
        error: Exception | None = None,
    ) -> asyncio.Task[None]:
        """Schedule an advancement task for a guild and return it."""
        logger.debug(LogTemplates.ADVANCE_REQUESTED, guild_id)
        task = asyncio.create_task(
            self.advance(guild_id, finished_token=finished_token, error=error),
            name=f"advance-{guild_id}",
        )
        self._advance_tasks.setdefault(guild_id, set()).add(task)
        task.add_done_callback(partial(self._forget_task, guild_id))
        return task

    def has_pending_advance(self, guild_id: DiscordSnowflake) -> bool:
        return any(not task.done() for task in self._advance_tasks.get(guild_id, ()))

    def _forget_task(self, guild_id: DiscordSnowflake, task: asyncio.Task[None]) -> None:
        tasks = self._advance_tasks.get(guild_id)
        if tasks is not None:
            tasks.discard(task)
            if not tasks:
                del self._advance_tasks[guild_id]

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Advance task failed in guild %s", guild_id, exc_info=task.exception()
            )

    async def cancel_pending(self, guild_id: DiscordSnowflake) -> int:
        """Cancel queued and in-flight advancement for a guild and wait for them to unwind."""
        current = asyncio.current_task()
        tasks = self._advance_tasks.pop(guild_id, set())
        pending = [task for task in tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(LogTemplates.ADVANCE_CANCELLED, len(pending), guild_id)
        return len(pending)

    # ── Advancement ───────────────────────────────────────────────────

    async def advance(
        self,
        guild_id: DiscordSnowflake,
        *,
        finished_token: str | None = None,
        error: Exception | None = None,
    ) -> None:
        """Play the next track of the guild queue, or go idle when it is empty.

        With ``finished_token`` this is the completion path of the stream that
        was issued that token; a token that is no longer current is ignored.
        """
        session = await self._session_repo.get(guild_id)
        if session is None:
            return

        async with session.lock:
            retry_current = False
            if finished_token is not None:
                if finished_token != session.playback_token:
                    logger.debug(LogTemplates.ADVANCE_STALE_END, guild_id)
                    return
                retry_current = await self._finish_current(session, error)
            elif session.state is not PlaybackState.IDLE or not session.queue:
                logger.debug(LogTemplates.ADVANCE_SUPPRESSED, guild_id, session.state.value)
                return

            await self._run_queue(session, retry_current=retry_current)

    async def _finish_current(self, session: GuildSession, error: Exception | None) -> bool:
        """Close out the playing track. Returns True when it should be replayed."""
        track = session.current_track
        session.playback_token = None

        if error is not None and not session.skip_requested and track is not None:
            logger.warning(
                LogTemplates.PLAYBACK_STREAM_ERROR, track.title, session.guild_id, error
            )
            session.apply(PlaybackEvent.STREAM_FAILED)
            if session.attempts < self._max_attempts:
                return True
            await self._drop_track(session, track, error)
            return False

        reason = TrackFinishReason.SKIPPED if session.skip_requested else TrackFinishReason.COMPLETED
        session.apply(PlaybackEvent.STREAM_ENDED)
        session.forget_current()

        if track is not None:
            logger.info(LogTemplates.TRACK_FINISHED, track.title, session.guild_id)
            await get_event_bus().publish(
                TrackFinishedPlaying(
                    guild_id=session.guild_id,
                    track_title=track.title,
                    reason=reason,
                )
            )
        return False

    async def _run_queue(self, session: GuildSession, *, retry_current: bool = False) -> None:
        """Start one track. A dropped track hands the rest of the queue to a new task."""
        if retry_current and session.current_track is not None:
            track = session.current_track
        else:
            track = session.pop_next()
            if track is None:
                await self._go_idle(session)
                return

        if await self._start_track(session, track):
            return

        # One track per lock hold; the rest of the queue runs as a new advancement.
        if session.queue:
            self.request_advance(session.guild_id)
        else:
            await self._go_idle(session)

    async def _start_track(self, session: GuildSession, track: Track) -> bool:
        """Try to get ``track`` playing within its attempt budget. Drops it on failure."""
        last_error: Exception | None = None

        while session.attempts < self._max_attempts:
            if session.attempts > 0:
                await self._backoff(session, track)
            session.attempts += 1

            try:
                await self._attempt(session, track)
                return True
            except ConnectFailedError as exc:
                last_error = exc
                session.apply(PlaybackEvent.CONNECT_FAILED)
            except StreamFailedError as exc:
                last_error = exc
                session.apply(PlaybackEvent.STREAM_FAILED)
            except Exception as exc:
                logger.exception(
                    LogTemplates.PLAYBACK_UNEXPECTED_ERROR, track.title, session.guild_id
                )
                last_error = exc
                session.apply(PlaybackEvent.STREAM_FAILED)

            logger.warning(
                LogTemplates.PLAYBACK_ATTEMPT_FAILED,
                session.attempts,
                self._max_attempts,
                track.title,
                session.guild_id,
                last_error,
            )

        await self._drop_track(session, track, last_error)
        return False

    async def _backoff(self, session: GuildSession, track: Track) -> None:
        logger.info(LogTemplates.PLAYBACK_RETRY, track.title, session.guild_id, self._retry_backoff)
        await asyncio.sleep(self._retry_backoff)

    async def _attempt(self, session: GuildSession, track: Track) -> None:
        connection = await self._ensure_connection(session)
        stream = await self._audio_resolver.stream(track)

        token = uuid4().hex
        session.playback_token = token
        try:
            await connection.play(stream, partial(self._on_stream_end, session.guild_id, token))
        except Exception:
            session.playback_token = None
            raise

        session.apply(PlaybackEvent.STREAM_BOUND)
        logger.info(LogTemplates.PLAYBACK_STARTED, track.title, session.guild_id)

        await get_event_bus().publish(
            TrackStartedPlaying(
                guild_id=session.guild_id,
                track_title=track.title,
                track_url=track.source_ref,
                duration_seconds=track.duration_seconds,
                requested_by_name=track.requested_by_name,
            )
        )

    async def _on_stream_end(
        self, guild_id: DiscordSnowflake, token: str, error: Exception | None
    ) -> None:
        self.request_advance(guild_id, finished_token=token, error=error)

    async def _drop_track(
        self, session: GuildSession, track: Track, error: Exception | None
    ) -> None:
        attempts = session.attempts
        session.apply(PlaybackEvent.TRACK_DROPPED)
        session.forget_current()

        reason = str(error) if error is not None else ""
        logger.warning(LogTemplates.TRACK_DROPPED, track.title, session.guild_id, attempts, reason)
        await get_event_bus().publish(
            TrackDropped(
                guild_id=session.guild_id,
                track_title=track.title,
                track_url=track.source_ref,
                attempts=attempts,
                reason=reason,
            )
        )

    async def _go_idle(self, session: GuildSession) -> None:
        connection = session.take_connection()
        if connection is not None:
            # Detached from the session already; a cancelled advance must not abandon it.
            await asyncio.shield(connection.close())

        logger.info(LogTemplates.QUEUE_EMPTY, session.guild_id)
        await get_event_bus().publish(QueueExhausted(guild_id=session.guild_id))

    # ── Voice connection ──────────────────────────────────────────────

    async def connect(self, session: GuildSession, channel_id: DiscordSnowflake) -> VoiceConnection:
        """Join or move to ``channel_id``. The caller holds ``session.lock``."""
        session.channel_id = channel_id
        connection = session.connection
        if connection is not None and connection.is_connected:
            if connection.channel_id != channel_id:
                await connection.move_to(channel_id)
            return connection

        return await self._open_connection(session)

    async def _ensure_connection(self, session: GuildSession) -> VoiceConnection:
        connection = session.connection
        if connection is not None and connection.is_connected:
            return connection

        connection = await self._open_connection(session)
        session.apply(PlaybackEvent.CONNECT_READY)
        return connection

    async def _open_connection(self, session: GuildSession) -> VoiceConnection:
        stale = session.take_connection()
        if stale is not None:
            logger.info(LogTemplates.VOICE_STALE_CLEANUP, session.guild_id)
            await asyncio.shield(stale.close())

        if session.channel_id is None:
            raise ConnectFailedError(
                None, ErrorMessages.NO_TARGET_CHANNEL.format(guild_id=session.guild_id)
            )

        connection = await self._voice_transport.connect(session.guild_id, session.channel_id)
        session.connection = connection
        return connection

    # ── User controls ─────────────────────────────────────────────────

    async def skip(self, guild_id: DiscordSnowflake) -> Track | None:
        """End the playing track early and return it, or None if nothing is playing.

        The transport's end-of-stream notification then runs the normal
        completion path, so the queue advances exactly once. A connection
        attempt in progress is never interrupted.
        """
        session = await self._session_repo.get(guild_id)
        if session is None or not session.is_connected:
            raise NotConnectedError(guild_id)

        track = session.current_track
        if not session.is_playing or track is None:
            return None

        session.apply(PlaybackEvent.USER_SKIP)
        session.skip_requested = True
        await session.connection.stop()

        logger.info(LogTemplates.TRACK_SKIPPED, track.title, guild_id)
        return track

    async def stop(self, guild_id: DiscordSnowflake) -> bool:
        """Clear the queue, end playback and release the voice connection.

        Returns False, without raising, when the guild had nothing to stop.
        """
        session = await self._session_repo.get(guild_id)
        if session is None:
            return False

        cleared = session.clear_queue()
        await self.cancel_pending(guild_id)

        async with session.lock:
            if session.current_track is None and session.connection is None and not cleared:
                return False

            if session.current_track is not None:
                cleared += 1
            session.apply(PlaybackEvent.USER_STOP)
            session.forget_current()
            connection = session.take_connection()
            if connection is not None:
                await connection.close()
            session.apply(PlaybackEvent.STOP_COMPLETE)

        logger.info(LogTemplates.PLAYBACK_STOPPED, guild_id)
        await get_event_bus().publish(
            PlaybackStopped(
                guild_id=guild_id,
                cleared_count=cleared,
                session_closed=connection is not None,
            )
        )

        # Tracks enqueued while the connection was closing start a new cycle.
        if session.queue:
            self.request_advance(guild_id)
        return True
