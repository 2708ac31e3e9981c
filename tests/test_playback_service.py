"""
Unit Tests for the Playback Driver (PlaybackApplicationService).

Covers:
- FIFO playback order and queue exhaustion
- At most one advancement per guild
- Skip and stale end-of-stream notifications
- Bounded retry, dropped tracks and failure isolation
- Guilds never wait on each other
- Stop: idempotence, cancellation of in-flight advancement, restart
"""

import asyncio
import logging

import pytest

from conftest import CHANNEL_ID, GUILD_ID, OTHER_CHANNEL_ID, drain, make_track, wait_until
from discord_jukebox.application.services.playback_service import PlaybackApplicationService
from discord_jukebox.domain.music.value_objects import PlaybackState, TrackFinishReason
from discord_jukebox.domain.shared.events import (
    PlaybackStopped,
    QueueExhausted,
    TrackDropped,
    TrackFinishedPlaying,
    TrackStartedPlaying,
)
from discord_jukebox.domain.shared.exceptions import NotConnectedError
from discord_jukebox.domain.shared.messages import LogTemplates


def _of_type(events, event_type):
    return [e for e in events if isinstance(e, event_type)]


async def _enqueue_titles(queue_service, *titles):
    for title in titles:
        await queue_service.enqueue(GUILD_ID, make_track(title))


# =============================================================================
# Ordering
# =============================================================================


class TestQueueOrder:
    @pytest.mark.asyncio
    async def test_plays_tracks_in_fifo_order(
        self, queue_service, playback_service, transport, resolver, published_events
    ):
        """Tracks play in the order they were enqueued, then the guild goes idle."""
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2", "t3")
        await drain(playback_service)

        connection = transport.last
        for _ in range(3):
            await connection.end()
            await drain(playback_service)

        assert resolver.stream_calls == ["t1", "t2", "t3"]
        assert [s.url for s in connection.played] == [
            "https://media.example.com/t1",
            "https://media.example.com/t2",
            "https://media.example.com/t3",
        ]
        assert [e.track_title for e in _of_type(published_events, TrackStartedPlaying)] == [
            "t1",
            "t2",
            "t3",
        ]

    @pytest.mark.asyncio
    async def test_song_a_then_song_b_status(self, queue_service, playback_service, transport):
        """status() follows the playing track across a natural end."""
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "Song A", "Song B")
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.PLAYING
        assert status.current_track.title == "Song A"
        assert status.next_track.title == "Song B"
        assert status.queue_length == 1

        await transport.last.end()
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "Song B"
        assert status.next_track is None
        assert status.is_playing

    @pytest.mark.asyncio
    async def test_queue_exhaustion_releases_connection(
        self, queue_service, playback_service, transport, published_events
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "only")
        await drain(playback_service)

        connection = transport.last
        await connection.end()
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.IDLE
        assert status.current_track is None
        assert not status.connected
        assert connection.close_calls == 1
        assert len(_of_type(published_events, QueueExhausted)) == 1

        finished = _of_type(published_events, TrackFinishedPlaying)
        assert [(e.track_title, e.reason) for e in finished] == [
            ("only", TrackFinishReason.COMPLETED)
        ]

    @pytest.mark.asyncio
    async def test_advance_for_unknown_guild_is_noop(self, playback_service, transport):
        await playback_service.advance(GUILD_ID)

        assert transport.connect_calls == 0


# =============================================================================
# Serialization
# =============================================================================


class TestSingleAdvancement:
    @pytest.mark.asyncio
    async def test_repeated_requests_start_one_track(
        self, queue_service, playback_service, transport, resolver
    ):
        """Concurrent advance requests never overlap and never double-start."""
        resolver.delay = 0.01
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2")
        for _ in range(3):
            playback_service.request_advance(GUILD_ID)

        await drain(playback_service)

        assert resolver.max_active == 1
        assert resolver.stream_calls == ["t1"]
        assert len(transport.last.played) == 1

        session_status = await queue_service.status(GUILD_ID)
        assert session_status.current_track.title == "t1"
        assert session_status.queue_length == 1

    @pytest.mark.asyncio
    async def test_has_pending_advance_tracks_tasks(self, queue_service, playback_service):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1")

        assert playback_service.has_pending_advance(GUILD_ID)
        await drain(playback_service)
        assert not playback_service.has_pending_advance(GUILD_ID)


# =============================================================================
# Skip
# =============================================================================


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_advances_exactly_once(
        self, queue_service, playback_service, transport, resolver, published_events
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2", "t3")
        await drain(playback_service)

        skipped = await playback_service.skip(GUILD_ID)
        await drain(playback_service)

        assert skipped.title == "t1"
        assert transport.last.stop_calls == 1
        assert resolver.stream_calls == ["t1", "t2"]

        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t2"
        assert status.queue_length == 1

        finished = _of_type(published_events, TrackFinishedPlaying)
        assert [(e.track_title, e.reason) for e in finished] == [
            ("t1", TrackFinishReason.SKIPPED)
        ]

    @pytest.mark.asyncio
    async def test_stale_end_notification_is_ignored(
        self, queue_service, playback_service, transport, resolver
    ):
        """A late second notification for an old stream does not advance again."""
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2", "t3")
        await drain(playback_service)

        await playback_service.skip(GUILD_ID)
        await drain(playback_service)

        first_stream_end = transport.last.callbacks[0]
        await first_stream_end(None)
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t2"
        assert resolver.stream_calls == ["t1", "t2"]

    @pytest.mark.asyncio
    async def test_skip_while_idle_returns_none(self, queue_service, playback_service):
        await queue_service.join(GUILD_ID, CHANNEL_ID)

        assert await playback_service.skip(GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_skip_without_connection_raises(self, playback_service):
        with pytest.raises(NotConnectedError):
            await playback_service.skip(GUILD_ID)

    @pytest.mark.asyncio
    async def test_skip_during_reconnect_leaves_it_running(
        self, queue_service, playback_service, transport, resolver
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        transport.last.connected = False
        transport.connect_gate = asyncio.Event()
        await _enqueue_titles(queue_service, "t1")
        await wait_until(lambda: transport.connect_calls == 2)

        with pytest.raises(NotConnectedError):
            await playback_service.skip(GUILD_ID)
        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.CONNECTING

        transport.connect_gate.set()
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.PLAYING
        assert status.current_track.title == "t1"
        assert resolver.stream_calls == ["t1"]
        assert transport.connect_calls == 2

    @pytest.mark.asyncio
    async def test_skip_while_stream_opens_is_a_no_op(
        self, queue_service, playback_service, transport, resolver
    ):
        resolver.gate = asyncio.Event()
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2")
        await wait_until(lambda: resolver.active == 1)

        assert await playback_service.skip(GUILD_ID) is None
        assert transport.last.stop_calls == 0

        resolver.gate.set()
        await drain(playback_service)

        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t1"
        assert status.state is PlaybackState.PLAYING
        assert status.queue_length == 1


# =============================================================================
# Guild isolation
# =============================================================================


class TestGuildIsolation:
    @pytest.mark.asyncio
    async def test_stalled_guild_does_not_block_another(
        self, queue_service, playback_service, transport, resolver
    ):
        other_guild = GUILD_ID + 1
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await queue_service.join(other_guild, OTHER_CHANNEL_ID)

        # the other guild lost its voice client and its reconnect hangs
        transport.last.connected = False
        transport.connect_gate = asyncio.Event()
        await queue_service.enqueue(other_guild, make_track("b1"))
        await wait_until(lambda: transport.connect_calls == 3)

        await _enqueue_titles(queue_service, "a1", "a2")
        await drain(playback_service, GUILD_ID)

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.PLAYING
        assert status.current_track.title == "a1"

        skipped = await playback_service.skip(GUILD_ID)
        await drain(playback_service, GUILD_ID)

        assert skipped.title == "a1"
        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "a2"
        assert resolver.stream_calls == ["a1", "a2"]

        stalled = await queue_service.status(other_guild)
        assert stalled.state is PlaybackState.CONNECTING
        assert stalled.current_track.title == "b1"

        transport.connect_gate.set()
        await drain(playback_service, other_guild)

        stalled = await queue_service.status(other_guild)
        assert stalled.state is PlaybackState.PLAYING
        assert resolver.stream_calls == ["a1", "a2", "b1"]


# =============================================================================
# Failures
# =============================================================================


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_broken_track_is_dropped_and_next_plays(
        self, queue_service, playback_service, transport, resolver, published_events, caplog
    ):
        resolver.broken = {"t2"}
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2", "t3")
        await drain(playback_service)

        with caplog.at_level(logging.WARNING):
            await transport.last.end()
            await drain(playback_service)

        assert resolver.stream_calls == ["t1", "t2", "t2", "t3"]

        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t3"
        assert status.state is PlaybackState.PLAYING

        dropped = _of_type(published_events, TrackDropped)
        assert len(dropped) == 1
        assert dropped[0].track_title == "t2"
        assert dropped[0].attempts == 2

        drop_logs = [r for r in caplog.records if r.msg == LogTemplates.TRACK_DROPPED]
        assert len(drop_logs) == 1
        assert drop_logs[0].levelno == logging.WARNING
        assert drop_logs[0].args[:3] == ("t2", GUILD_ID, 2)

    @pytest.mark.asyncio
    async def test_connect_failing_twice_drops_track_after_backoff(
        self, session_repository, queue_service, transport, resolver, published_events, caplog
    ):
        playback = PlaybackApplicationService(
            session_repository=session_repository,
            voice_transport=transport,
            audio_resolver=resolver,
            max_attempts=2,
            retry_backoff_seconds=0.01,
        )
        queue_service._playback = playback

        await queue_service.join(GUILD_ID, CHANNEL_ID)
        dropped_connection = transport.last
        dropped_connection.connected = False
        transport.failures = 2

        with caplog.at_level(logging.INFO):
            await _enqueue_titles(queue_service, "Song A", "Song B")
            await drain(playback)

        # one connect for the join, two failed attempts for A, one for B
        assert transport.connect_calls == 4
        assert dropped_connection.close_calls == 1
        assert resolver.stream_calls == ["Song B"]

        retries = [r for r in caplog.records if r.msg == LogTemplates.PLAYBACK_RETRY]
        assert len(retries) == 1
        assert retries[0].args[0] == "Song A"

        dropped = _of_type(published_events, TrackDropped)
        assert [(e.track_title, e.attempts) for e in dropped] == [("Song A", 2)]

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.PLAYING
        assert status.current_track.title == "Song B"
        assert status.connected

    @pytest.mark.asyncio
    async def test_mid_track_error_replays_then_drops(
        self, queue_service, playback_service, transport, resolver, published_events
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2")
        await drain(playback_service)

        await transport.last.end(RuntimeError("broken pipe"))
        await drain(playback_service)

        assert resolver.stream_calls == ["t1", "t1"]
        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t1"
        assert status.state is PlaybackState.PLAYING

        await transport.last.end(RuntimeError("broken pipe"))
        await drain(playback_service)

        assert resolver.stream_calls == ["t1", "t1", "t2"]
        dropped = _of_type(published_events, TrackDropped)
        assert [e.track_title for e in dropped] == ["t1"]
        assert "broken pipe" in dropped[0].reason

    @pytest.mark.asyncio
    async def test_play_failure_counts_as_attempt(
        self, queue_service, playback_service, transport, resolver
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        transport.last.fail_play = RuntimeError("encoder missing")

        await _enqueue_titles(queue_service, "t1")
        await drain(playback_service)

        assert resolver.stream_calls == ["t1", "t1"]
        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.IDLE
        assert status.current_track is None


# =============================================================================
# Stop
# =============================================================================


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_on_unknown_guild_returns_false(self, playback_service):
        assert await playback_service.stop(GUILD_ID) is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(
        self, queue_service, playback_service, transport, published_events
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2", "t3")
        await drain(playback_service)

        assert await playback_service.stop(GUILD_ID) is True
        await drain(playback_service)
        assert await playback_service.stop(GUILD_ID) is False

        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.IDLE
        assert status.current_track is None
        assert status.queue_length == 0
        assert not status.connected
        assert transport.last.close_calls == 1

        stopped = _of_type(published_events, PlaybackStopped)
        assert len(stopped) == 1
        assert stopped[0].cleared_count == 3
        assert stopped[0].session_closed

    @pytest.mark.asyncio
    async def test_stop_cancels_in_flight_advancement(
        self, queue_service, playback_service, transport, resolver
    ):
        resolver.gate = asyncio.Event()
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1", "t2")

        for _ in range(50):
            await asyncio.sleep(0)
            if resolver.active:
                break
        assert resolver.active == 1

        assert await playback_service.stop(GUILD_ID) is True

        assert not playback_service.has_pending_advance(GUILD_ID)
        assert transport.last.played == []
        status = await queue_service.status(GUILD_ID)
        assert status.state is PlaybackState.IDLE
        assert status.queue_length == 0

    @pytest.mark.asyncio
    async def test_stop_while_going_idle_still_closes_voice(
        self, queue_service, playback_service, transport
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1")
        await drain(playback_service)

        connection = transport.last
        connection.close_gate = asyncio.Event()
        await connection.end()
        await wait_until(lambda: connection.close_calls == 1)

        # the queue ran dry and the voice client is mid-close
        assert await playback_service.stop(GUILD_ID) is False
        assert connection.connected

        connection.close_gate.set()
        await wait_until(lambda: not connection.connected)
        assert connection.close_calls == 1

    @pytest.mark.asyncio
    async def test_enqueue_after_stop_reconnects(
        self, queue_service, playback_service, transport, resolver
    ):
        await queue_service.join(GUILD_ID, CHANNEL_ID)
        await _enqueue_titles(queue_service, "t1")
        await drain(playback_service)
        await playback_service.stop(GUILD_ID)
        await drain(playback_service)

        await _enqueue_titles(queue_service, "t2")
        await drain(playback_service)

        assert transport.connect_calls == 2
        assert transport.last.channel_id == CHANNEL_ID
        status = await queue_service.status(GUILD_ID)
        assert status.current_track.title == "t2"
        assert status.is_playing
