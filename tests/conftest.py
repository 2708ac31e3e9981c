import asyncio

import pytest

from discord_jukebox.application.interfaces.audio_resolver import AudioResolver
from discord_jukebox.application.interfaces.voice_adapter import (
    StreamEndCallback,
    VoiceConnection,
    VoiceTransport,
)
from discord_jukebox.application.services.playback_service import PlaybackApplicationService
from discord_jukebox.application.services.queue_service import QueueApplicationService
from discord_jukebox.domain.music.entities import Track
from discord_jukebox.domain.music.value_objects import StreamHandle
from discord_jukebox.domain.shared.events import (
    DomainEvent,
    PlaybackStopped,
    QueueExhausted,
    TrackAddedToQueue,
    TrackDropped,
    TrackFinishedPlaying,
    TrackStartedPlaying,
    get_event_bus,
    reset_event_bus,
)
from discord_jukebox.domain.shared.exceptions import (
    ConnectFailedError,
    ResolveFailedError,
    StreamFailedError,
)
from discord_jukebox.infrastructure.persistence.repositories.session_repository import (
    InMemorySessionRepository,
)

GUILD_ID = 111111111
CHANNEL_ID = 444444444
OTHER_CHANNEL_ID = 555555555


def make_track(title: str, duration: int | None = 180) -> Track:
    return Track(
        title=title,
        source_ref=f"https://www.youtube.com/watch?v={title.replace(' ', '_')}",
        duration_seconds=duration,
    )


async def drain(playback: PlaybackApplicationService, guild_id: int = GUILD_ID) -> None:
    """Wait until the guild has no scheduled or running advancement."""
    for _ in range(500):
        await asyncio.sleep(0)
        if not playback.has_pending_advance(guild_id):
            return
        await asyncio.sleep(0.001)
    raise AssertionError("advancement did not settle")


async def wait_until(condition) -> None:
    """Poll ``condition`` while letting background tasks run."""
    for _ in range(500):
        if condition():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition never held")


# ============================================================================
# Port fakes
# ============================================================================


class FakeVoiceConnection(VoiceConnection):
    """Voice connection that plays nothing and ends streams on demand."""

    def __init__(self, channel_id: int) -> None:
        self._channel_id = channel_id
        self.connected = True
        self.played: list[StreamHandle] = []
        self.callbacks: list[StreamEndCallback] = []
        self.stop_calls = 0
        self.close_calls = 0
        self.fail_play: Exception | None = None
        self.close_gate: asyncio.Event | None = None
        self._on_end: StreamEndCallback | None = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def channel_id(self) -> int | None:
        return self._channel_id

    async def play(self, stream: StreamHandle, on_end: StreamEndCallback) -> None:
        if self.fail_play is not None:
            raise self.fail_play
        self.played.append(stream)
        self.callbacks.append(on_end)
        self._on_end = on_end

    async def end(self, error: Exception | None = None) -> None:
        """Finish the playing stream the way the player thread reports it."""
        on_end, self._on_end = self._on_end, None
        if on_end is not None:
            await on_end(error)

    async def stop(self) -> None:
        self.stop_calls += 1
        await self.end()

    async def move_to(self, channel_id: int) -> None:
        self._channel_id = channel_id

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_gate is not None:
            await self.close_gate.wait()
        self.connected = False
        await self.end()


class FakeVoiceTransport(VoiceTransport):
    def __init__(self) -> None:
        self.connections: list[FakeVoiceConnection] = []
        self.connect_calls = 0
        self.failures = 0
        self.connect_delay = 0.0
        self.connect_gate: asyncio.Event | None = None

    async def connect(self, guild_id: int, channel_id: int) -> FakeVoiceConnection:
        self.connect_calls += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.failures > 0:
            self.failures -= 1
            raise ConnectFailedError(channel_id)

        connection = FakeVoiceConnection(channel_id)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeVoiceConnection:
        return self.connections[-1]


class FakeResolver(AudioResolver):
    """Resolves any query to a track named after it; ``broken`` titles never stream."""

    def __init__(self) -> None:
        self.broken: set[str] = set()
        self.missing: set[str] = set()
        self.stream_calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.delay = 0.0
        self.active = 0
        self.max_active = 0

    async def resolve(self, query: str) -> Track:
        if query in self.missing:
            raise ResolveFailedError(query)
        return make_track(query)

    async def stream(self, track: Track) -> StreamHandle:
        self.stream_calls.append(track.title)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        if track.title in self.broken:
            raise StreamFailedError(track.title)
        return StreamHandle(url=f"https://media.example.com/{track.title.replace(' ', '_')}")

    def is_url(self, query: str) -> bool:
        return query.startswith(("http://", "https://"))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _fresh_event_bus():
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def transport():
    return FakeVoiceTransport()


@pytest.fixture
def session_repository():
    return InMemorySessionRepository()


@pytest.fixture
def playback_service(session_repository, transport, resolver):
    return PlaybackApplicationService(
        session_repository=session_repository,
        voice_transport=transport,
        audio_resolver=resolver,
        max_attempts=2,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def queue_service(session_repository, playback_service):
    return QueueApplicationService(
        session_repository=session_repository,
        playback_service=playback_service,
    )


@pytest.fixture
def published_events():
    """Every domain event published during the test, in order."""
    events: list[DomainEvent] = []

    async def record(event: DomainEvent) -> None:
        events.append(event)

    bus = get_event_bus()
    for event_type in (
        TrackAddedToQueue,
        TrackStartedPlaying,
        TrackFinishedPlaying,
        TrackDropped,
        QueueExhausted,
        PlaybackStopped,
    ):
        bus.subscribe(event_type, record)
    return events
