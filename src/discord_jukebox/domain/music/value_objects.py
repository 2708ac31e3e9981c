"""Immutable value objects for the music bounded context."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from discord_jukebox.domain.shared.types import HttpUrlStr


class PlaybackState(Enum):
    """Playback state of a guild session.

    State transitions:
    - IDLE -> CONNECTING (a track was popped from the queue)
    - CONNECTING -> PLAYING (stream bound to the voice connection)
    - CONNECTING -> IDLE (track dropped after its last attempt)
    - PLAYING -> IDLE (stream ended)
    - PLAYING -> CONNECTING (stream failed, track is retried)
    - IDLE/CONNECTING/PLAYING -> STOPPING (user stop)
    - STOPPING -> IDLE (teardown complete)
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    PLAYING = "playing"
    STOPPING = "stopping"

    def can_transition_to(self, target: PlaybackState) -> bool:
        """Check if transition to target state is valid."""
        valid_transitions = {
            PlaybackState.IDLE: {PlaybackState.CONNECTING, PlaybackState.STOPPING},
            PlaybackState.CONNECTING: {
                PlaybackState.CONNECTING,
                PlaybackState.PLAYING,
                PlaybackState.IDLE,
                PlaybackState.STOPPING,
            },
            PlaybackState.PLAYING: {
                PlaybackState.PLAYING,
                PlaybackState.CONNECTING,
                PlaybackState.IDLE,
                PlaybackState.STOPPING,
            },
            PlaybackState.STOPPING: {PlaybackState.IDLE},
        }
        return target in valid_transitions.get(self, set())

    @property
    def is_active(self) -> bool:
        return self in {PlaybackState.CONNECTING, PlaybackState.PLAYING}

    @property
    def is_playing(self) -> bool:
        return self == PlaybackState.PLAYING


class PlaybackEvent(Enum):
    """Events that drive the playback state machine."""

    TRACK_POPPED = "track_popped"
    CONNECT_READY = "connect_ready"
    CONNECT_FAILED = "connect_failed"
    STREAM_BOUND = "stream_bound"
    STREAM_ENDED = "stream_ended"
    STREAM_FAILED = "stream_failed"
    TRACK_DROPPED = "track_dropped"
    USER_SKIP = "user_skip"
    USER_STOP = "user_stop"
    STOP_COMPLETE = "stop_complete"


# USER_SKIP leaves the state alone: the forced end of stream arrives as STREAM_ENDED.
PLAYBACK_TRANSITIONS: dict[tuple[PlaybackState, PlaybackEvent], PlaybackState] = {
    (PlaybackState.IDLE, PlaybackEvent.TRACK_POPPED): PlaybackState.CONNECTING,
    (PlaybackState.CONNECTING, PlaybackEvent.CONNECT_READY): PlaybackState.CONNECTING,
    (PlaybackState.CONNECTING, PlaybackEvent.CONNECT_FAILED): PlaybackState.CONNECTING,
    (PlaybackState.CONNECTING, PlaybackEvent.STREAM_FAILED): PlaybackState.CONNECTING,
    (PlaybackState.CONNECTING, PlaybackEvent.STREAM_BOUND): PlaybackState.PLAYING,
    (PlaybackState.CONNECTING, PlaybackEvent.TRACK_DROPPED): PlaybackState.IDLE,
    (PlaybackState.PLAYING, PlaybackEvent.STREAM_ENDED): PlaybackState.IDLE,
    (PlaybackState.PLAYING, PlaybackEvent.STREAM_FAILED): PlaybackState.CONNECTING,
    (PlaybackState.PLAYING, PlaybackEvent.USER_SKIP): PlaybackState.PLAYING,
    (PlaybackState.IDLE, PlaybackEvent.USER_STOP): PlaybackState.STOPPING,
    (PlaybackState.CONNECTING, PlaybackEvent.USER_STOP): PlaybackState.STOPPING,
    (PlaybackState.PLAYING, PlaybackEvent.USER_STOP): PlaybackState.STOPPING,
    (PlaybackState.STOPPING, PlaybackEvent.STOP_COMPLETE): PlaybackState.IDLE,
}


def next_state(state: PlaybackState, event: PlaybackEvent) -> PlaybackState | None:
    """Look up the state reached by applying ``event`` in ``state``, or None if invalid."""
    return PLAYBACK_TRANSITIONS.get((state, event))


class TrackFinishReason(Enum):
    """Reasons a track can finish playing."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


class StreamHandle(BaseModel):
    """A direct media URL plus the HTTP headers FFmpeg must send to read it."""

    model_config = ConfigDict(frozen=True, strict=True)

    url: HttpUrlStr
    http_headers: dict[str, str] = Field(default_factory=dict)

    @property
    def user_agent(self) -> str | None:
        return self.http_headers.get("User-Agent")
