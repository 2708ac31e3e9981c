"""Core domain entities for the music bounded context."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from discord_jukebox.domain.music.value_objects import (
    PlaybackEvent,
    PlaybackState,
    next_state,
)
from discord_jukebox.domain.shared.datetime_utils import utcnow
from discord_jukebox.domain.shared.exceptions import InvalidOperationError
from discord_jukebox.domain.shared.messages import ErrorMessages
from discord_jukebox.domain.shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    HttpUrlStr,
    NonEmptyStr,
    NonNegativeInt,
    TrackTitleStr,
    UtcDatetimeField,
)


class Track(BaseModel):
    """A resolved, playable item. The queue holds these and the driver streams them."""

    model_config = ConfigDict(frozen=True, strict=True)

    title: TrackTitleStr
    source_ref: HttpUrlStr
    duration_seconds: DurationSeconds | None = None

    # Request metadata (set when queued)
    requested_by_id: DiscordSnowflake | None = None
    requested_by_name: NonEmptyStr | None = None
    requested_at: UtcDatetimeField | None = None

    def with_requester(
        self, user_id: DiscordSnowflake, user_name: NonEmptyStr, requested_at: datetime | None = None
    ) -> Track:
        """Return a copy of this track with requester metadata populated."""
        return self.model_copy(
            update={
                "requested_by_id": user_id,
                "requested_by_name": user_name,
                "requested_at": requested_at or utcnow(),
            }
        )


class GuildSession(BaseModel):
    """Aggregate root holding the queue, playback state and voice connection of one guild.

    The playback driver mutates ``state``, ``current_track`` and ``connection``
    only while ``lock`` is held. Queue appends and clears happen synchronously
    on the event loop and need no lock.
    """

    model_config = ConfigDict(strict=True)

    guild_id: DiscordSnowflake
    queue: list[Track] = Field(default_factory=list)
    current_track: Track | None = None
    state: PlaybackState = PlaybackState.IDLE

    # VoiceConnection owned by this session
    connection: Any = Field(default=None, exclude=True, repr=False)
    channel_id: DiscordSnowflake | None = None

    playback_token: str | None = None
    attempts: NonNegativeInt = 0
    skip_requested: bool = False

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and self.connection.is_connected

    def enqueue(self, track: Track) -> int:
        """Append a track to the tail of the queue and return its 1-based position."""
        self.queue.append(track)
        return len(self.queue)

    def peek(self) -> Track | None:
        """Look at the next track without removing it."""
        return self.queue[0] if self.queue else None

    def snapshot(self) -> list[Track]:
        return list(self.queue)

    def clear_queue(self) -> int:
        """Clear all tracks from the queue and return the count removed."""
        count = len(self.queue)
        self.queue.clear()
        return count

    def pop_next(self) -> Track | None:
        """Move the head of the queue into ``current_track`` and start a new attempt budget."""
        if not self.queue:
            return None

        self.apply(PlaybackEvent.TRACK_POPPED)
        track = self.queue.pop(0)
        self.current_track = track
        self.attempts = 0
        self.skip_requested = False
        return track

    def apply(self, event: PlaybackEvent) -> PlaybackState:
        """Advance the state machine by one event."""
        target = next_state(self.state, event)
        if target is None or not self.state.can_transition_to(target):
            raise InvalidOperationError(
                operation=event.value,
                current_state=self.state.value,
                message=ErrorMessages.INVALID_TRANSITION.format(
                    event=event.value, state=self.state.value
                ),
            )

        self.state = target
        return target

    def take_connection(self) -> Any:
        """Detach and return the voice connection, leaving the session without one."""
        connection, self.connection = self.connection, None
        return connection

    def forget_current(self) -> None:
        """Drop the current track and invalidate its playback cycle."""
        self.current_track = None
        self.playback_token = None
        self.attempts = 0
        self.skip_requested = False
