"""DTOs for the queue application service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from ...domain.music.entities import Track
from ...domain.music.value_objects import PlaybackState
from ...domain.shared.types import NonNegativeInt, PositiveInt


class EnqueueResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    track: Track
    position: PositiveInt
    queue_length: NonNegativeInt
    should_start: bool = False


class QueueStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: PlaybackState
    current_track: Track | None = None
    next_track: Track | None = None
    queue_length: NonNegativeInt = 0
    connected: bool = False

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING


class QueuePage(BaseModel):
    """One page of the upcoming tracks, positions are 1-based."""

    model_config = ConfigDict(frozen=True)

    tracks: list[Track]
    page: PositiveInt
    total_pages: PositiveInt
    total_tracks: NonNegativeInt
    start_position: PositiveInt
    total_duration_seconds: NonNegativeInt | None
