"""
Music Bounded Context

Domain logic for tracks, guild sessions and the playback state machine.
"""

from discord_jukebox.domain.music.entities import GuildSession, Track
from discord_jukebox.domain.music.repository import SessionRepository
from discord_jukebox.domain.music.value_objects import (
    PlaybackEvent,
    PlaybackState,
    StreamHandle,
    TrackFinishReason,
)

__all__ = [
    # Entities
    "Track",
    "GuildSession",
    # Value Objects
    "PlaybackState",
    "PlaybackEvent",
    "StreamHandle",
    "TrackFinishReason",
    # Repository
    "SessionRepository",
]
