"""
Application Commands

Command objects and their handlers for write operations.
Commands represent intent to change the system state.
"""

from discord_jukebox.application.commands.play_track import (
    PlayTrackCommand,
    PlayTrackHandler,
    PlayTrackResult,
    PlayTrackStatus,
)

__all__ = [
    "PlayTrackCommand",
    "PlayTrackHandler",
    "PlayTrackResult",
    "PlayTrackStatus",
]
