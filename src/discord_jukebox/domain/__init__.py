# ruff: noqa: N999
"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting exceptions, events and constrained types
- music/: Track, guild session and playback state machine
"""

from discord_jukebox.domain.shared.exceptions import DomainError, PlaybackError

__all__ = [
    "DomainError",
    "PlaybackError",
]
