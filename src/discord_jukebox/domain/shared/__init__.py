"""
Shared Domain Kernel

Contains exceptions, events and constrained types shared across the domain.
"""

from discord_jukebox.domain.shared.exceptions import (
    ConnectFailedError,
    DomainError,
    InvalidOperationError,
    NoVoiceChannelError,
    NotConnectedError,
    PlaybackError,
    ResolveFailedError,
    StreamFailedError,
)

__all__ = [
    "DomainError",
    "InvalidOperationError",
    "PlaybackError",
    "NoVoiceChannelError",
    "ResolveFailedError",
    "ConnectFailedError",
    "StreamFailedError",
    "NotConnectedError",
]
