"""Port interfaces for Discord voice operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from discord_jukebox.domain.shared.types import DiscordSnowflake

if TYPE_CHECKING:
    from ...domain.music.value_objects import StreamHandle

StreamEndCallback = Callable[[Exception | None], Awaitable[None]]
"""Awaited on the event loop once per ``play`` call, with the stream error if any."""


class VoiceConnection(ABC):
    """A live voice connection in one guild."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @property
    @abstractmethod
    def channel_id(self) -> DiscordSnowflake | None:
        ...

    @abstractmethod
    async def play(self, stream: StreamHandle, on_end: StreamEndCallback) -> None:
        """Start playing a stream. ``on_end`` fires exactly once when it stops.

        Raises:
            StreamFailedError: The stream could not be started.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the current stream; its ``on_end`` fires as for a natural end."""
        ...

    @abstractmethod
    async def move_to(self, channel_id: DiscordSnowflake) -> None:
        """Move to a different voice channel.

        Raises:
            ConnectFailedError: The move failed or timed out.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Disconnect and release the connection. Never raises."""
        ...


class VoiceTransport(ABC):
    """Factory for voice connections."""

    @abstractmethod
    async def connect(
        self, guild_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> VoiceConnection:
        """Join a voice channel and wait until the connection is ready.

        Raises:
            ConnectFailedError: Joining failed or did not become ready in time.
        """
        ...
