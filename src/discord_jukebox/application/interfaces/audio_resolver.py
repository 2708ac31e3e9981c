"""Port interface for resolving audio tracks from queries and URLs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from discord_jukebox.domain.shared.types import NonEmptyStr

if TYPE_CHECKING:
    from ...domain.music.entities import Track
    from ...domain.music.value_objects import StreamHandle


class AudioResolver(ABC):
    """Interface for turning user queries into tracks and tracks into streams."""

    @abstractmethod
    async def resolve(self, query: NonEmptyStr) -> "Track":
        """Resolve a URL or search query to a track.

        Raises:
            ResolveFailedError: Nothing playable matched the query.
        """
        ...

    @abstractmethod
    async def stream(self, track: "Track") -> "StreamHandle":
        """Produce a readable audio stream for a track.

        Raises:
            StreamFailedError: The media URL could not be obtained.
        """
        ...

    @abstractmethod
    def is_url(self, query: NonEmptyStr) -> bool:
        ...
