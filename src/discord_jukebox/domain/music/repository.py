"""
Music Domain Repository Interfaces

Abstract base classes defining the contracts for session storage.
Implementations live in the infrastructure layer.
"""

from abc import ABC, abstractmethod

from discord_jukebox.domain.music.entities import GuildSession


class SessionRepository(ABC):
    """Abstract keyed registry of guild sessions.

    Each session carries its own ``asyncio.Lock``; guilds never share state
    or locks.
    """

    @abstractmethod
    async def get(self, guild_id: int) -> GuildSession | None:
        """Retrieve a session by guild ID.

        Args:
            guild_id: The Discord guild ID.

        Returns:
            The session if found, None otherwise.
        """
        ...

    @abstractmethod
    async def get_or_create(self, guild_id: int) -> GuildSession:
        """Get an existing session or create a new one.

        Args:
            guild_id: The Discord guild ID.

        Returns:
            The existing or newly created session.
        """
        ...

    @abstractmethod
    async def delete(self, guild_id: int) -> bool:
        """Delete a session by guild ID.

        Args:
            guild_id: The Discord guild ID.

        Returns:
            True if the session was deleted, False if it didn't exist.
        """
        ...

    @abstractmethod
    async def get_all(self) -> list[GuildSession]:
        """Get every live session."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Get the total number of sessions."""
        ...
