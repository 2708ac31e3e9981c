"""In-memory implementation of the session repository."""

from __future__ import annotations

import logging

from discord_jukebox.domain.music.entities import GuildSession
from discord_jukebox.domain.music.repository import SessionRepository
from discord_jukebox.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)


class InMemorySessionRepository(SessionRepository):
    """Process-lifetime registry of guild sessions keyed by guild ID."""

    def __init__(self) -> None:
        self._sessions: dict[int, GuildSession] = {}

    async def get(self, guild_id: int) -> GuildSession | None:
        return self._sessions.get(guild_id)

    async def get_or_create(self, guild_id: int) -> GuildSession:
        session = self._sessions.get(guild_id)
        if session is None:
            session = GuildSession(guild_id=guild_id)
            self._sessions[guild_id] = session
            logger.debug(LogTemplates.SESSION_CREATED, guild_id)
        return session

    async def delete(self, guild_id: int) -> bool:
        if self._sessions.pop(guild_id, None) is None:
            return False
        logger.debug(LogTemplates.SESSION_DELETED, guild_id)
        return True

    async def get_all(self) -> list[GuildSession]:
        return list(self._sessions.values())

    async def count(self) -> int:
        return len(self._sessions)
