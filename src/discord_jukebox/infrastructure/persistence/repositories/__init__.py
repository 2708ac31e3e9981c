"""Session repository implementations."""

from discord_jukebox.infrastructure.persistence.repositories.session_repository import (
    InMemorySessionRepository,
)

__all__ = [
    "InMemorySessionRepository",
]
