"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (in-memory session registry)
- Discord (bot, cogs, voice transport)
- Audio (yt-dlp resolution)
"""

from discord_jukebox.infrastructure.discord.adapters.voice_adapter import DiscordVoiceTransport
from discord_jukebox.infrastructure.discord.bot import create_bot
from discord_jukebox.infrastructure.persistence.repositories.session_repository import (
    InMemorySessionRepository,
)

__all__ = [
    "create_bot",
    "DiscordVoiceTransport",
    "InMemorySessionRepository",
]
