"""Voice channel guard functions for Discord cogs."""

from discord_jukebox.infrastructure.discord.guards.voice_guards import (
    ensure_user_in_voice,
    get_member,
    send_ephemeral,
    voice_channel_id,
)

__all__ = [
    "ensure_user_in_voice",
    "get_member",
    "send_ephemeral",
    "voice_channel_id",
]
