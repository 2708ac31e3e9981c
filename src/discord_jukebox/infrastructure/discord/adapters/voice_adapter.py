"""Discord voice adapter implementing VoiceTransport and VoiceConnection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord

from discord_jukebox.application.interfaces.voice_adapter import (
    StreamEndCallback,
    VoiceConnection,
    VoiceTransport,
)
from discord_jukebox.config.settings import AudioSettings
from discord_jukebox.domain.shared.exceptions import ConnectFailedError, StreamFailedError
from discord_jukebox.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from ....domain.music.value_objects import StreamHandle

logger = logging.getLogger(__name__)

FADE_IN_SECONDS: float = 0.5

VoiceChannelLike = discord.VoiceChannel | discord.StageChannel


def _ffmpeg_headers(headers: dict[str, str]) -> str:
    """Render HTTP headers as an FFmpeg ``-headers`` argument."""
    lines = "".join(f"{key}: {value}\r\n" for key, value in headers.items() if '"' not in value)
    return f'-headers "{lines}"' if lines else ""


class DiscordVoiceConnection(VoiceConnection):
    """Wraps a connected ``discord.VoiceClient``."""

    def __init__(
        self,
        bot: discord.Client,
        voice_client: discord.VoiceClient,
        settings: AudioSettings,
    ) -> None:
        self._bot = bot
        self._vc = voice_client
        self._settings = settings
        self._guild_id = voice_client.guild.id

    @property
    def is_connected(self) -> bool:
        return self._vc.is_connected()

    @property
    def channel_id(self) -> int | None:
        return self._vc.channel.id if self._vc.channel else None

    async def play(self, stream: StreamHandle, on_end: StreamEndCallback) -> None:
        if not self._vc.is_connected():
            raise StreamFailedError(
                stream.url, ErrorMessages.NOT_CONNECTED.format(guild_id=self._guild_id)
            )

        if self._vc.is_playing() or self._vc.is_paused():
            self._vc.stop()

        ffmpeg_options = self._settings.ffmpeg_options
        before_opts = " ".join(
            part
            for part in (
                ffmpeg_options.get("before_options", ""),
                _ffmpeg_headers(stream.http_headers),
            )
            if part
        )
        opts = f'{ffmpeg_options.get("options", "")} -af "afade=t=in:ss=0:d={FADE_IN_SECONDS}"'

        try:
            source = discord.FFmpegPCMAudio(stream.url, before_options=before_opts, options=opts)
        except discord.ClientException as e:
            raise StreamFailedError(stream.url, str(e)) from e

        volume_source = discord.PCMVolumeTransformer(source, volume=self._settings.default_volume)
        guild_id = self._guild_id
        loop = self._bot.loop

        def after_callback(error: Exception | None = None) -> None:
            if error:
                logger.warning(LogTemplates.PLAYBACK_STREAM_ERROR, stream.url[:60], guild_id, error)
            asyncio.run_coroutine_threadsafe(on_end(error), loop)

        try:
            self._vc.play(volume_source, after=after_callback)
        except discord.ClientException as e:
            volume_source.cleanup()
            raise StreamFailedError(stream.url, str(e)) from e

    async def stop(self) -> None:
        if self._vc.is_playing() or self._vc.is_paused():
            self._vc.stop()

    async def move_to(self, channel_id: int) -> None:
        channel = self._vc.guild.get_channel(channel_id)
        if not isinstance(channel, VoiceChannelLike):
            raise ConnectFailedError(channel_id)

        try:
            async with asyncio.timeout(self._settings.connect_timeout_seconds):
                await self._vc.move_to(channel)
        except TimeoutError:
            logger.error(LogTemplates.VOICE_MOVE_TIMEOUT, channel_id)
            raise ConnectFailedError(
                channel_id, ErrorMessages.CONNECT_TIMEOUT.format(channel_id=channel_id)
            ) from None
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            raise ConnectFailedError(channel_id) from e

        logger.info(LogTemplates.VOICE_MOVED, channel.name)

    async def close(self) -> None:
        try:
            await self._vc.disconnect(force=True)
            logger.info(LogTemplates.VOICE_DISCONNECTED, self._guild_id)
        except Exception:
            logger.exception(LogTemplates.VOICE_CLEANUP_ERROR, self._guild_id)


class DiscordVoiceTransport(VoiceTransport):
    """Opens voice connections through discord.py, bounded by a ready-state timeout."""

    def __init__(self, bot: discord.Client, settings: AudioSettings | None = None) -> None:
        self._bot = bot
        self._settings = settings or AudioSettings()

    async def connect(self, guild_id: int, channel_id: int) -> DiscordVoiceConnection:
        guild = self._bot.get_guild(guild_id)
        if guild is None:
            raise ConnectFailedError(channel_id)

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, VoiceChannelLike):
            raise ConnectFailedError(channel_id)

        existing = guild.voice_client
        if existing is not None:
            logger.warning(LogTemplates.VOICE_STALE_CLEANUP, guild_id)
            await self._force_disconnect(guild)

        timeout = self._settings.connect_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                vc = await channel.connect(timeout=timeout, self_deaf=True)
        except TimeoutError:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel_id)
            await self._force_disconnect(guild)
            raise ConnectFailedError(
                channel_id, ErrorMessages.CONNECT_TIMEOUT.format(channel_id=channel_id)
            ) from None
        except discord.Forbidden as e:
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel_id)
            raise ConnectFailedError(channel_id) from e
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            await self._force_disconnect(guild)
            raise ConnectFailedError(channel_id) from e

        logger.info(LogTemplates.VOICE_CONNECTED, channel.name, guild.name)
        return DiscordVoiceConnection(self._bot, vc, self._settings)

    @staticmethod
    async def _force_disconnect(guild: discord.Guild) -> None:
        vc = guild.voice_client
        if vc is None:
            return
        try:
            await vc.disconnect(force=True)
        except Exception:
            logger.exception(LogTemplates.VOICE_CLEANUP_ERROR, guild.id)
