"""Slash-command music cog delegating to application services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from discord_jukebox.application.commands.play_track import PlayTrackCommand
from discord_jukebox.domain.music.entities import Track
from discord_jukebox.domain.shared.events import TrackDropped, TrackStartedPlaying, get_event_bus
from discord_jukebox.domain.shared.exceptions import (
    ConnectFailedError,
    NoVoiceChannelError,
    NotConnectedError,
    ResolveFailedError,
)
from discord_jukebox.domain.shared.messages import DiscordUIMessages, ErrorMessages, LogTemplates
from discord_jukebox.infrastructure.discord.guards.voice_guards import (
    ensure_user_in_voice,
    get_member,
    send_ephemeral,
    voice_channel_id,
)
from discord_jukebox.utils.reply import (
    TITLE_MAX_LENGTH,
    duration_suffix,
    format_duration,
    format_requester,
    format_track_link,
    truncate,
)

if TYPE_CHECKING:
    from ....application.services.queue_models import QueuePage, QueueStatus
    from ....config.container import Container

logger = logging.getLogger(__name__)


class MusicCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

        # guild id -> text channel of the last /play or /join
        self._announce_channels: dict[int, int] = {}

    async def cog_load(self) -> None:
        event_bus = get_event_bus()
        event_bus.subscribe(TrackStartedPlaying, self._on_track_started)
        event_bus.subscribe(TrackDropped, self._on_track_dropped)

    async def cog_unload(self) -> None:
        event_bus = get_event_bus()
        event_bus.unsubscribe(TrackStartedPlaying, self._on_track_started)
        event_bus.unsubscribe(TrackDropped, self._on_track_dropped)
        self._announce_channels.clear()

    def _remember_channel(self, interaction: discord.Interaction) -> None:
        if interaction.guild is not None and interaction.channel_id is not None:
            self._announce_channels[interaction.guild.id] = interaction.channel_id

    # ── Commands ──────────────────────────────────────────────────────

    @app_commands.command(name="join", description="Join your voice channel.")
    async def join(self, interaction: discord.Interaction) -> None:
        member = await ensure_user_in_voice(interaction)
        if member is None:
            return

        assert interaction.guild is not None
        channel_id = voice_channel_id(member)
        assert channel_id is not None

        # Voice handshakes can exceed the 3-second interaction deadline
        await interaction.response.defer()

        try:
            await self.container.queue_service.join(interaction.guild.id, channel_id)
        except ConnectFailedError:
            await send_ephemeral(interaction, DiscordUIMessages.ERROR_COULD_NOT_JOIN_VOICE)
            return

        self._remember_channel(interaction)
        channel_name = member.voice.channel.name if member.voice and member.voice.channel else ""
        await interaction.followup.send(
            DiscordUIMessages.ACTION_JOINED.format(channel_name=channel_name)
        )

    @app_commands.command(name="play", description="Play a song by URL or search query.")
    @app_commands.describe(query="YouTube URL or search query")
    async def play(self, interaction: discord.Interaction, query: str) -> None:
        member = await get_member(interaction)
        if member is None:
            return

        assert interaction.guild is not None

        await interaction.response.defer()

        try:
            command = PlayTrackCommand(
                guild_id=interaction.guild.id,
                channel_id=voice_channel_id(member),
                user_id=member.id,
                user_name=member.display_name,
                query=query,
            )
            result = await self.container.play_track_handler.handle(command)
        except NoVoiceChannelError:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NEED_TO_BE_IN_VOICE)
            return
        except ResolveFailedError:
            await send_ephemeral(
                interaction, DiscordUIMessages.ERROR_TRACK_NOT_FOUND.format(query=query)
            )
            return
        except ConnectFailedError:
            await send_ephemeral(interaction, DiscordUIMessages.ERROR_COULD_NOT_JOIN_VOICE)
            return
        except Exception as e:
            logger.exception("Error in play command")
            await send_ephemeral(interaction, DiscordUIMessages.ERROR_OCCURRED.format(error=e))
            return

        self._remember_channel(interaction)
        title = truncate(result.track.title, TITLE_MAX_LENGTH)
        if result.started_playing:
            message = DiscordUIMessages.ACTION_STARTING.format(track_title=title)
        else:
            message = DiscordUIMessages.ACTION_QUEUED.format(
                track_title=title, position=result.queue_position
            )
        await interaction.followup.send(message)

    @app_commands.command(name="skip", description="Skip the current track.")
    async def skip(self, interaction: discord.Interaction) -> None:
        if await get_member(interaction) is None:
            return

        assert interaction.guild is not None

        try:
            track = await self.container.queue_service.skip(interaction.guild.id)
        except NotConnectedError:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NOT_CONNECTED_TO_VOICE)
            return

        if track is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NOTHING_PLAYING)
            return

        await interaction.response.send_message(
            DiscordUIMessages.ACTION_SKIPPED.format(
                track_title=truncate(track.title, TITLE_MAX_LENGTH)
            )
        )

    @app_commands.command(name="stop", description="Stop playback and clear the queue.")
    async def stop(self, interaction: discord.Interaction) -> None:
        if await get_member(interaction) is None:
            return

        assert interaction.guild is not None

        await interaction.response.defer()
        stopped = await self.container.queue_service.stop(interaction.guild.id)

        if stopped:
            await interaction.followup.send(DiscordUIMessages.ACTION_STOPPED)
        else:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NOTHING_TO_STOP)

    @app_commands.command(name="leave", description="Leave the voice channel and clear the queue.")
    async def leave(self, interaction: discord.Interaction) -> None:
        if await get_member(interaction) is None:
            return

        assert interaction.guild is not None

        await interaction.response.defer()
        left = await self.container.queue_service.leave(interaction.guild.id)
        self._announce_channels.pop(interaction.guild.id, None)

        if left:
            await interaction.followup.send(DiscordUIMessages.ACTION_LEFT)
        else:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NOT_CONNECTED_TO_VOICE)

    @app_commands.command(name="queue", description="Show the current queue.")
    @app_commands.describe(page="Page number")
    async def queue(self, interaction: discord.Interaction, page: int = 1) -> None:
        if await get_member(interaction) is None:
            return

        assert interaction.guild is not None

        queue_service = self.container.queue_service
        status = await queue_service.status(interaction.guild.id)
        queue_page = await queue_service.page(interaction.guild.id, max(1, page))

        if queue_page.total_tracks == 0 and status.current_track is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_QUEUE_EMPTY)
            return

        await interaction.response.send_message(embed=self._build_queue_embed(status, queue_page))

    @app_commands.command(name="now", description="Show the track that is playing.")
    async def now(self, interaction: discord.Interaction) -> None:
        if await get_member(interaction) is None:
            return

        assert interaction.guild is not None

        status = await self.container.queue_service.status(interaction.guild.id)
        if status.current_track is None:
            await send_ephemeral(interaction, DiscordUIMessages.STATE_NOTHING_PLAYING)
            return

        await interaction.response.send_message(
            embed=self._build_now_playing_embed(status.current_track, status.next_track)
        )

    # ── Listeners ─────────────────────────────────────────────────────

    @commands.Cog.listener()
    async def on_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        if self.bot.user is None or member.id != self.bot.user.id:
            return

        if before.channel is not None and after.channel is None:
            await self.container.queue_service.handle_disconnect(
                member.guild.id, before.channel.id
            )

    # ── Announcements ─────────────────────────────────────────────────

    async def _on_track_started(self, event: TrackStartedPlaying) -> None:
        await self._announce(
            event.guild_id,
            DiscordUIMessages.ANNOUNCE_NOW_PLAYING.format(
                track_title=truncate(event.track_title, TITLE_MAX_LENGTH),
                duration=duration_suffix(event.duration_seconds),
            ),
        )

    async def _on_track_dropped(self, event: TrackDropped) -> None:
        await self._announce(
            event.guild_id,
            DiscordUIMessages.ANNOUNCE_TRACK_DROPPED.format(
                track_title=truncate(event.track_title, TITLE_MAX_LENGTH)
            ),
        )

    async def _announce(self, guild_id: int, content: str) -> None:
        channel_id = self._announce_channels.get(guild_id)
        if channel_id is None:
            return

        channel = self.bot.get_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return

        try:
            await channel.send(content)
        except discord.HTTPException:
            logger.warning(LogTemplates.ANNOUNCE_FAILED, channel_id)

    # ── Rendering ─────────────────────────────────────────────────────

    def _build_now_playing_embed(self, track: Track, next_track: Track | None) -> discord.Embed:
        embed = discord.Embed(
            title=DiscordUIMessages.EMBED_NOW_PLAYING,
            description=format_track_link(track),
            color=discord.Color.green(),
        )
        embed.add_field(
            name=DiscordUIMessages.EMBED_DURATION,
            value=format_duration(track.duration_seconds),
            inline=True,
        )
        embed.add_field(
            name=DiscordUIMessages.EMBED_REQUESTED_BY,
            value=format_requester(track),
            inline=True,
        )
        if next_track is not None:
            embed.add_field(
                name=DiscordUIMessages.EMBED_UP_NEXT,
                value=truncate(next_track.title),
                inline=False,
            )
        return embed

    def _build_queue_embed(self, status: QueueStatus, queue_page: QueuePage) -> discord.Embed:
        embed = discord.Embed(
            title=DiscordUIMessages.EMBED_QUEUE.format(
                total_tracks=queue_page.total_tracks,
                page=queue_page.page,
                total_pages=queue_page.total_pages,
            ),
            color=discord.Color.blurple(),
        )

        if status.current_track is not None:
            embed.add_field(
                name=DiscordUIMessages.EMBED_NOW_PLAYING,
                value=f"**{truncate(status.current_track.title)}**\n"
                f"Duration: {format_duration(status.current_track.duration_seconds)}",
                inline=False,
            )

        for idx, track in enumerate(queue_page.tracks, start=queue_page.start_position):
            embed.add_field(
                name=f"{idx}. {truncate(track.title)}",
                value=f"Requested by: {format_requester(track)}",
                inline=False,
            )

        if queue_page.total_duration_seconds:
            embed.set_footer(
                text=f"Total duration: {format_duration(queue_page.total_duration_seconds)}"
            )

        return embed


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError(ErrorMessages.CONTAINER_NOT_FOUND)

    await bot.add_cog(MusicCog(bot, container))
