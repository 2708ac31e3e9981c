"""Discord client for the jukebox: wires the container, loads the music cog and owns shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from discord_jukebox.domain.shared.messages import DiscordUIMessages, LogTemplates

if TYPE_CHECKING:
    from ...config.container import Container
    from ...config.settings import Settings

logger = logging.getLogger(__name__)

COGS: tuple[str, ...] = ("discord_jukebox.infrastructure.discord.cogs.music_cog",)
PRESENCE_TEXT = "/play"


def _jukebox_intents() -> discord.Intents:
    # Slash commands only, so no message content or member list.
    intents = discord.Intents.default()
    intents.guilds = True
    intents.voice_states = True
    return intents


class JukeboxBot(commands.Bot):
    def __init__(self, container: Container, settings: Settings, **kwargs) -> None:
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=_jukebox_intents(),
            help_command=None,
            **kwargs,
        )
        self.container = container
        self.settings = settings
        self._closed = asyncio.Event()
        container.set_bot(self)

    async def setup_hook(self) -> None:
        logger.info(LogTemplates.BOT_SETUP)

        self.tree.on_error = self._on_app_command_error
        await self._load_cogs()
        if self.settings.discord.sync_on_startup:
            await self._sync_commands()

        logger.info(LogTemplates.BOT_SETUP_COMPLETE)

    async def _load_cogs(self) -> None:
        failed = 0
        for extension in COGS:
            try:
                await self.load_extension(extension)
            except Exception as e:
                failed += 1
                logger.exception(LogTemplates.BOT_COG_LOAD_FAILED, extension, e)
            else:
                logger.info(LogTemplates.BOT_COG_LOADED, extension)

        logger.info(LogTemplates.BOT_COGS_LOADED_SUMMARY, len(COGS) - failed, failed)

    # ── Command sync ────────────────────────────────────────────────

    async def _sync_commands(self) -> None:
        """Publish slash commands to each configured guild, or globally when none are set.

        Guild sync copies the global commands first, so they show up immediately
        instead of waiting for Discord's global propagation.
        """
        guild_ids = self.settings.discord.guild_ids
        if not guild_ids:
            await self._sync_global()
            return

        for guild_id in guild_ids:
            await self._sync_guild(guild_id)

    async def _sync_guild(self, guild_id: int) -> None:
        target = discord.Object(id=guild_id)
        try:
            self.tree.copy_global_to(guild=target)
            synced = await self.tree.sync(guild=target)
        except Exception as e:
            logger.warning(LogTemplates.BOT_SYNC_GUILD_FAILED, guild_id, e)
            return
        logger.info(LogTemplates.BOT_SYNCED_GUILD, len(synced), guild_id)

    async def _sync_global(self) -> None:
        try:
            synced = await self.tree.sync()
        except Exception as e:
            logger.warning(LogTemplates.BOT_SYNC_GLOBAL_FAILED, e)
            return
        logger.info(LogTemplates.BOT_SYNCED_GLOBAL, len(synced))

    # ── Events ──────────────────────────────────────────────────────

    async def _on_app_command_error(
        self, interaction: discord.Interaction, error: Exception
    ) -> None:
        """Last-resort handler: log the real cause, tell the user only that it failed."""
        cause = getattr(error, "original", error)
        command_name = getattr(interaction.command, "name", "<unknown>")
        logger.error(LogTemplates.BOT_SLASH_COMMAND_ERROR, command_name, cause, exc_info=cause)

        send = (
            interaction.followup.send
            if interaction.response.is_done()
            else interaction.response.send_message
        )
        try:
            await send(DiscordUIMessages.ERROR_COMMAND_FAILED_SEE_LOGS, ephemeral=True)
        except discord.HTTPException:
            logger.warning(LogTemplates.BOT_ERROR_MESSAGE_SEND_FAILED)

    async def on_ready(self) -> None:
        user = self.user
        logger.info(LogTemplates.BOT_READY, user, getattr(user, "id", None))
        logger.info(LogTemplates.BOT_CONNECTED_GUILDS, len(self.guilds))

        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.listening, name=PRESENCE_TEXT)
        )

    # ── Shutdown ────────────────────────────────────────────────────

    async def close(self) -> None:
        logger.info(LogTemplates.BOT_SHUTTING_DOWN)

        try:
            await self.container.shutdown()
        except Exception as e:
            logger.warning(LogTemplates.BOT_CONTAINER_SHUTDOWN_ERROR, e)
        else:
            logger.info(LogTemplates.BOT_CONTAINER_SHUTDOWN)

        await self._drop_leftover_voice_clients()
        await super().close()
        self._closed.set()
        logger.info(LogTemplates.BOT_SHUTDOWN_COMPLETE)

    async def _drop_leftover_voice_clients(self) -> None:
        # Anything the queue manager did not own, e.g. a connect that raced shutdown.
        for voice_client in list(self.voice_clients):
            try:
                await voice_client.disconnect(force=True)
            except Exception:
                logger.debug(LogTemplates.VOICE_CLEANUP_ERROR, getattr(voice_client, "guild", None))

    def run_until_signalled(self, token: str, *, shutdown_timeout: float = 30.0) -> None:
        """Run the client until SIGINT/SIGTERM, then close within ``shutdown_timeout``."""

        async def _close_with_deadline() -> None:
            try:
                await asyncio.wait_for(self.close(), timeout=shutdown_timeout)
            except TimeoutError:
                logger.warning(LogTemplates.BOT_SHUTDOWN_TIMEOUT, shutdown_timeout)

        async def _main() -> None:
            async with self:
                loop = asyncio.get_running_loop()
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.add_signal_handler(sig, lambda: asyncio.create_task(_close_with_deadline()))
                await self.start(token)

        asyncio.run(_main())


def create_bot(container: Container, settings: Settings) -> JukeboxBot:
    return JukeboxBot(container=container, settings=settings)
