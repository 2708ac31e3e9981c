"""Centralized message constants for error messages, log templates, and user feedback."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Discord ID Validation Errors
    INVALID_SNOWFLAKE = "Discord snowflake ID must be positive"
    SNOWFLAKE_TOO_LARGE = "Discord snowflake ID exceeds maximum value (2^64)"

    # Playback Errors
    NO_VOICE_CHANNEL = "You need to be in a voice channel first."
    RESOLVE_FAILED = "Couldn't find a track for: {query}"
    CONNECT_FAILED = "Could not connect to voice channel {channel_id}"
    CONNECT_TIMEOUT = "Timed out connecting to voice channel {channel_id}"
    VOICE_BUSY = "Timed out waiting for voice in guild {guild_id}"
    NO_TARGET_CHANNEL = "No voice channel recorded for guild {guild_id}"
    STREAM_FAILED = "Could not open an audio stream for '{subject}'"
    NOT_CONNECTED = "Not connected to voice in guild {guild_id}"
    INVALID_TRANSITION = "Cannot apply {event} in state {state}"

    # Audio/Stream Errors
    NO_URL_IN_INFO_DICT = "No URL found in info dict"
    NO_STREAM_URL_FOR_TRACK = "No stream URL found for {title}"

    # Configuration Errors
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"
    DISCORD_TOKEN_REQUIRED = "DISCORD__TOKEN environment variable is required"
    CONTAINER_NOT_FOUND = "Container not found on bot instance"
    BOT_NOT_ATTACHED = "Bot not attached to the container; call set_bot() first"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Cache Operations
    CACHE_HIT_URL = "Cache hit for URL: %s"

    # Voice Operations
    VOICE_CONNECTED = "Connected to voice channel %s in %s"
    VOICE_DISCONNECTED = "Disconnected from voice in guild %s"
    VOICE_MOVED = "Moved to voice channel %s"
    VOICE_CONNECTION_TIMEOUT = "Timeout connecting to channel %s"
    VOICE_MOVE_TIMEOUT = "Timeout moving to channel %s"
    VOICE_NO_PERMISSION = "No permission to connect to channel %s"
    VOICE_CLIENT_ERROR = "Client error connecting: %r"
    VOICE_STALE_CLEANUP = "Found stale voice client in guild %s, cleaning up"
    VOICE_CLEANUP_ERROR = "Error during voice cleanup in guild %s"
    VOICE_EXTERNAL_DISCONNECT = "Bot was disconnected from voice in guild %s"
    VOICE_BUSY_TIMEOUT = "Gave up waiting for the playback driver in guild %s after %.1fs"

    # Playback Driver
    ADVANCE_REQUESTED = "Advance requested for guild %s"
    ADVANCE_SUPPRESSED = "Advance suppressed for guild %s (state=%s)"
    ADVANCE_CANCELLED = "Cancelled %d pending advance task(s) for guild %s"
    ADVANCE_STALE_END = "Ignoring stale end-of-stream for guild %s"
    PLAYBACK_STARTED = "Started playing '%s' in guild %s"
    PLAYBACK_ATTEMPT_FAILED = "Attempt %d/%d for '%s' failed in guild %s: %s"
    PLAYBACK_RETRY = "Retrying '%s' in guild %s after %.1fs"
    PLAYBACK_STREAM_ERROR = "Stream for '%s' ended with error in guild %s: %s"
    PLAYBACK_UNEXPECTED_ERROR = "Unexpected error playing '%s' in guild %s"
    PLAYBACK_STOPPED = "Stopped playback in guild %s"
    TRACK_DROPPED = "Dropped '%s' in guild %s after %d attempt(s): %s"
    TRACK_FINISHED = "Track finished: %s in guild %s"
    TRACK_SKIPPED = "Skipped track: %s in guild %s"

    # Queue Operations
    QUEUE_EMPTY = "Queue empty in guild %s"
    QUEUE_ENQUEUED = "Enqueued track '%s' at position %s in guild %s"

    # Session Operations
    SESSION_CREATED = "Created session for guild %s"
    SESSION_DELETED = "Deleted session for guild %s"

    # Domain Events
    EVENT_SUBSCRIBED = "Subscribed handler to %s"
    EVENT_UNSUBSCRIBED = "Unsubscribed handler from %s"
    EVENT_HANDLER_FAILED = "Handler for %s raised"

    # Resolution
    YTDLP_FAILED_EXTRACT_INFO = "Failed to extract info from %s"
    YTDLP_FAILED_SEARCH = "Failed to search for %r"
    YTDLP_NO_RESULTS = "No results for %r"

    # Application Lifecycle
    BOT_STARTING = "Starting discord-jukebox in {environment} mode"
    BOT_SETUP = "Setting up bot..."
    BOT_SETUP_COMPLETE = "Bot setup complete"
    BOT_STARTING_RUN = "Starting bot..."
    BOT_STOPPED = "Bot stopped successfully"
    BOT_KEYBOARD_INTERRUPT = "Received keyboard interrupt, shutting down..."
    BOT_FATAL_ERROR = "Fatal error: %s"
    BOT_SHUTTING_DOWN = "Shutting down bot..."
    BOT_CONTAINER_SHUTDOWN = "Container shutdown complete"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Error during container shutdown: %s"
    BOT_SHUTDOWN_COMPLETE = "Bot shutdown complete"
    BOT_SHUTDOWN_TIMEOUT = "Graceful shutdown timed out after %.1fs"
    BOT_READY = "Bot ready as %s (%s)"
    BOT_CONNECTED_GUILDS = "Connected to %s guilds"

    # Bot Cog Management
    BOT_COG_LOADED = "Loaded cog: %s"
    BOT_COG_LOAD_FAILED = "Failed to load cog %s: %s"
    BOT_COGS_LOADED_SUMMARY = "Cogs loaded: %d ok, %d failed"

    # Bot Command Sync
    BOT_SYNCED_GUILD = "Synced %s commands to guild %s"
    BOT_SYNC_GUILD_FAILED = "Failed to sync to guild %s: %s"
    BOT_SYNCED_GLOBAL = "Synced %s commands globally"
    BOT_SYNC_GLOBAL_FAILED = "Failed to sync commands globally: %s"

    # Bot Error Handling
    BOT_SLASH_COMMAND_ERROR = "Slash command error in '%s': %s"
    BOT_ERROR_MESSAGE_SEND_FAILED = "Failed to send error message to user"
    ANNOUNCE_FAILED = "Failed to announce in channel %s"


class DiscordUIMessages:
    """User-facing Discord messages and responses.

    These strings are shown directly to users in Discord interactions.
    Keep them concise, friendly, and include appropriate emoji.
    """

    # Action Messages
    ACTION_JOINED = "🔊 Joined **{channel_name}**."
    ACTION_QUEUED = "➕ Queued **{track_title}** (position {position})."
    ACTION_STARTING = "▶️ Starting **{track_title}**."
    ACTION_SKIPPED = "⏭️ Skipped: **{track_title}**"
    ACTION_STOPPED = "⏹️ Stopped playback and cleared the queue."
    ACTION_LEFT = "👋 Left the voice channel and cleared the queue."

    # Announcements
    ANNOUNCE_NOW_PLAYING = "🎵 Now playing: **{track_title}**{duration}"
    ANNOUNCE_TRACK_DROPPED = "⚠️ Couldn't play **{track_title}**, moving on."

    # Error Messages
    ERROR_OCCURRED = "An error occurred: {error}"
    ERROR_TRACK_NOT_FOUND = "Couldn't find a track for: {query}"
    ERROR_COULD_NOT_JOIN_VOICE = "I couldn't join your voice channel."
    ERROR_COMMAND_FAILED_SEE_LOGS = "❌ Command failed. See logs."

    # State Messages
    STATE_NOTHING_PLAYING = "Nothing is playing."
    STATE_NOTHING_TO_STOP = "Nothing to stop."
    STATE_QUEUE_EMPTY = "Queue is empty."
    STATE_NOT_CONNECTED_TO_VOICE = "I'm not in a voice channel."
    STATE_NEED_TO_BE_IN_VOICE = "You need to be in a voice channel first."
    STATE_SERVER_ONLY = "This command can only be used in a server."

    # Embed Titles
    EMBED_NOW_PLAYING = "🎵 Now Playing"
    EMBED_QUEUE = "📋 Queue ({total_tracks} tracks) · Page {page}/{total_pages}"
    EMBED_UP_NEXT = "Up next"
    EMBED_REQUESTED_BY = "Requested by"
    EMBED_DURATION = "Duration"
