"""Base exception classes for domain-level errors."""

from __future__ import annotations

from discord_jukebox.domain.shared.messages import ErrorMessages


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state


# === Playback Errors ===


class PlaybackError(DomainError):
    """Base class for failures while joining voice, resolving or streaming."""


class NoVoiceChannelError(PlaybackError):
    """The invoking user is not in a voice channel."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or ErrorMessages.NO_VOICE_CHANNEL, code="NO_VOICE_CHANNEL")


class ResolveFailedError(PlaybackError):
    """The query could not be turned into a playable track."""

    def __init__(self, query: str, message: str | None = None) -> None:
        super().__init__(
            message or ErrorMessages.RESOLVE_FAILED.format(query=query), code="RESOLVE_FAILED"
        )
        self.query = query


class ConnectFailedError(PlaybackError):
    """Joining or moving to a voice channel failed or timed out."""

    def __init__(self, channel_id: int | None, message: str | None = None) -> None:
        super().__init__(
            message or ErrorMessages.CONNECT_FAILED.format(channel_id=channel_id),
            code="CONNECT_FAILED",
        )
        self.channel_id = channel_id


class StreamFailedError(PlaybackError):
    """An audio stream could not be opened, or broke while playing."""

    def __init__(self, subject: str, message: str | None = None) -> None:
        super().__init__(
            message or ErrorMessages.STREAM_FAILED.format(subject=subject), code="STREAM_FAILED"
        )
        self.subject = subject


class NotConnectedError(PlaybackError):
    """The bot holds no live voice connection in the guild."""

    def __init__(self, guild_id: int) -> None:
        super().__init__(
            ErrorMessages.NOT_CONNECTED.format(guild_id=guild_id), code="NOT_CONNECTED"
        )
        self.guild_id = guild_id
