"""Utility functions for formatting Discord messages."""

from __future__ import annotations

from functools import cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from discord_jukebox.domain.music.entities import Track

TITLE_MAX_LENGTH = 80


@cache
def format_duration(seconds: int | float | None) -> str:
    """``m:ss`` or ``h:mm:ss``; a dash when the duration is unknown."""
    if seconds is None:
        return "–"

    total_seconds = max(0, int(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def duration_suffix(seconds: int | None) -> str:
    """`` (3:25)`` for announcements, empty when unknown."""
    return f" ({format_duration(seconds)})" if seconds is not None else ""


@cache
def truncate(text: str, max_length: int = 90) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


def format_requester(track: Track) -> str:
    if track.requested_by_id:
        return f"<@{track.requested_by_id}>"
    if track.requested_by_name:
        return track.requested_by_name
    return "Unknown"


def format_track_link(track: Track) -> str:
    return f"[{truncate(track.title, TITLE_MAX_LENGTH)}]({track.source_ref})"
