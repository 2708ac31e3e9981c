"""Events raised by the queue manager and playback driver, and the in-process bus that delivers them."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from discord_jukebox.domain.music.value_objects import TrackFinishReason
from discord_jukebox.domain.shared.datetime_utils import utcnow
from discord_jukebox.domain.shared.messages import LogTemplates
from discord_jukebox.domain.shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    NonEmptyStr,
    NonNegativeInt,
    UtcDatetimeField,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="DomainEvent")
EventHandler = Callable[[T], Awaitable[None]]


class DomainEvent(BaseModel):
    """Immutable record of something that happened to a guild session."""

    model_config = ConfigDict(frozen=True)

    event_id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)


# === Music Domain Events ===


class TrackAddedToQueue(DomainEvent):
    guild_id: DiscordSnowflake
    track_title: str = ""
    requested_by_id: DiscordSnowflake | None = None
    queue_position: NonNegativeInt = 0


class TrackStartedPlaying(DomainEvent):
    guild_id: DiscordSnowflake
    track_title: str = ""
    track_url: str = ""
    duration_seconds: DurationSeconds | None = None
    requested_by_name: str | None = None


class TrackFinishedPlaying(DomainEvent):
    guild_id: DiscordSnowflake
    track_title: str = ""
    reason: TrackFinishReason = TrackFinishReason.COMPLETED


class TrackDropped(DomainEvent):
    """A track was discarded after exhausting its playback attempts."""

    guild_id: DiscordSnowflake
    track_title: str = ""
    track_url: str = ""
    attempts: NonNegativeInt = 0
    reason: str = ""


class QueueExhausted(DomainEvent):
    guild_id: DiscordSnowflake


class PlaybackStopped(DomainEvent):
    guild_id: DiscordSnowflake
    cleared_count: NonNegativeInt = 0
    session_closed: bool = False


# === Event Bus ===


class EventBus:
    """Process-local pub/sub keyed on the exact event class.

    A publish waits for every subscriber. A subscriber that raises is logged
    and the rest still run.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type[DomainEvent], list[EventHandler[Any]]] = defaultdict(list)

    def subscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        self._subscribers[event_type].append(handler)
        logger.debug(LogTemplates.EVENT_SUBSCRIBED, event_type.__name__)

    def unsubscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        subscribers = self._subscribers.get(event_type)
        if subscribers and handler in subscribers:
            subscribers.remove(handler)
            logger.debug(LogTemplates.EVENT_UNSUBSCRIBED, event_type.__name__)

    async def publish(self, event: DomainEvent) -> None:
        subscribers = tuple(self._subscribers.get(type(event), ()))
        if not subscribers:
            return

        async with asyncio.TaskGroup() as tg:
            for handler in subscribers:
                tg.create_task(self._deliver(handler, event))

    @staticmethod
    async def _deliver(handler: EventHandler[Any], event: DomainEvent) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(LogTemplates.EVENT_HANDLER_FAILED, type(event).__name__)

    def clear(self) -> None:
        self._subscribers.clear()


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop every subscription and start over with a fresh bus."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
