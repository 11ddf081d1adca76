"""Port interface for voice connections and audio streaming.

A transport joins a room's voice endpoint and hands back a
:class:`VoiceConnection`. The connection opens one stream per track and
reports what happens to it through a listener callback. Every event
carries the id of the stream it concerns so the playback state machine
can ignore events from streams it has already replaced.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from discord_room_player.domain.music.value_objects import TransportEventKind
from discord_room_player.domain.shared.types import ChannelIdField, DiscordSnowflake

_stream_ids = itertools.count(1)


def next_stream_id() -> int:
    """Process-wide unique stream id."""
    return next(_stream_ids)


@dataclass(eq=False)
class StreamHandle:
    """An opened but not necessarily started audio stream."""

    reference: str
    source: Any = None
    stream_id: int = field(default_factory=next_stream_id)


@dataclass(frozen=True)
class TransportEvent:
    kind: TransportEventKind
    stream_id: int | None = None
    error: BaseException | None = None


TransportListener = Callable[[TransportEvent], Awaitable[None]]


class VoiceConnection(ABC):
    """A live voice connection in one room."""

    @abstractmethod
    async def open_stream(self, reference: str) -> StreamHandle:
        """Prepare a stream for *reference*; raises StreamOpenError on failure."""
        ...

    @abstractmethod
    async def play(self, stream: StreamHandle) -> None:
        """Start playing an opened stream."""
        ...

    @abstractmethod
    async def pause(self) -> None:
        ...

    @abstractmethod
    async def resume(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Force-stop the playing stream without emitting a meaningful IDLE."""
        ...

    @abstractmethod
    async def set_volume(self, volume: float) -> None:
        """Apply a linear gain (1.0 is unity) to the playing stream."""
        ...

    @abstractmethod
    async def close_stream(self, stream: StreamHandle) -> None:
        """Release an opened stream that will never be played."""
        ...

    @abstractmethod
    def listener_count(self) -> int:
        """Number of listeners in the channel, excluding the bot itself."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...


class AudioTransport(ABC):
    """Interface for joining a room's voice channel."""

    @abstractmethod
    async def connect(
        self,
        room_id: DiscordSnowflake,
        channel_id: ChannelIdField,
        listener: TransportListener,
    ) -> VoiceConnection:
        """Join *channel_id*; raises PermissionDeniedError when it cannot be joined."""
        ...
