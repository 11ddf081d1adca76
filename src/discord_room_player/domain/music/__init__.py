"""
Music Bounded Context

Domain logic for tracks, per-room queues and playback state.
"""

from discord_room_player.domain.music.entities import (
    PlaybackQueue,
    RoomSession,
    SourceMetadata,
    Track,
)
from discord_room_player.domain.music.value_objects import (
    PlaybackState,
    QueuePosition,
    SessionDestroyReason,
    TrackFinishReason,
    TransportEventKind,
)

__all__ = [
    # Entities
    "Track",
    "SourceMetadata",
    "PlaybackQueue",
    "RoomSession",
    # Value Objects
    "QueuePosition",
    "PlaybackState",
    "SessionDestroyReason",
    "TrackFinishReason",
    "TransportEventKind",
]
