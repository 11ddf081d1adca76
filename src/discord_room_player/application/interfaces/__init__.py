"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from discord_room_player.application.interfaces.audio_transport import (
    AudioTransport,
    StreamHandle,
    TransportEvent,
    TransportListener,
    VoiceConnection,
)
from discord_room_player.application.interfaces.track_resolver import TrackResolver

__all__ = [
    "AudioTransport",
    "StreamHandle",
    "TrackResolver",
    "TransportEvent",
    "TransportListener",
    "VoiceConnection",
]
