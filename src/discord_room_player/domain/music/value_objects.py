"""Immutable value objects for the music bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from discord_room_player.domain.shared.messages import ErrorMessages


@dataclass(frozen=True)
class QueuePosition:
    """Value object for queue positioning."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(ErrorMessages.INVALID_QUEUE_POSITION)

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value


class PlaybackState(Enum):
    """Playback state of one room with enforced transitions.

    State transitions:
    - IDLE -> CONNECTING (first enqueue)
    - CONNECTING -> LOADING (connected) | DRAINING (nothing left to load)
    - LOADING -> PLAYING (stream ready) | ADVANCING (open failed)
    - PLAYING <-> PAUSED
    - PLAYING | PAUSED -> ADVANCING (track ended, skipped or errored)
    - ADVANCING -> LOADING (queue non-empty) | DRAINING (queue empty)
    - DRAINING -> LOADING (enqueue)
    - Any non-terminated -> TERMINATED (stop, timeout, empty room, disconnect)
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ADVANCING = "advancing"
    DRAINING = "draining"
    TERMINATED = "terminated"

    def can_transition_to(self, target: PlaybackState) -> bool:
        """Check if transition to target state is valid."""
        valid_transitions = {
            PlaybackState.IDLE: {PlaybackState.CONNECTING, PlaybackState.TERMINATED},
            PlaybackState.CONNECTING: {
                PlaybackState.LOADING,
                PlaybackState.DRAINING,
                PlaybackState.TERMINATED,
            },
            PlaybackState.LOADING: {
                PlaybackState.PLAYING,
                PlaybackState.ADVANCING,
                PlaybackState.TERMINATED,
            },
            PlaybackState.PLAYING: {
                PlaybackState.PAUSED,
                PlaybackState.ADVANCING,
                PlaybackState.TERMINATED,
            },
            PlaybackState.PAUSED: {
                PlaybackState.PLAYING,
                PlaybackState.ADVANCING,
                PlaybackState.TERMINATED,
            },
            PlaybackState.ADVANCING: {
                PlaybackState.LOADING,
                PlaybackState.DRAINING,
                PlaybackState.TERMINATED,
            },
            PlaybackState.DRAINING: {PlaybackState.LOADING, PlaybackState.TERMINATED},
            PlaybackState.TERMINATED: set(),
        }
        return target in valid_transitions.get(self, set())

    @property
    def is_active(self) -> bool:
        """A stream is attached to the room."""
        return self in {PlaybackState.PLAYING, PlaybackState.PAUSED}

    @property
    def is_playing(self) -> bool:
        return self == PlaybackState.PLAYING

    @property
    def is_busy(self) -> bool:
        """The head of the queue is being played or prepared."""
        return self in {
            PlaybackState.LOADING,
            PlaybackState.PLAYING,
            PlaybackState.PAUSED,
        }

    @property
    def is_terminal(self) -> bool:
        return self == PlaybackState.TERMINATED


class TrackFinishReason(Enum):
    """Reasons a track can stop being the head of the queue."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    OPEN_FAILED = "open_failed"
    ERROR = "error"


class SessionDestroyReason(Enum):
    """Reasons a session can be destroyed."""

    STOPPED = "stopped"
    INACTIVITY = "inactivity"
    EMPTY_CHANNEL = "empty_channel"
    DISCONNECT = "disconnect"
    CONNECT_FAILED = "connect_failed"
    SHUTDOWN = "shutdown"


class TransportEventKind(Enum):
    """Asynchronous notifications emitted by an audio transport."""

    IDLE = "idle"
    ERROR = "error"
    DISCONNECTED = "disconnected"
