"""Core domain entities for the music bounded context."""

from __future__ import annotations

import random

from pydantic import BaseModel, ConfigDict, Field

from discord_room_player.domain.music.value_objects import PlaybackState, QueuePosition
from discord_room_player.domain.shared.datetime_utils import format_duration, utcnow
from discord_room_player.domain.shared.exceptions import InvalidOperationError, QueueFullError
from discord_room_player.domain.shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    HttpUrlStr,
    NonEmptyStr,
    PositiveInt,
    TrackTitleStr,
    UtcDatetimeField,
)

DEFAULT_MAX_QUEUE_SIZE = 100


class SourceMetadata(BaseModel):
    """Catalog-specific identity of a track, used for "more like this" lookups."""

    model_config = ConfigDict(frozen=True, strict=True)

    catalog: NonEmptyStr
    item_id: NonEmptyStr


class Track(BaseModel):
    """Immutable value object representing a playable track."""

    model_config = ConfigDict(frozen=True, strict=True)

    title: TrackTitleStr
    playable_reference: NonEmptyStr
    duration_seconds: DurationSeconds = 0
    requested_by: str = ""

    artist: NonEmptyStr | None = None
    thumbnail_url: HttpUrlStr | None = None
    source_metadata: SourceMetadata | None = None

    @property
    def duration_formatted(self) -> str:
        """Format duration as M:SS or H:MM:SS."""
        return format_duration(self.duration_seconds)

    @property
    def display_title(self) -> str:
        """Get display title with duration if available."""
        if not self.is_live:
            return f"{self.title} [{self.duration_formatted}]"
        return self.title

    @property
    def is_live(self) -> bool:
        return self.duration_seconds == 0

    def with_requester(self, requested_by: str) -> Track:
        """Return a copy of this track attributed to another requester."""
        return self.model_copy(update={"requested_by": requested_by})


class PlaybackQueue(BaseModel):
    """Ordered tracks for one room plus its loop and shuffle flags.

    Index 0 is the track currently playing or about to play. Tracks only
    leave the queue through the head.
    """

    model_config = ConfigDict(strict=True)

    tracks: list[Track] = Field(default_factory=list)
    loop: bool = False
    shuffle: bool = False
    max_size: PositiveInt = DEFAULT_MAX_QUEUE_SIZE

    def __len__(self) -> int:
        return len(self.tracks)

    def __bool__(self) -> bool:
        return bool(self.tracks)

    @property
    def head(self) -> Track | None:
        return self.tracks[0] if self.tracks else None

    @property
    def upcoming(self) -> list[Track]:
        return list(self.tracks[1:])

    @property
    def is_full(self) -> bool:
        return len(self.tracks) >= self.max_size

    def enqueue(self, track: Track) -> QueuePosition:
        """Append a track and return its position."""
        if self.is_full:
            raise QueueFullError(self.max_size)

        position = QueuePosition(len(self.tracks))
        self.tracks.append(track)
        return position

    def consume_head(self) -> Track | None:
        """Remove the head after it finished naturally; loop re-appends it."""
        if not self.tracks:
            return None

        track = self.tracks.pop(0)
        if self.loop:
            self.tracks.append(track)
        return track

    def drop_head(self) -> Track | None:
        """Remove the head without re-appending it, regardless of loop."""
        if not self.tracks:
            return None
        return self.tracks.pop(0)

    def clear(self) -> int:
        """Remove every track and return the count removed."""
        count = len(self.tracks)
        self.tracks.clear()
        return count

    def toggle_loop(self) -> bool:
        self.loop = not self.loop
        return self.loop

    def toggle_shuffle(self, rng: random.Random | None = None) -> bool:
        """Flip the shuffle flag; turning it on reorders the tail once."""
        self.shuffle = not self.shuffle
        if self.shuffle:
            self._shuffle_tail(rng or random.Random())
        return self.shuffle

    def _shuffle_tail(self, rng: random.Random) -> None:
        # Fisher-Yates over indices 1..n-1; the head never moves.
        for i in range(len(self.tracks) - 1, 1, -1):
            j = rng.randint(1, i)
            self.tracks[i], self.tracks[j] = self.tracks[j], self.tracks[i]


class RoomSession(BaseModel):
    """Aggregate root holding the queue and playback state of one room."""

    model_config = ConfigDict(strict=True)

    room_id: DiscordSnowflake
    channel_id: DiscordSnowflake
    queue: PlaybackQueue = Field(default_factory=PlaybackQueue)
    state: PlaybackState = PlaybackState.IDLE
    volume: int = 100
    min_volume: int = 0
    max_volume: int = 150
    played_titles: set[str] = Field(default_factory=set)
    created_at: UtcDatetimeField = Field(default_factory=utcnow)
    last_activity: UtcDatetimeField = Field(default_factory=utcnow)

    def model_post_init(self, __context: object) -> None:
        self.volume = self.clamp_volume(self.volume)

    @property
    def playing(self) -> bool:
        return self.state.is_playing

    @property
    def current_track(self) -> Track | None:
        return self.queue.head

    @property
    def is_terminated(self) -> bool:
        return self.state.is_terminal

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = utcnow()

    def clamp_volume(self, value: int) -> int:
        return max(self.min_volume, min(self.max_volume, value))

    def set_volume(self, value: int) -> int:
        """Store the volume clamped into the configured range and return it."""
        self.volume = self.clamp_volume(value)
        self.touch()
        return self.volume

    def enqueue(self, track: Track) -> QueuePosition:
        position = self.queue.enqueue(track)
        self.played_titles.add(track.title.lower())
        self.touch()
        return position

    def transition_to(self, new_state: PlaybackState) -> PlaybackState:
        """Transition to a new playback state and return the previous one."""
        if not self.state.can_transition_to(new_state):
            raise InvalidOperationError(
                operation=f"transition to {new_state.value}",
                current_state=self.state.value,
                message=f"Cannot transition from {self.state.value} to {new_state.value}",
            )

        previous = self.state
        self.state = new_state
        self.touch()
        return previous
