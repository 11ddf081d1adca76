"""
Unit Tests for Domain Music Layer

Tests for:
- Value Objects: QueuePosition, PlaybackState
- Entities: Track, PlaybackQueue, RoomSession
- Duration formatting
"""

import random

import pytest
from pydantic import ValidationError

from discord_room_player.domain.music.entities import (
    PlaybackQueue,
    RoomSession,
    SourceMetadata,
    Track,
)
from discord_room_player.domain.music.value_objects import PlaybackState, QueuePosition
from discord_room_player.domain.shared.datetime_utils import format_duration
from discord_room_player.domain.shared.exceptions import InvalidOperationError, QueueFullError


def make_track(title: str, duration: int = 60) -> Track:
    return Track(title=title, playable_reference=f"ref:{title}", duration_seconds=duration)


def titles(queue: PlaybackQueue) -> list[str]:
    return [t.title for t in queue.tracks]


# =============================================================================
# QueuePosition Value Object Tests
# =============================================================================


class TestQueuePosition:
    """Unit tests for QueuePosition value object."""

    def test_negative_position_raises_error(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            QueuePosition(-1)

    def test_int_and_str(self):
        position = QueuePosition(2)
        assert int(position) == 2
        assert str(position) == "2"


# =============================================================================
# PlaybackState Value Object Tests
# =============================================================================


class TestPlaybackState:
    """Unit tests for the playback state transition graph."""

    @pytest.mark.parametrize(
        "source,target",
        [
            (PlaybackState.IDLE, PlaybackState.CONNECTING),
            (PlaybackState.CONNECTING, PlaybackState.LOADING),
            (PlaybackState.LOADING, PlaybackState.PLAYING),
            (PlaybackState.LOADING, PlaybackState.ADVANCING),
            (PlaybackState.PLAYING, PlaybackState.PAUSED),
            (PlaybackState.PAUSED, PlaybackState.PLAYING),
            (PlaybackState.PLAYING, PlaybackState.ADVANCING),
            (PlaybackState.ADVANCING, PlaybackState.LOADING),
            (PlaybackState.ADVANCING, PlaybackState.DRAINING),
            (PlaybackState.DRAINING, PlaybackState.LOADING),
        ],
    )
    def test_valid_transitions(self, source, target):
        assert source.can_transition_to(target) is True

    @pytest.mark.parametrize(
        "source,target",
        [
            (PlaybackState.IDLE, PlaybackState.PLAYING),
            (PlaybackState.PLAYING, PlaybackState.LOADING),
            (PlaybackState.DRAINING, PlaybackState.PLAYING),
            (PlaybackState.PAUSED, PlaybackState.LOADING),
            (PlaybackState.TERMINATED, PlaybackState.IDLE),
        ],
    )
    def test_invalid_transitions(self, source, target):
        assert source.can_transition_to(target) is False

    def test_every_live_state_can_terminate(self):
        for state in PlaybackState:
            if state is PlaybackState.TERMINATED:
                assert state.can_transition_to(PlaybackState.TERMINATED) is False
            else:
                assert state.can_transition_to(PlaybackState.TERMINATED) is True

    def test_state_flags(self):
        assert PlaybackState.PAUSED.is_active is True
        assert PlaybackState.LOADING.is_active is False
        assert PlaybackState.LOADING.is_busy is True
        assert PlaybackState.ADVANCING.is_busy is False
        assert PlaybackState.DRAINING.is_busy is False
        assert PlaybackState.PLAYING.is_playing is True
        assert PlaybackState.TERMINATED.is_terminal is True


# =============================================================================
# Track Entity Tests
# =============================================================================


class TestTrack:
    """Unit tests for the Track value object."""

    def test_create_track(self, sample_track):
        assert sample_track.title == "Test Track"
        assert sample_track.duration_formatted == "3:00"
        assert sample_track.display_title == "Test Track [3:00]"
        assert sample_track.is_live is False

    def test_live_track_has_no_duration_suffix(self):
        track = make_track("Radio", duration=0)
        assert track.is_live is True
        assert track.display_title == "Radio"

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            Track(title="", playable_reference="ref")

    def test_empty_reference_rejected(self):
        with pytest.raises(ValidationError):
            Track(title="Song", playable_reference="")

    def test_track_is_frozen(self, sample_track):
        with pytest.raises(ValidationError):
            sample_track.title = "Other"

    def test_with_requester_returns_copy(self, sample_track):
        copy = sample_track.with_requester("42")
        assert copy.requested_by == "42"
        assert sample_track.requested_by == "tester"
        assert copy.title == sample_track.title

    def test_source_metadata(self):
        track = Track(
            title="Song",
            playable_reference="https://youtube.com/watch?v=abc",
            source_metadata=SourceMetadata(catalog="youtube", item_id="abc"),
        )
        assert track.source_metadata.catalog == "youtube"


class TestFormatDuration:
    """Unit tests for duration formatting."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(None, "0:00"), (-5, "0:00"), (0, "0:00"), (65, "1:05"), (3725, "1:02:05")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


# =============================================================================
# PlaybackQueue Entity Tests
# =============================================================================


class TestPlaybackQueue:
    """Unit tests for queue ordering, loop and shuffle."""

    def test_enqueue_returns_positions(self):
        queue = PlaybackQueue()
        assert int(queue.enqueue(make_track("A"))) == 0
        assert int(queue.enqueue(make_track("B"))) == 1
        assert queue.head.title == "A"
        assert [t.title for t in queue.upcoming] == ["B"]
        assert len(queue) == 2

    def test_enqueue_full_raises(self):
        queue = PlaybackQueue(max_size=1)
        queue.enqueue(make_track("A"))

        with pytest.raises(QueueFullError) as exc_info:
            queue.enqueue(make_track("B"))

        assert exc_info.value.max_size == 1
        assert titles(queue) == ["A"]

    def test_consume_head_without_loop(self):
        queue = PlaybackQueue()
        queue.enqueue(make_track("A"))
        queue.enqueue(make_track("B"))

        assert queue.consume_head().title == "A"
        assert titles(queue) == ["B"]

    def test_consume_head_with_loop_reappends(self):
        queue = PlaybackQueue(loop=True)
        queue.enqueue(make_track("A"))
        queue.enqueue(make_track("B"))

        queue.consume_head()

        assert titles(queue) == ["B", "A"]

    def test_drop_head_ignores_loop(self):
        queue = PlaybackQueue(loop=True)
        queue.enqueue(make_track("A"))
        queue.enqueue(make_track("B"))

        assert queue.drop_head().title == "A"
        assert titles(queue) == ["B"]

    def test_consume_and_drop_on_empty_queue(self):
        queue = PlaybackQueue()
        assert queue.consume_head() is None
        assert queue.drop_head() is None
        assert not queue

    def test_clear_returns_count(self):
        queue = PlaybackQueue()
        for title in "ABC":
            queue.enqueue(make_track(title))

        assert queue.clear() == 3
        assert queue.head is None

    def test_toggle_loop(self):
        queue = PlaybackQueue()
        assert queue.toggle_loop() is True
        assert queue.toggle_loop() is False

    def test_shuffle_keeps_head_and_permutes_tail(self):
        queue = PlaybackQueue()
        for title in "ABCDEFGH":
            queue.enqueue(make_track(title))

        assert queue.toggle_shuffle(random.Random(7)) is True

        assert queue.head.title == "A"
        assert sorted(titles(queue)) == list("ABCDEFGH")

    def test_shuffle_off_keeps_order(self):
        queue = PlaybackQueue(shuffle=True)
        for title in "ABC":
            queue.enqueue(make_track(title))

        assert queue.toggle_shuffle() is False
        assert titles(queue) == ["A", "B", "C"]

    def test_shuffle_with_short_queue(self):
        queue = PlaybackQueue()
        queue.enqueue(make_track("A"))
        queue.enqueue(make_track("B"))

        queue.toggle_shuffle(random.Random(1))

        assert titles(queue) == ["A", "B"]


# =============================================================================
# RoomSession Aggregate Tests
# =============================================================================


class TestRoomSession:
    """Unit tests for the per-room aggregate."""

    @pytest.fixture
    def session(self):
        return RoomSession(room_id=1, channel_id=2)

    def test_defaults(self, session):
        assert session.state == PlaybackState.IDLE
        assert session.volume == 100
        assert session.current_track is None
        assert session.playing is False
        assert session.is_terminated is False

    def test_volume_clamped_on_create(self):
        session = RoomSession(room_id=1, channel_id=2, volume=500)
        assert session.volume == 150

    def test_set_volume_clamps(self, session):
        assert session.set_volume(9999) == 150
        assert session.set_volume(-5) == 0
        assert session.set_volume(80) == 80

    def test_custom_volume_bounds(self):
        session = RoomSession(room_id=1, channel_id=2, volume=50, min_volume=10, max_volume=60)
        assert session.set_volume(100) == 60
        assert session.set_volume(0) == 10

    def test_enqueue_records_played_titles(self, session):
        session.enqueue(make_track("Song Title"))
        assert session.played_titles == {"song title"}
        assert session.current_track.title == "Song Title"

    def test_transition_returns_previous_state(self, session):
        previous = session.transition_to(PlaybackState.CONNECTING)
        assert previous == PlaybackState.IDLE
        assert session.state == PlaybackState.CONNECTING

    def test_invalid_transition_raises(self, session):
        with pytest.raises(InvalidOperationError) as exc_info:
            session.transition_to(PlaybackState.PLAYING)

        assert exc_info.value.current_state == "idle"
        assert session.state == PlaybackState.IDLE

    def test_terminated_is_final(self, session):
        session.transition_to(PlaybackState.TERMINATED)

        assert session.is_terminated is True
        with pytest.raises(InvalidOperationError):
            session.transition_to(PlaybackState.IDLE)

    def test_touch_updates_last_activity(self, session):
        before = session.last_activity
        session.touch()
        assert session.last_activity >= before
