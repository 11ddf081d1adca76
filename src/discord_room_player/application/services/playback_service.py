"""Playback Application Service - drives one room's queue through its state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ...domain.music.entities import RoomSession, Track
from ...domain.music.value_objects import (
    PlaybackState,
    SessionDestroyReason,
    TrackFinishReason,
    TransportEventKind,
)
from ...domain.shared.events import (
    DomainEvent,
    EventBus,
    PlaybackStateChanged,
    QueueExhausted,
    SessionDestroyed,
    TrackEnqueued,
    TrackFailed,
    TrackStartedPlaying,
)
from ...domain.shared.exceptions import NoActiveSessionError, StreamOpenError
from ...domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ..interfaces.audio_transport import (
        AudioTransport,
        StreamHandle,
        TransportEvent,
        VoiceConnection,
    )

logger = logging.getLogger(__name__)

# Transport gain is the stored percentage divided by this.
VOLUME_SCALE = 100


@dataclass(frozen=True)
class EnqueueResult:
    track: Track
    position: int
    queue_length: int
    started_playback: bool


@dataclass(frozen=True)
class QueueSnapshot:
    """Read-only copy of a room's queue at one instant."""

    current: Track | None = None
    upcoming: list[Track] = field(default_factory=list)
    loop: bool = False
    shuffle: bool = False
    volume: int | None = None
    state: PlaybackState | None = None

    @property
    def total_length(self) -> int:
        return len(self.upcoming) + (1 if self.current is not None else 0)

    @property
    def total_duration_seconds(self) -> int:
        tracks = ([self.current] if self.current else []) + self.upcoming
        return sum(track.duration_seconds for track in tracks)

    @classmethod
    def empty(cls) -> QueueSnapshot:
        return cls()


class AutoLeaveTimer:
    """Single-shot timer whose expiry is identified by a token.

    Re-arming or cancelling invalidates the previous token, so an expiry
    that already started running can tell it has been superseded.
    """

    def __init__(self, delay: float, on_expire: Callable[[int], Awaitable[None]]) -> None:
        self._delay = delay
        self._on_expire = on_expire
        self._token = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, token: int) -> bool:
        return token == self._token

    def arm(self) -> int:
        self.cancel()
        token = self._token
        self._task = asyncio.create_task(self._run(token))
        return token

    def cancel(self) -> None:
        self._token += 1
        task, self._task = self._task, None
        # The expiry handler may tear the session down, which cancels this timer.
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _run(self, token: int) -> None:
        await asyncio.sleep(self._delay)
        await self._on_expire(token)


class RoomPlayback:
    """State machine owning one room's session, voice connection and stream.

    Every mutation happens while holding the room lock. Opening a stream is
    the only slow transport call made with the lock released; its result is
    applied only if the generation counter did not move in the meantime.
    Domain events raised while the lock is held are published after it is
    released.
    """

    def __init__(
        self,
        *,
        session: RoomSession,
        transport: AudioTransport,
        lock: asyncio.Lock,
        event_bus: EventBus,
        auto_leave_seconds: float,
        on_terminated: Callable[[RoomPlayback], None] | None = None,
    ) -> None:
        self.session = session
        self._transport = transport
        self._lock = lock
        self._event_bus = event_bus
        self._on_terminated = on_terminated

        self._connection: VoiceConnection | None = None
        self._stream: StreamHandle | None = None
        self._generation = 0
        self._outbox: list[DomainEvent] = []
        self._timer = AutoLeaveTimer(auto_leave_seconds, self._on_auto_leave)

    # ── Read-only helpers ───────────────────────────────────────────

    @property
    def room_id(self) -> int:
        return self.session.room_id

    @property
    def state(self) -> PlaybackState:
        return self.session.state

    @property
    def is_terminated(self) -> bool:
        return self.session.is_terminated

    @property
    def active_stream(self) -> StreamHandle | None:
        return self._stream

    @property
    def auto_leave_armed(self) -> bool:
        return self._timer.armed

    def snapshot(self) -> QueueSnapshot:
        queue = self.session.queue
        return QueueSnapshot(
            current=queue.head,
            upcoming=queue.upcoming,
            loop=queue.loop,
            shuffle=queue.shuffle,
            volume=self.session.volume,
            state=self.session.state,
        )

    # ── Commands ────────────────────────────────────────────────────

    async def enqueue(self, track: Track) -> EnqueueResult | None:
        """Append a track, starting playback when the room is not busy.

        Returns None when the session ended before the room lock was
        acquired; the caller should start a fresh session.
        """
        generation: int | None = None
        async with self._transition_scope():
            if self.is_terminated:
                return None

            position = self.session.enqueue(track)
            result = EnqueueResult(
                track=track,
                position=int(position),
                queue_length=len(self.session.queue),
                started_playback=False,
            )
            self._outbox.append(
                TrackEnqueued(
                    room_id=self.room_id,
                    track_title=track.title,
                    requested_by=track.requested_by,
                    queue_position=int(position),
                )
            )
            logger.info(LogTemplates.QUEUE_TRACK_ADDED, track.title, int(position), self.room_id)

            if self.state == PlaybackState.IDLE:
                if not await self._connect():
                    return result
                self._transition(PlaybackState.LOADING)
                generation = self._bump_generation()
            elif self.state == PlaybackState.DRAINING:
                self._transition(PlaybackState.LOADING)
                generation = self._bump_generation()

        if generation is None:
            return result

        await self._load(generation)
        return EnqueueResult(
            track=result.track,
            position=result.position,
            queue_length=result.queue_length,
            started_playback=True,
        )

    async def skip(self) -> Track:
        """Force-stop the head of the queue and advance past it."""
        generation: int | None = None
        async with self._transition_scope():
            skipped = self.session.queue.head
            if skipped is None or not self.state.is_busy:
                raise NoActiveSessionError(self.room_id)

            self._bump_generation()
            await self._stop_active_stream()
            self.session.queue.drop_head()
            logger.info(LogTemplates.PLAYBACK_SKIPPED, skipped.title, self.room_id)

            self._transition(PlaybackState.ADVANCING)
            generation = self._advance(skipped)

        if generation is not None:
            await self._load(generation)
        return skipped

    async def pause(self) -> bool:
        async with self._transition_scope():
            if not self.session.playing or self._stream is None:
                return False
            await self._require_connection().pause()
            self._transition(PlaybackState.PAUSED)
            logger.info(LogTemplates.PLAYBACK_PAUSED, self.room_id)
            return True

    async def resume(self) -> bool:
        async with self._transition_scope():
            if self.state != PlaybackState.PAUSED or self._stream is None:
                return False
            await self._require_connection().resume()
            self._transition(PlaybackState.PLAYING)
            logger.info(LogTemplates.PLAYBACK_RESUMED, self.room_id)
            return True

    async def stop(self) -> bool:
        async with self._transition_scope():
            if self.is_terminated:
                return False
            await self._terminate(SessionDestroyReason.STOPPED)
            logger.info(LogTemplates.PLAYBACK_STOPPED, self.room_id)
            return True

    async def set_volume(self, value: int) -> int:
        async with self._transition_scope():
            stored = self.session.set_volume(value)
            if self.state.is_active and self._connection is not None:
                await self._connection.set_volume(stored / VOLUME_SCALE)
            logger.info(LogTemplates.PLAYBACK_VOLUME_SET, stored, self.room_id)
            return stored

    async def toggle_loop(self) -> bool:
        async with self._transition_scope():
            enabled = self.session.queue.toggle_loop()
            self.session.touch()
            logger.info(LogTemplates.QUEUE_LOOP_TOGGLED, "on" if enabled else "off", self.room_id)
            return enabled

    async def toggle_shuffle(self) -> bool:
        async with self._transition_scope():
            enabled = self.session.queue.toggle_shuffle()
            self.session.touch()
            if enabled:
                logger.info(
                    LogTemplates.QUEUE_SHUFFLED, len(self.session.queue.upcoming), self.room_id
                )
            return enabled

    async def handle_occupancy_change(self, listener_count: int) -> bool:
        """Tear the session down when nobody is left listening."""
        if listener_count > 0:
            return False
        async with self._transition_scope():
            if self.is_terminated:
                return False
            logger.info(LogTemplates.SESSION_ROOM_EMPTY, self.room_id)
            await self._terminate(SessionDestroyReason.EMPTY_CHANNEL)
            return True

    async def terminate(self, reason: SessionDestroyReason) -> bool:
        async with self._transition_scope():
            if self.is_terminated:
                return False
            await self._terminate(reason)
            return True

    # ── Transport callbacks ─────────────────────────────────────────

    async def on_transport_event(self, event: TransportEvent) -> None:
        """Listener handed to the transport when connecting."""
        generation: int | None = None
        async with self._transition_scope():
            if self.is_terminated:
                return

            if event.kind == TransportEventKind.DISCONNECTED:
                logger.info(LogTemplates.VOICE_DISCONNECTED, self.room_id)
                await self._terminate(SessionDestroyReason.DISCONNECT)
                return

            if self._stream is None or event.stream_id != self._stream.stream_id:
                logger.debug(
                    LogTemplates.PLAYBACK_STALE_EVENT,
                    event.kind.value,
                    event.stream_id,
                    self.room_id,
                    self._stream.stream_id if self._stream else None,
                )
                return

            track = self.session.queue.head
            self._stream = None
            if event.kind == TransportEventKind.ERROR:
                self.session.queue.drop_head()
                self._report_failure(track, TrackFinishReason.ERROR, event.error)
            else:
                self.session.queue.consume_head()

            self._transition(PlaybackState.ADVANCING)
            generation = self._advance(track)

        if generation is not None:
            await self._load(generation)

    async def _on_auto_leave(self, token: int) -> None:
        async with self._transition_scope():
            if (
                not self._timer.is_current(token)
                or self.state != PlaybackState.DRAINING
                or self.session.queue
            ):
                return
            logger.info(LogTemplates.SESSION_AUTO_LEAVE, self.room_id)
            await self._terminate(SessionDestroyReason.INACTIVITY)

    # ── Loading ─────────────────────────────────────────────────────

    async def _load(self, generation: int | None) -> None:
        """Open and start the head of the queue, skipping tracks that fail.

        Each failed attempt drops the head, so the loop ends after at most
        one attempt per queued track.
        """
        while generation is not None:
            async with self._transition_scope():
                if not self._is_current(generation):
                    return
                track = self.session.queue.head
                connection = self._require_connection()

            if track is None:
                return

            try:
                stream = await connection.open_stream(track.playable_reference)
            except StreamOpenError as exc:
                generation = await self._fail_loading(generation, track, exc)
                continue
            except Exception as exc:
                logger.exception(
                    LogTemplates.PLAYBACK_OPEN_FAILED, track.title, self.room_id, repr(exc)
                )
                generation = await self._fail_loading(generation, track, exc)
                continue

            generation = await self._start_stream(generation, track, connection, stream)

    async def _fail_loading(
        self, generation: int, track: Track, error: BaseException
    ) -> int | None:
        async with self._transition_scope():
            if not self._is_current(generation):
                return None
            self.session.queue.drop_head()
            self._report_failure(track, TrackFinishReason.OPEN_FAILED, error)
            self._transition(PlaybackState.ADVANCING)
            return self._advance(track)

    async def _start_stream(
        self,
        generation: int,
        track: Track,
        connection: VoiceConnection,
        stream: StreamHandle,
    ) -> int | None:
        next_generation: int | None = None
        async with self._transition_scope():
            if not self._is_current(generation):
                logger.debug(LogTemplates.PLAYBACK_STALE_STREAM, track.title, self.room_id)
            else:
                try:
                    await connection.set_volume(self.session.volume / VOLUME_SCALE)
                    await connection.play(stream)
                except Exception as exc:
                    self.session.queue.drop_head()
                    self._report_failure(track, TrackFinishReason.ERROR, exc)
                    self._transition(PlaybackState.ADVANCING)
                    next_generation = self._advance(track)
                else:
                    self._stream = stream
                    self._transition(PlaybackState.PLAYING)
                    self._outbox.append(
                        TrackStartedPlaying(
                            room_id=self.room_id,
                            track_title=track.title,
                            playable_reference=track.playable_reference,
                            duration_seconds=track.duration_seconds,
                        )
                    )
                    logger.info(LogTemplates.PLAYBACK_STARTED, track.display_title, self.room_id)
                    return None

        await self._close_stream(connection, stream)
        return next_generation

    # ── Internals (room lock held) ──────────────────────────────────

    @asynccontextmanager
    async def _transition_scope(self) -> AsyncIterator[None]:
        """Hold the room lock, then publish the events raised while holding it."""
        events: list[DomainEvent] = []
        try:
            async with self._lock:
                try:
                    yield
                finally:
                    events, self._outbox = self._outbox, []
        finally:
            if events:
                await self._event_bus.publish_all(events)

    def _bump_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.state == PlaybackState.LOADING

    def _require_connection(self) -> VoiceConnection:
        if self._connection is None:
            raise NoActiveSessionError(self.room_id)
        return self._connection

    def _transition(self, new_state: PlaybackState) -> None:
        previous = self.session.transition_to(new_state)
        if previous == PlaybackState.DRAINING:
            self._timer.cancel()
        logger.debug(
            LogTemplates.PLAYBACK_STATE_CHANGED, self.room_id, previous.value, new_state.value
        )
        self._outbox.append(
            PlaybackStateChanged(
                room_id=self.room_id,
                previous_state=previous.value,
                new_state=new_state.value,
            )
        )

    def _advance(self, last_track: Track | None) -> int | None:
        """Leave ADVANCING: load the new head, or drain when the queue is empty."""
        if self.session.queue:
            self._transition(PlaybackState.LOADING)
            return self._bump_generation()

        self._transition(PlaybackState.DRAINING)
        self._timer.arm()
        self._outbox.append(
            QueueExhausted(
                room_id=self.room_id,
                last_track_title=last_track.title if last_track else "",
            )
        )
        logger.info(LogTemplates.PLAYBACK_QUEUE_EXHAUSTED, self.room_id, self._timer.delay)
        return None

    def _report_failure(
        self, track: Track | None, reason: TrackFinishReason, error: BaseException | None
    ) -> None:
        title = track.title if track else ""
        if reason == TrackFinishReason.OPEN_FAILED:
            logger.warning(LogTemplates.PLAYBACK_OPEN_FAILED, title, self.room_id, error)
        else:
            logger.warning(LogTemplates.PLAYBACK_TRANSPORT_ERROR, title, self.room_id, error)
        self._outbox.append(
            TrackFailed(
                room_id=self.room_id,
                track_title=title,
                reason=reason.value,
                error=str(error) if error else "",
            )
        )

    async def _connect(self) -> bool:
        """IDLE -> CONNECTING -> joined. Returns False if the session ended instead."""
        self._transition(PlaybackState.CONNECTING)
        try:
            self._connection = await self._transport.connect(
                self.room_id, self.session.channel_id, self.on_transport_event
            )
        except Exception:
            await self._terminate(SessionDestroyReason.CONNECT_FAILED)
            raise

        if self._connection.listener_count() == 0:
            logger.info(LogTemplates.SESSION_ROOM_EMPTY, self.room_id)
            await self._terminate(SessionDestroyReason.EMPTY_CHANNEL)
            return False
        return True

    async def _stop_active_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None and self._connection is not None:
            await self._connection.stop()

    async def _close_stream(self, connection: VoiceConnection, stream: StreamHandle) -> None:
        try:
            await connection.close_stream(stream)
        except Exception:
            logger.exception(
                LogTemplates.PLAYBACK_TEARDOWN_STEP_FAILED, "close_stream", self.room_id
            )

    async def _terminate(self, reason: SessionDestroyReason) -> None:
        """Move to TERMINATED and release every transport resource."""
        self._bump_generation()
        self._timer.cancel()
        self._transition(PlaybackState.TERMINATED)
        self.session.queue.clear()

        connection, self._connection = self._connection, None
        stream, self._stream = self._stream, None
        if connection is not None:
            if stream is not None:
                try:
                    await connection.stop()
                except Exception:
                    logger.exception(
                        LogTemplates.PLAYBACK_TEARDOWN_STEP_FAILED, "stop", self.room_id
                    )
            try:
                await connection.disconnect()
            except Exception:
                logger.exception(
                    LogTemplates.PLAYBACK_TEARDOWN_STEP_FAILED, "disconnect", self.room_id
                )

        self._outbox.append(SessionDestroyed(room_id=self.room_id, reason=reason.value))
        logger.info(LogTemplates.SESSION_DESTROYED, self.room_id, reason.value)
        if self._on_terminated is not None:
            self._on_terminated(self)
