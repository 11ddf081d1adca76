"""Session Registry - the single entry point for commands targeting a room."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from ...domain.music.entities import PlaybackQueue, RoomSession, Track
from ...domain.music.value_objects import PlaybackState, SessionDestroyReason
from ...domain.shared.events import EventBus, SessionCreated, get_event_bus
from ...domain.shared.exceptions import (
    NoActiveSessionError,
    PermissionDeniedError,
    TrackNotFoundError,
)
from ...domain.shared.messages import LogTemplates
from ...domain.shared.types import DiscordSnowflake
from .playback_service import EnqueueResult, QueueSnapshot, RoomPlayback

if TYPE_CHECKING:
    from ...config.settings import PlayerSettings
    from ..interfaces.audio_transport import AudioTransport
    from ..interfaces.track_resolver import TrackResolver

logger = logging.getLogger(__name__)

__all__ = ["EnqueueResult", "QueueSnapshot", "SessionRegistry"]


class SessionRegistry:
    """Owns room id -> playback and routes every command through the room lock.

    Sessions are created lazily by the first enqueue and removed as soon as
    their state machine terminates. The per-room lock outlives individual
    sessions so a late callback from a finished session still serializes
    against its successor.
    """

    def __init__(
        self,
        *,
        resolver: TrackResolver,
        transport: AudioTransport,
        settings: PlayerSettings,
        event_bus: EventBus | None = None,
    ) -> None:
        self._resolver = resolver
        self._transport = transport
        self._settings = settings
        self._event_bus = event_bus or get_event_bus()
        self._playbacks: dict[DiscordSnowflake, RoomPlayback] = {}
        self._locks: defaultdict[DiscordSnowflake, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ── Commands ────────────────────────────────────────────────────

    async def enqueue(
        self,
        room_id: DiscordSnowflake,
        requester_channel_id: DiscordSnowflake | None,
        query: str,
        requester_id: DiscordSnowflake | str,
    ) -> EnqueueResult:
        """Resolve *query* and append it to the room's queue.

        Raises:
            PermissionDeniedError: The requester is not in a voice channel,
                or the transport cannot join it.
            TrackNotFoundError: The resolver found nothing.
            QueueFullError: The queue already holds the maximum number of tracks.
        """
        if requester_channel_id is None:
            raise PermissionDeniedError()

        track = await self._resolver.resolve(query)
        if track is None:
            raise TrackNotFoundError(query)
        track = track.with_requester(str(requester_id))

        while True:
            playback = await self._get_or_create(room_id, requester_channel_id)
            result = await playback.enqueue(track)
            if result is not None:
                return result
            # The session ended while this call waited for the room lock.

    async def skip(self, room_id: DiscordSnowflake) -> Track:
        playback = self._playbacks.get(room_id)
        if playback is None:
            raise NoActiveSessionError(room_id)
        return await playback.skip()

    async def pause(self, room_id: DiscordSnowflake) -> bool:
        playback = self._playbacks.get(room_id)
        return await playback.pause() if playback else False

    async def resume(self, room_id: DiscordSnowflake) -> bool:
        playback = self._playbacks.get(room_id)
        return await playback.resume() if playback else False

    async def stop(self, room_id: DiscordSnowflake) -> bool:
        """Clear the queue, leave the channel and delete the session."""
        playback = self._playbacks.get(room_id)
        return await playback.stop() if playback else False

    async def set_volume(self, room_id: DiscordSnowflake, value: int) -> int | None:
        playback = self._playbacks.get(room_id)
        return await playback.set_volume(value) if playback else None

    async def toggle_loop(self, room_id: DiscordSnowflake) -> bool:
        playback = self._playbacks.get(room_id)
        return await playback.toggle_loop() if playback else False

    async def toggle_shuffle(self, room_id: DiscordSnowflake) -> bool:
        playback = self._playbacks.get(room_id)
        return await playback.toggle_shuffle() if playback else False

    async def handle_occupancy_change(
        self, room_id: DiscordSnowflake, listener_count: int
    ) -> bool:
        """Apply a listener-count update; zero listeners tears the session down."""
        playback = self._playbacks.get(room_id)
        if playback is None:
            return False
        return await playback.handle_occupancy_change(listener_count)

    async def shutdown(self) -> None:
        """Terminate every live session."""
        playbacks = list(self._playbacks.values())
        if playbacks:
            logger.info(LogTemplates.SESSIONS_SHUTDOWN, len(playbacks))
        for playback in playbacks:
            await playback.terminate(SessionDestroyReason.SHUTDOWN)
        self._playbacks.clear()

    # ── Queries ─────────────────────────────────────────────────────

    def get_queue_snapshot(self, room_id: DiscordSnowflake) -> QueueSnapshot:
        playback = self._playbacks.get(room_id)
        return playback.snapshot() if playback else QueueSnapshot.empty()

    def get_current_track(self, room_id: DiscordSnowflake) -> Track | None:
        playback = self._playbacks.get(room_id)
        return playback.session.current_track if playback else None

    def get_state(self, room_id: DiscordSnowflake) -> PlaybackState | None:
        playback = self._playbacks.get(room_id)
        return playback.state if playback else None

    def get_session(self, room_id: DiscordSnowflake) -> RoomSession | None:
        playback = self._playbacks.get(room_id)
        return playback.session if playback else None

    def has_session(self, room_id: DiscordSnowflake) -> bool:
        return room_id in self._playbacks

    def active_room_ids(self) -> list[DiscordSnowflake]:
        return list(self._playbacks)

    # ── Internals ───────────────────────────────────────────────────

    async def _get_or_create(
        self, room_id: DiscordSnowflake, channel_id: DiscordSnowflake
    ) -> RoomPlayback:
        playback = self._playbacks.get(room_id)
        if playback is not None and not playback.is_terminated:
            return playback

        session = RoomSession(
            room_id=room_id,
            channel_id=channel_id,
            queue=PlaybackQueue(max_size=self._settings.max_queue_size),
            volume=self._settings.default_volume,
            min_volume=self._settings.min_volume,
            max_volume=self._settings.max_volume,
        )
        playback = RoomPlayback(
            session=session,
            transport=self._transport,
            lock=self._locks[room_id],
            event_bus=self._event_bus,
            auto_leave_seconds=self._settings.auto_leave_seconds,
            on_terminated=self._forget,
        )
        self._playbacks[room_id] = playback
        logger.info(LogTemplates.SESSION_CREATED, room_id)
        await self._event_bus.publish(SessionCreated(room_id=room_id, channel_id=channel_id))
        return playback

    def _forget(self, playback: RoomPlayback) -> None:
        if self._playbacks.get(playback.room_id) is playback:
            del self._playbacks[playback.room_id]
