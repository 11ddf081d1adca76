import asyncio
from collections import defaultdict

import pytest
import pytest_asyncio

from discord_room_player.application.interfaces.audio_transport import (
    AudioTransport,
    StreamHandle,
    TransportEvent,
    TransportListener,
    VoiceConnection,
)
from discord_room_player.application.interfaces.track_resolver import TrackResolver
from discord_room_player.domain.music.entities import Track
from discord_room_player.domain.music.value_objects import TransportEventKind
from discord_room_player.domain.shared.events import (
    DomainEvent,
    EventBus,
    PlaybackStateChanged,
    QueueExhausted,
    SessionCreated,
    SessionDestroyed,
    TrackEnqueued,
    TrackFailed,
    TrackStartedPlaying,
    reset_event_bus,
)
from discord_room_player.domain.shared.exceptions import PermissionDeniedError, StreamOpenError

ROOM_ID = 111111111111111111
CHANNEL_ID = 222222222222222222
USER_ID = 333333333333333333


# ============================================================================
# In-memory transport and resolver
# ============================================================================


class FakeVoiceConnection(VoiceConnection):
    """Records every call; never emits events on its own."""

    def __init__(self, transport: "FakeTransport", room_id: int, listener: TransportListener):
        self._transport = transport
        self.room_id = room_id
        self.listener = listener
        self.listeners = transport.listeners
        self.opened: list[StreamHandle] = []
        self.played: list[StreamHandle] = []
        self.closed: list[StreamHandle] = []
        self.volumes: list[float] = []
        self.calls: list[str] = []
        self.current: StreamHandle | None = None
        self.disconnected = False

    async def open_stream(self, reference: str) -> StreamHandle:
        self._transport.started[reference].set()
        gate = self._transport.gates.get(reference)
        if gate is not None:
            await gate.wait()
        if reference in self._transport.fail_refs:
            raise StreamOpenError(reference, "unavailable")
        stream = StreamHandle(reference=reference)
        self.opened.append(stream)
        return stream

    async def play(self, stream: StreamHandle) -> None:
        self.calls.append("play")
        self.played.append(stream)
        self.current = stream

    async def pause(self) -> None:
        self.calls.append("pause")

    async def resume(self) -> None:
        self.calls.append("resume")

    async def stop(self) -> None:
        self.calls.append("stop")
        self.current = None

    async def set_volume(self, volume: float) -> None:
        self.volumes.append(volume)

    async def close_stream(self, stream: StreamHandle) -> None:
        self.closed.append(stream)

    def listener_count(self) -> int:
        return self.listeners

    async def disconnect(self) -> None:
        self.calls.append("disconnect")
        self.disconnected = True

    # Test drivers

    async def finish(self, stream: StreamHandle | None = None) -> None:
        """Simulate the transport reporting that a stream ran to completion."""
        target = stream or self.current
        self.current = None
        await self.listener(
            TransportEvent(kind=TransportEventKind.IDLE, stream_id=target.stream_id)
        )

    async def fail(self, error: Exception) -> None:
        target = self.current
        self.current = None
        await self.listener(
            TransportEvent(kind=TransportEventKind.ERROR, stream_id=target.stream_id, error=error)
        )

    async def drop(self) -> None:
        await self.listener(TransportEvent(kind=TransportEventKind.DISCONNECTED))


class FakeTransport(AudioTransport):
    def __init__(self) -> None:
        self.connections: list[FakeVoiceConnection] = []
        self.denied_channels: set[int] = set()
        self.fail_refs: set[str] = set()
        self.listeners = 1
        # reference -> event that must be set before open_stream returns
        self.gates: dict[str, asyncio.Event] = {}
        self.started: defaultdict[str, asyncio.Event] = defaultdict(asyncio.Event)

    def hold(self, reference: str) -> asyncio.Event:
        """Block open_stream for *reference* until the returned event is set."""
        gate = asyncio.Event()
        self.gates[reference] = gate
        return gate

    @property
    def connection(self) -> FakeVoiceConnection:
        return self.connections[-1]

    async def connect(
        self, room_id: int, channel_id: int, listener: TransportListener
    ) -> FakeVoiceConnection:
        if channel_id in self.denied_channels:
            raise PermissionDeniedError(channel_id)
        connection = FakeVoiceConnection(self, room_id, listener)
        self.connections.append(connection)
        return connection


class FakeResolver(TrackResolver):
    def __init__(self) -> None:
        self.missing: set[str] = set()
        self.queries: list[str] = []

    async def resolve(self, query: str) -> Track | None:
        self.queries.append(query)
        if query in self.missing:
            return None
        return Track(
            title=query,
            playable_reference=f"ref:{query}",
            duration_seconds=60,
        )

    def is_url(self, query: str) -> bool:
        return query.startswith("http")


class EventRecorder:
    """Collects every domain event published on a bus."""

    EVENT_TYPES = (
        SessionCreated,
        SessionDestroyed,
        TrackEnqueued,
        TrackStartedPlaying,
        TrackFailed,
        QueueExhausted,
        PlaybackStateChanged,
    )

    def __init__(self, bus: EventBus) -> None:
        self.events: list[DomainEvent] = []
        for event_type in self.EVENT_TYPES:
            bus.subscribe(event_type, self._record)

    async def _record(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[DomainEvent]) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    @property
    def states(self) -> list[str]:
        return [e.new_state for e in self.of_type(PlaybackStateChanged)]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_event_bus():
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def sample_track():
    """Create a sample track for testing."""
    return Track(
        title="Test Track",
        playable_reference="https://youtube.com/watch?v=test123",
        duration_seconds=180,
        requested_by="tester",
        artist="Test Artist",
        thumbnail_url="https://thumbnail.url/test.jpg",
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def player_settings():
    from discord_room_player.config.settings import PlayerSettings

    return PlayerSettings(auto_leave_seconds=0.05)


@pytest_asyncio.fixture
async def registry(resolver, transport, player_settings, event_bus):
    from discord_room_player.application.services.session_registry import SessionRegistry

    reg = SessionRegistry(
        resolver=resolver,
        transport=transport,
        settings=player_settings,
        event_bus=event_bus,
    )
    yield reg
    await reg.shutdown()
