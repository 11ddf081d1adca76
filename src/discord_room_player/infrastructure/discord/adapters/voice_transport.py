"""Discord voice transport implementing AudioTransport on top of discord.py."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import discord

from discord_room_player.application.interfaces.audio_transport import (
    AudioTransport,
    StreamHandle,
    TransportEvent,
    TransportListener,
    VoiceConnection,
)
from discord_room_player.config.settings import AudioSettings
from discord_room_player.domain.music.value_objects import TransportEventKind
from discord_room_player.domain.shared.exceptions import (
    PermissionDeniedError,
    StreamOpenError,
    TransportError,
)
from discord_room_player.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

MAX_GAIN: float = 2.0

StreamUrlLookup = Callable[[str], Awaitable[str | None]]


class DiscordVoiceConnection(VoiceConnection):
    """One guild's ``discord.VoiceClient`` plus the listener for its streams."""

    def __init__(
        self,
        *,
        room_id: int,
        voice_client: discord.VoiceClient,
        listener: TransportListener,
        loop: asyncio.AbstractEventLoop,
        settings: AudioSettings,
        stream_url_lookup: StreamUrlLookup | None = None,
        on_closed: Callable[[DiscordVoiceConnection], None] | None = None,
    ) -> None:
        self.room_id = room_id
        self._vc = voice_client
        self._listener = listener
        self._loop = loop
        self._ffmpeg_options = settings.ffmpeg_options
        self._lookup = stream_url_lookup
        self._on_closed = on_closed
        self._volume = 1.0
        self._closed = False

    @property
    def voice_client(self) -> discord.VoiceClient:
        return self._vc

    async def open_stream(self, reference: str) -> StreamHandle:
        url = await self._lookup(reference) if self._lookup else reference
        if not url:
            raise StreamOpenError(
                reference, ErrorMessages.NO_STREAM_URL_FOR_TRACK.format(reference=reference)
            )

        try:
            source = discord.FFmpegPCMAudio(
                url,
                before_options=self._ffmpeg_options.get("before_options", ""),
                options=self._ffmpeg_options.get("options", ""),
            )
        except discord.ClientException as exc:
            raise StreamOpenError(reference, str(exc)) from exc

        return StreamHandle(
            reference=reference,
            source=discord.PCMVolumeTransformer(source, volume=self._volume),
        )

    async def play(self, stream: StreamHandle) -> None:
        if not self._vc.is_connected():
            raise TransportError(ErrorMessages.VOICE_NOT_CONNECTED)

        if self._vc.is_playing() or self._vc.is_paused():
            self._vc.stop()

        if isinstance(stream.source, discord.PCMVolumeTransformer):
            stream.source.volume = self._volume

        try:
            self._vc.play(stream.source, after=self._after_callback(stream.stream_id))
        except discord.ClientException as exc:
            raise TransportError(str(exc)) from exc

    def _after_callback(self, stream_id: int) -> Callable[[Exception | None], None]:
        """Build the callback discord.py runs on its audio thread when a stream ends."""

        def after(error: Exception | None = None) -> None:
            if error is not None:
                logger.warning(LogTemplates.VOICE_AFTER_CALLBACK_ERROR, self.room_id, error)
            kind = TransportEventKind.ERROR if error else TransportEventKind.IDLE
            self._emit_threadsafe(TransportEvent(kind=kind, stream_id=stream_id, error=error))

        return after

    def _emit_threadsafe(self, event: TransportEvent) -> None:
        try:
            asyncio.run_coroutine_threadsafe(self._listener(event), self._loop)
        except RuntimeError:
            logger.warning(LogTemplates.VOICE_LISTENER_SCHEDULE_FAILED, self.room_id)

    async def notify_disconnected(self) -> None:
        """Report that Discord dropped this connection without us asking."""
        if self._closed:
            return
        self._mark_closed()
        await self._listener(TransportEvent(kind=TransportEventKind.DISCONNECTED))

    async def pause(self) -> None:
        if self._vc.is_playing():
            self._vc.pause()

    async def resume(self) -> None:
        if self._vc.is_paused():
            self._vc.resume()

    async def stop(self) -> None:
        if self._vc.is_playing() or self._vc.is_paused():
            self._vc.stop()

    async def set_volume(self, volume: float) -> None:
        self._volume = max(0.0, min(MAX_GAIN, volume))
        if isinstance(self._vc.source, discord.PCMVolumeTransformer):
            self._vc.source.volume = self._volume

    async def close_stream(self, stream: StreamHandle) -> None:
        if isinstance(stream.source, discord.AudioSource):
            stream.source.cleanup()

    def listener_count(self) -> int:
        channel = self._vc.channel
        if channel is None:
            return 0
        return sum(1 for member in channel.members if not member.bot)

    async def disconnect(self) -> None:
        self._mark_closed()
        await self._vc.disconnect(force=True)
        logger.info(LogTemplates.VOICE_DISCONNECTED, self.room_id)

    def _mark_closed(self) -> None:
        self._closed = True
        if self._on_closed is not None:
            self._on_closed(self)


class DiscordVoiceTransport(AudioTransport):
    def __init__(
        self,
        bot: discord.Client,
        settings: AudioSettings | None = None,
        stream_url_lookup: StreamUrlLookup | None = None,
    ) -> None:
        self._bot = bot
        self._settings = settings or AudioSettings()
        self._lookup = stream_url_lookup
        self._connections: dict[int, DiscordVoiceConnection] = {}

    def get_connection(self, room_id: int) -> DiscordVoiceConnection | None:
        return self._connections.get(room_id)

    async def notify_disconnected(self, room_id: int) -> None:
        connection = self._connections.get(room_id)
        if connection is not None:
            await connection.notify_disconnected()

    async def connect(
        self, room_id: int, channel_id: int, listener: TransportListener
    ) -> DiscordVoiceConnection:
        guild = self._bot.get_guild(room_id)
        channel = guild.get_channel(channel_id) if guild else None
        if guild is None or not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            raise PermissionDeniedError(
                channel_id, ErrorMessages.VOICE_CHANNEL_NOT_FOUND.format(channel_id=channel_id)
            )

        permissions = channel.permissions_for(guild.me)
        if not (permissions.connect and permissions.speak):
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel_id)
            raise PermissionDeniedError(channel_id)

        voice_client = await self._join(guild, channel)
        connection = DiscordVoiceConnection(
            room_id=room_id,
            voice_client=voice_client,
            listener=listener,
            loop=self._bot.loop,
            settings=self._settings,
            stream_url_lookup=self._lookup,
            on_closed=self._forget,
        )
        self._connections[room_id] = connection
        logger.info(LogTemplates.VOICE_CONNECTED, channel.name, room_id)
        return connection

    async def _join(
        self, guild: discord.Guild, channel: discord.VoiceChannel | discord.StageChannel
    ) -> discord.VoiceClient:
        existing = guild.voice_client
        if isinstance(existing, discord.VoiceClient) and not existing.is_connected():
            logger.warning(LogTemplates.VOICE_STALE_CLEANUP, guild.id)
            await existing.disconnect(force=True)
            existing = None

        timeout = self._settings.connect_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                if isinstance(existing, discord.VoiceClient):
                    if existing.channel is None or existing.channel.id != channel.id:
                        await existing.move_to(channel)
                        logger.info(LogTemplates.VOICE_MOVED, channel.name)
                    return existing
                return await channel.connect(self_deaf=True)
        except TimeoutError as exc:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel.id)
            raise PermissionDeniedError(
                channel.id, ErrorMessages.VOICE_CONNECT_TIMEOUT.format(channel_id=channel.id)
            ) from exc
        except discord.Forbidden as exc:
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel.id)
            raise PermissionDeniedError(channel.id) from exc
        except discord.ClientException as exc:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, exc)
            raise PermissionDeniedError(channel.id, str(exc)) from exc

    def _forget(self, connection: DiscordVoiceConnection) -> None:
        if self._connections.get(connection.room_id) is connection:
            del self._connections[connection.room_id]
