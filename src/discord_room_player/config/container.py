"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the resolver, the voice transport and the
session registry. Components are created on-demand and cached for reuse
throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.interfaces.audio_transport import AudioTransport
    from ..application.interfaces.track_resolver import TrackResolver
    from ..application.services.session_registry import SessionRegistry
    from ..domain.shared.events import EventBus
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed. Adapters may be
    supplied up front to replace the Discord and yt-dlp implementations.
    """

    settings: Settings
    _bot: Bot | None = None

    # Infrastructure adapters
    _track_resolver: TrackResolver | None = None
    _audio_transport: AudioTransport | None = None

    # Application services
    _event_bus: EventBus | None = None
    _session_registry: SessionRegistry | None = None

    _shut_down: bool = False

    def set_bot(self, bot: Bot) -> None:
        """Set the Discord bot instance."""
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """Get the Discord bot instance."""
        if self._bot is None:
            raise RuntimeError("Bot not initialized. Call set_bot() first.")
        return self._bot

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # === Infrastructure Adapters ===

    @property
    def track_resolver(self) -> TrackResolver:
        """Get the track resolver."""
        if self._track_resolver is None:
            from ..infrastructure.audio.ytdlp_resolver import YtDlpResolver

            self._track_resolver = YtDlpResolver(self.settings.audio)
        return self._track_resolver

    @property
    def audio_transport(self) -> AudioTransport:
        """Get the voice transport."""
        if self._audio_transport is None:
            from ..infrastructure.discord.adapters.voice_transport import (
                DiscordVoiceTransport,
            )

            self._audio_transport = DiscordVoiceTransport(
                self.bot,
                self.settings.audio,
                stream_url_lookup=getattr(self.track_resolver, "resolve_stream_url", None),
            )
        return self._audio_transport

    # === Application Services ===

    @property
    def event_bus(self) -> EventBus:
        """Get the process-wide event bus."""
        if self._event_bus is None:
            from ..domain.shared.events import get_event_bus

            self._event_bus = get_event_bus()
        return self._event_bus

    @property
    def session_registry(self) -> SessionRegistry:
        """Get the session registry."""
        if self._shut_down:
            raise RuntimeError(ErrorMessages.CONTAINER_NOT_INITIALIZED)
        if self._session_registry is None:
            from ..application.services.session_registry import SessionRegistry

            self._session_registry = SessionRegistry(
                resolver=self.track_resolver,
                transport=self.audio_transport,
                settings=self.settings.player,
                event_bus=self.event_bus,
            )
        return self._session_registry

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Build the registry eagerly so configuration errors surface at startup."""
        self._shut_down = False
        _ = self.session_registry
        logger.info(LogTemplates.CONTAINER_INITIALIZED, self.settings.environment)

    async def shutdown(self) -> None:
        """Terminate every session and release cached adapters."""
        if self._session_registry is not None:
            try:
                await self._session_registry.shutdown()
            except Exception as exc:
                logger.warning("Failed shutting down session registry: %r", exc)

        clear_cache = getattr(self._track_resolver, "clear_cache", None)
        if callable(clear_cache):
            clear_cache()

        self._session_registry = None
        self._shut_down = True
        logger.info(LogTemplates.CONTAINER_SHUTDOWN)


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
