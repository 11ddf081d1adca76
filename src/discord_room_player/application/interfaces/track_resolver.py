"""Port interface for resolving queries and references to playable tracks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from discord_room_player.domain.shared.types import NonEmptyStr

if TYPE_CHECKING:
    from ...domain.music.entities import Track


class TrackResolver(ABC):
    """Interface for turning free text or direct references into tracks."""

    @abstractmethod
    async def resolve(self, query: NonEmptyStr) -> Track | None:
        """Resolve a query or URL to a playable track, or None when nothing matches."""
        ...

    @abstractmethod
    def is_url(self, query: NonEmptyStr) -> bool:
        ...
