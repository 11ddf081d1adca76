"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting types, messages, events and exceptions
- music/: Track, queue, session and playback state logic
"""

from discord_room_player.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
