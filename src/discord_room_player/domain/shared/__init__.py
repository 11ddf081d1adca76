"""
Shared Domain Kernel

Contains types, events and exceptions shared across the domain.
"""

from discord_room_player.domain.shared.exceptions import (
    BusinessRuleViolationError,
    DomainError,
    EntityNotFoundError,
    InvalidOperationError,
    NoActiveSessionError,
    PermissionDeniedError,
    QueueFullError,
    StreamOpenError,
    TrackNotFoundError,
    TransportError,
)

__all__ = [
    "DomainError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "InvalidOperationError",
    "PermissionDeniedError",
    "TrackNotFoundError",
    "NoActiveSessionError",
    "QueueFullError",
    "StreamOpenError",
    "TransportError",
]
