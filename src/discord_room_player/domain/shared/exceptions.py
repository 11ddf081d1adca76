"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class EntityNotFoundError(DomainError):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, identifier: str | int, message: str | None = None) -> None:
        msg = message or f"{entity_type} with id '{identifier}' not found"
        super().__init__(msg, code="ENTITY_NOT_FOUND")
        self.entity_type = entity_type
        self.identifier = identifier


class BusinessRuleViolationError(DomainError):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Business rule violated: {rule}"
        super().__init__(msg, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state


# === Playback errors ===


class PermissionDeniedError(DomainError):
    """Raised when the requester has no voice channel or the transport cannot join it."""

    def __init__(self, channel_id: int | None = None, message: str | None = None) -> None:
        if message is None:
            if channel_id is None:
                message = "You need to be in a voice channel to play music"
            else:
                message = f"Cannot join voice channel {channel_id}"
        super().__init__(message, code="PERMISSION_DENIED")
        self.channel_id = channel_id


class TrackNotFoundError(EntityNotFoundError):
    """Raised when the resolver returns nothing for a query."""

    def __init__(self, query: str) -> None:
        super().__init__("Track", query, message=f"No results found for: {query}")
        self.code = "NOT_FOUND"
        self.query = query


class NoActiveSessionError(DomainError):
    """Raised when a command targets a room with no session or nothing playing."""

    def __init__(self, room_id: int, message: str | None = None) -> None:
        super().__init__(
            message or f"Nothing is playing in room {room_id}", code="NO_ACTIVE_SESSION"
        )
        self.room_id = room_id


class QueueFullError(BusinessRuleViolationError):
    """Raised when a queue already holds its maximum number of tracks."""

    def __init__(self, max_size: int) -> None:
        super().__init__(rule="MAX_QUEUE_SIZE", message=f"Queue is full (max {max_size} tracks)")
        self.max_size = max_size


class StreamOpenError(DomainError):
    """Raised by a transport that could not open a stream for a specific track."""

    def __init__(self, reference: str, reason: str | None = None) -> None:
        msg = f"Could not open stream for {reference}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, code="OPEN_FAILED")
        self.reference = reference
        self.reason = reason


class TransportError(DomainError):
    """Raised (or reported) when the transport fails mid-playback."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="TRANSPORT_ERROR")
