"""Centralized message constants for error messages, validation, and log output."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Queue Validation Errors
    INVALID_QUEUE_POSITION = "Queue position cannot be negative"

    # Settings Validation Errors
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"
    INVALID_VOLUME_RANGE = (
        "Volume bounds must satisfy min_volume <= default_volume <= max_volume "
        "(got {min_volume} <= {default_volume} <= {max_volume})"
    )
    EMPTY_SEARCH_FALLBACK = "At least one search prefix is required"

    # Audio/Stream Errors
    NO_STREAM_URL_FOR_TRACK = "No stream URL found for {reference}"

    # Voice Errors
    VOICE_CHANNEL_NOT_FOUND = "Voice channel {channel_id} does not exist"
    VOICE_CONNECT_TIMEOUT = "Timed out connecting to voice channel {channel_id}"
    VOICE_NOT_CONNECTED = "Voice client is not connected"

    # Authentication/Security Errors
    DISCORD_TOKEN_REQUIRED = "DISCORD__TOKEN environment variable is required"
    CONTAINER_NOT_INITIALIZED = "Container has been shut down"
    CONTAINER_NOT_FOUND = "Container not found on bot instance"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Cache Operations
    CACHE_HIT = "Cache hit for '%s'"
    CACHE_CLEARED = "Cleared %d cache entries"

    # Voice/Audio Operations
    VOICE_CONNECTED = "Connected to voice channel %s in room %s"
    VOICE_DISCONNECTED = "Disconnected from voice in room %s"
    VOICE_MOVED = "Moved to voice channel %s"
    VOICE_CONNECTION_TIMEOUT = "Timeout connecting to channel %s"
    VOICE_NO_PERMISSION = "No permission to connect to channel %s"
    VOICE_CLIENT_ERROR = "Client error connecting: %r"
    VOICE_STALE_CLEANUP = "Found stale voice client in room %s, cleaning up"
    VOICE_AFTER_CALLBACK_ERROR = "Audio player reported an error in room %s: %r"
    VOICE_LISTENER_SCHEDULE_FAILED = "Could not deliver transport event for room %s"

    # Playback Operations
    PLAYBACK_STARTED = "Started playing '%s' in room %s"
    PLAYBACK_STOPPED = "Stopped playback in room %s"
    PLAYBACK_PAUSED = "Paused playback in room %s"
    PLAYBACK_RESUMED = "Resumed playback in room %s"
    PLAYBACK_SKIPPED = "Skipped '%s' in room %s"
    PLAYBACK_VOLUME_SET = "Volume set to %d in room %s"
    PLAYBACK_STATE_CHANGED = "Room %s: %s -> %s"
    PLAYBACK_OPEN_FAILED = "Could not open '%s' in room %s: %s"
    PLAYBACK_TRANSPORT_ERROR = "Transport error while playing '%s' in room %s: %s"
    PLAYBACK_STALE_STREAM = "Discarding stale stream for '%s' in room %s"
    PLAYBACK_STALE_EVENT = "Ignoring %s event for stream %s in room %s (active: %s)"
    PLAYBACK_QUEUE_EXHAUSTED = "Queue exhausted in room %s, leaving in %.0fs"
    PLAYBACK_TEARDOWN_STEP_FAILED = "Teardown step '%s' failed in room %s"

    # Queue Operations
    QUEUE_TRACK_ADDED = "Queued '%s' at position %d in room %s"
    QUEUE_SHUFFLED = "Shuffled %d upcoming tracks in room %s"
    QUEUE_LOOP_TOGGLED = "Loop %s in room %s"

    # Session Operations
    SESSION_CREATED = "Created session for room %s"
    SESSION_DESTROYED = "Destroyed session for room %s (%s)"
    SESSION_AUTO_LEAVE = "Auto-leave timer expired for room %s"
    SESSION_ROOM_EMPTY = "Room %s has no listeners, tearing down"
    SESSIONS_SHUTDOWN = "Terminating %d active sessions"

    # Resolver Operations
    RESOLVER_EXTRACTING = "Extracting info for '%s'"
    RESOLVER_NO_RESULTS = "No results for '%s' via %s"
    RESOLVER_EXTRACT_FAILED = "Failed to extract info for '%s': %s"
    RESOLVER_INVALID_ENTRY = "Skipping unusable result for '%s': %s"
    RESOLVER_CONVERT_FAILED = "Could not build a track from '%s'"
    RESOLVER_FALLBACK ="No results for '%s' via %s, trying %s"
    RESOLVER_RESOLVED = "Resolved '%s' to '%s'"

    # Event Bus
    EVENT_SUBSCRIBED = "Subscribed handler to: %s"
    EVENT_UNSUBSCRIBED = "Unsubscribed handler from %s"
    EVENT_NO_HANDLERS = "No handlers for %s"
    EVENT_PUBLISHING = "Publishing %s to %d handlers"
    EVENT_HANDLER_ERROR = "Error in handler for %s"
    EVENT_HANDLERS_CLEARED = "Cleared all event handlers"

    # Container / Lifecycle
    CONTAINER_INITIALIZED = "Container initialized (environment=%s)"
    CONTAINER_SHUTDOWN = "Container shut down"
    COG_LOADED = "Loaded cog: %s"
    SETTINGS_LOADED = "Loaded settings for environment '%s'"
