"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.messages import ErrorMessages


class DiscordSettings(BaseModel):
    """Discord bot configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    command_prefix: str = Field(
        default="!",
        min_length=1,
        max_length=5,
        validation_alias=AliasChoices("command_prefix", "prefix"),
    )


class PlayerSettings(BaseModel):
    """Per-room playback limits."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    default_volume: int = Field(default=100, ge=0)
    min_volume: int = Field(default=0, ge=0)
    max_volume: int = Field(default=150, ge=1, le=1000)
    max_queue_size: int = Field(default=100, ge=1, le=10_000)
    auto_leave_seconds: float = Field(
        default=300.0,
        ge=0.0,
        validation_alias=AliasChoices("auto_leave_seconds", "auto_leave_timeout"),
    )

    @model_validator(mode="after")
    def validate_volume_bounds(self) -> PlayerSettings:
        """Require min_volume <= default_volume <= max_volume."""
        if not self.min_volume <= self.default_volume <= self.max_volume:
            raise ValueError(
                ErrorMessages.INVALID_VOLUME_RANGE.format(
                    min_volume=self.min_volume,
                    default_volume=self.default_volume,
                    max_volume=self.max_volume,
                )
            )
        return self


class AudioSettings(BaseModel):
    """Audio source and voice connection configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    ffmpeg_options: dict[str, str] = Field(
        default_factory=lambda: {
            "before_options": "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5",
            "options": "-vn",
        }
    )
    ytdlp_format: str = "bestaudio/best"
    search_fallback: tuple[str, ...] = Field(
        default=("ytsearch", "scsearch"),
        validation_alias=AliasChoices("search_fallback", "search_prefixes"),
    )
    connect_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    info_cache_ttl_seconds: int = Field(default=600, ge=0)

    @field_validator("search_fallback", mode="before")
    @classmethod
    def validate_search_fallback(cls, v: tuple[str, ...] | list[str] | str) -> tuple[str, ...]:
        """Accept a comma-separated string or a JSON array from the environment."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",")]
        prefixes = tuple(part for part in v if part)
        if not prefixes:
            raise ValueError(ErrorMessages.EMPTY_SEARCH_FALLBACK)
        return prefixes


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, DISCORD__COMMAND_PREFIX (nested with prefix)
    - PLAYER__MAX_QUEUE_SIZE, PLAYER__AUTO_LEAVE_SECONDS, etc.
    - AUDIO__SEARCH_FALLBACK (comma-separated prefixes)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        strict=True,
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    player: PlayerSettings = Field(default_factory=PlayerSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels)
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
