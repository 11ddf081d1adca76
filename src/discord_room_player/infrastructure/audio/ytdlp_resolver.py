"""TrackResolver implementation using yt-dlp for URL resolution and search."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Final, cast

from pydantic import ValidationError
from yt_dlp import YoutubeDL

from discord_room_player.application.interfaces.track_resolver import TrackResolver
from discord_room_player.config.settings import AudioSettings
from discord_room_player.domain.music.entities import SourceMetadata, Track
from discord_room_player.domain.shared.messages import LogTemplates

from .models import (
    CACHE_MAX_SIZE,
    LOG_URL_TRUNCATE,
    AudioFormatInfo,
    CacheEntry,
    YtDlpOpts,
    YtDlpTrackInfo,
)

logger = logging.getLogger(__name__)

URL_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"https?://"),
    re.compile(r"www\."),
]


class YtDlpResolver(TrackResolver):
    """Resolves URLs directly and free text through an ordered list of search catalogs."""

    def __init__(self, settings: AudioSettings | None = None) -> None:
        self._settings = settings or AudioSettings()
        self._base_opts = YtDlpOpts(format=self._settings.ytdlp_format)
        self._cache_ttl = self._settings.info_cache_ttl_seconds
        self._info_cache: dict[str, CacheEntry] = {}

    @property
    def search_fallback(self) -> tuple[str, ...]:
        return self._settings.search_fallback

    def _get_opts(self, **overrides: Any) -> YtDlpOpts:
        if overrides:
            return self._base_opts.model_copy(update=overrides)
        return self._base_opts

    # ── Conversion ──────────────────────────────────────────────────

    def _info_to_track(self, info: YtDlpTrackInfo) -> Track | None:
        reference = info.webpage_url or info.url
        if not reference:
            logger.warning(LogTemplates.RESOLVER_NO_RESULTS, info.title, "info dict")
            return None

        try:
            metadata = None
            if info.extractor_key and info.id:
                metadata = SourceMetadata(catalog=info.extractor_key.lower(), item_id=info.id)

            return Track(
                title=info.title[:500],
                playable_reference=reference,
                duration_seconds=info.duration or 0,
                artist=info.display_artist,
                thumbnail_url=info.thumbnail,
                source_metadata=metadata,
            )
        except ValidationError:
            logger.exception(LogTemplates.RESOLVER_CONVERT_FAILED, reference[:LOG_URL_TRUNCATE])
            return None

    @staticmethod
    def _extract_stream_from_formats(formats: list[AudioFormatInfo]) -> str | None:
        audio_formats = [f for f in formats if f.acodec != "none" and f.url]
        if audio_formats:
            return audio_formats[-1].url
        return None

    @staticmethod
    def _parse_info(data: dict[str, Any]) -> YtDlpTrackInfo:
        return YtDlpTrackInfo.model_validate(data)

    # ── Blocking yt-dlp calls (run in a worker thread) ──────────────

    def _extract_info_sync(self, url: str) -> YtDlpTrackInfo | None:
        now = time.time()
        cached = self._info_cache.get(url)
        if cached is not None:
            if now - cached.cached_at < self._cache_ttl:
                logger.debug(LogTemplates.CACHE_HIT, url[:LOG_URL_TRUNCATE])
                return cached.info
            self._info_cache.pop(url, None)

        logger.debug(LogTemplates.RESOLVER_EXTRACTING, url[:LOG_URL_TRUNCATE])
        try:
            with YoutubeDL(params=cast(Any, self._get_opts().model_dump())) as ydl:
                data = ydl.extract_info(url, download=False)
            result = self._parse_info(dict(data)) if isinstance(data, dict) else None
        except Exception as exc:
            logger.warning(LogTemplates.RESOLVER_EXTRACT_FAILED, url[:LOG_URL_TRUNCATE], exc)
            return None

        if self._cache_ttl > 0:
            self._store(url, result, now)
        return result

    def _store(self, url: str, info: YtDlpTrackInfo | None, now: float) -> None:
        self._info_cache[url] = CacheEntry(info=info, cached_at=now)
        if len(self._info_cache) <= CACHE_MAX_SIZE:
            return
        expired = [
            key
            for key, entry in self._info_cache.items()
            if now - entry.cached_at >= self._cache_ttl
        ]
        for key in expired:
            self._info_cache.pop(key, None)

    def _search_sync(self, prefix: str, query: str) -> YtDlpTrackInfo | None:
        search_query = f"{prefix}1:{query}"
        try:
            with YoutubeDL(params=cast(Any, self._get_opts().model_dump())) as ydl:
                data = ydl.extract_info(search_query, download=False)
        except Exception as exc:
            logger.warning(LogTemplates.RESOLVER_EXTRACT_FAILED, search_query, exc)
            return None

        if not isinstance(data, dict):
            return None

        entries = data.get("entries", [])
        if not isinstance(entries, list):
            return None

        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                return self._parse_info(dict(entry))
            except ValidationError as exc:
                logger.warning(LogTemplates.RESOLVER_INVALID_ENTRY, query, exc)
        return None

    # ── TrackResolver ───────────────────────────────────────────────

    async def resolve(self, query: str) -> Track | None:
        """Resolve a URL directly, or search each catalog in fallback order."""
        query = query.strip()
        if not query:
            return None

        if self.is_url(query):
            info = await asyncio.to_thread(self._extract_info_sync, query)
            return self._info_to_track(info) if info else None

        prefixes = self.search_fallback
        for index, prefix in enumerate(prefixes):
            info = await asyncio.to_thread(self._search_sync, prefix, query)
            if info is not None:
                track = self._info_to_track(info)
                if track is not None:
                    logger.debug(LogTemplates.RESOLVER_RESOLVED, query, track.title)
                    return track

            if index + 1 < len(prefixes):
                logger.info(LogTemplates.RESOLVER_FALLBACK, query, prefix, prefixes[index + 1])
            else:
                logger.info(LogTemplates.RESOLVER_NO_RESULTS, query, prefix)

        return None

    async def resolve_stream_url(self, reference: str) -> str | None:
        """Look up a direct media URL for a track's playable reference."""
        info = await asyncio.to_thread(self._extract_info_sync, reference)
        if info is None:
            return None
        if info.url and info.url != info.webpage_url:
            return info.url
        return self._extract_stream_from_formats(info.formats)

    def is_url(self, query: str) -> bool:
        return any(pattern.search(query) for pattern in URL_PATTERNS)

    def clear_cache(self) -> int:
        count = len(self._info_cache)
        self._info_cache.clear()
        logger.debug(LogTemplates.CACHE_CLEARED, count)
        return count
