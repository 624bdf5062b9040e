"""
CardWatch — Watchlist Display Cache

Explicit, caller-owned cache of rendered watchlists keyed by profile name.
Entries expire after a fixed TTL; every write path in CardService
invalidates what it touched. Nothing is cached at module level.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from cardwatch.config import settings
from cardwatch.engine.pricing import CardDisplay

logger = structlog.get_logger(__name__)


class DisplayCache:
    """
    TTL cache of list[CardDisplay] per profile.

    Usage:
        cache = DisplayCache(ttl_seconds=300)
        service = CardService(session_factory, scraper, cache=cache)
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = settings.DISPLAY_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, list[CardDisplay]]] = {}

    def get(self, profile_name: str) -> list[CardDisplay] | None:
        entry = self._entries.get(profile_name)
        if entry is None:
            return None
        stored_at, displays = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[profile_name]
            logger.debug("display_cache_expired", profile=profile_name)
            return None
        logger.debug("display_cache_hit", profile=profile_name, count=len(displays))
        return list(displays)

    def put(self, profile_name: str, displays: list[CardDisplay]) -> None:
        self._entries[profile_name] = (self._clock(), list(displays))

    def invalidate(self, profile_name: str) -> None:
        if self._entries.pop(profile_name, None) is not None:
            logger.debug("display_cache_invalidated", profile=profile_name)

    def clear(self) -> None:
        """Drop every entry (a shared card changed, all watchers are affected)."""
        self._entries.clear()
        logger.debug("display_cache_cleared")

    def __len__(self) -> int:
        return len(self._entries)
