"""
GainsEngine - facade over the data pipeline for the panel.

Single entry point wrapping ItemsFetcher, ResponseCache and IconCache.
The panel talks only to this class; it never touches the caches' locks
or worker pools.

Usage:
    from core import GainsEngine

    engine = GainsEngine(dispatcher=lambda fn: root.after(0, fn))
    engine.start()
    engine.fetch_items().add_done_callback(on_items)
    icon = engine.get_icon(item.icon, on_loaded=lambda _: redraw())
    ...
    engine.shutdown()
"""

import logging
from concurrent.futures import Future
from typing import Callable, Optional

from icon_cache import IconCache
from items_fetcher import ItemsFetcher
from response_cache import ResponseCache
from settings import PluginSettings, load_settings

logger = logging.getLogger(__name__)


class GainsEngine:
    """Owns the caches for one panel lifetime."""

    def __init__(self, settings: Optional[PluginSettings] = None,
                 fetcher: Optional[ItemsFetcher] = None,
                 response_cache: Optional[ResponseCache] = None,
                 icon_cache: Optional[IconCache] = None,
                 dispatcher: Optional[Callable[[Callable[[], None]], None]] = None):
        self.settings = settings or load_settings()
        self._fetcher = None
        if response_cache is None:
            self._fetcher = fetcher or ItemsFetcher()
            response_cache = ResponseCache(self._fetcher)
        self._response_cache = response_cache
        self._icon_cache = icon_cache or IconCache(dispatcher=dispatcher)
        self._closed = False

    def start(self):
        """Start background work (icon expiry sweep)."""
        self._icon_cache.start()
        logger.info(f"GainsEngine started (limit={self.settings.item_limit}, "
                    f"min_score={self.settings.min_score}, "
                    f"icons={'on' if self.settings.show_icons else 'off'})")

    # ── Items ───────────────────────────────────────────────

    def fetch_items(self, limit: Optional[int] = None,
                    min_score: Optional[float] = None,
                    force_refresh: bool = False) -> Future:
        """Future[ApiResponse]; limit and min_score default to the settings."""
        if limit is None:
            limit = self.settings.item_limit
        if min_score is None:
            min_score = self.settings.min_score
        return self._response_cache.fetch(limit, min_score, force_refresh)

    def clear_cache(self):
        self._response_cache.clear_cache()

    def has_cached_data(self) -> bool:
        return self._response_cache.has_cached_data()

    def was_last_request_cached(self) -> bool:
        return self._response_cache.was_last_request_cached()

    def last_fetch_time(self) -> float:
        return self._response_cache.last_fetch_time()

    # ── Icons ───────────────────────────────────────────────

    def get_icon(self, url: Optional[str], on_loaded=None):
        """Cached icon or None. Always None when icons are switched off."""
        if not self.settings.show_icons:
            return None
        return self._icon_cache.get_icon(url, on_loaded)

    # ── Lifecycle ───────────────────────────────────────────

    def shutdown(self):
        if self._closed:
            return
        self._closed = True
        self._response_cache.shutdown()
        self._icon_cache.shutdown()
        if self._fetcher is not None:
            self._fetcher.close()
        logger.info("GainsEngine shut down")
