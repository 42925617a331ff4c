"""
Gielinor Gains - Icon Cache
Item icons keyed by URL, loaded off the calling thread.

- get_icon() never blocks: it returns what is cached (or None) and schedules
  at most one load per URL at a time.
- Loads download with requests, decode with Pillow and scale into a square
  box. Only fully decoded images are stored.
- Entries expire after ICON_CACHE_TTL; an hourly sweep drops them, and an
  insert past the cap evicts the oldest 20%.
- Load callbacks are not fired one by one. NotificationBatcher collects the
  callbacks that land within a short window and hands them to the UI thread
  as one batch (e.g. dispatcher=lambda fn: root.after(0, fn) for tkinter).
"""

import io
import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests
from PIL import Image

from config import (
    ICON_SIZE,
    ICON_CACHE_MAX_ENTRIES,
    ICON_CACHE_TTL,
    ICON_SWEEP_INTERVAL,
    ICON_EVICT_FRACTION,
    ICON_NOTIFY_WINDOW,
    ICON_LOAD_WORKERS,
    ICON_HTTP_TIMEOUT,
    ICON_SHUTDOWN_TIMEOUT,
    USER_AGENT,
)

logger = logging.getLogger(__name__)

IconCallback = Callable[[Image.Image], None]


def scale_to_box(image: Image.Image, size: int = ICON_SIZE) -> Image.Image:
    """
    Fit image into a size x size transparent square, keeping aspect ratio.
    The longer side becomes `size`; the shorter side is centred.
    """
    image = image.convert("RGBA")
    w, h = image.size
    scale = size / max(w, h)
    new_w = max(1, round(w * scale))
    new_h = max(1, round(h * scale))
    resized = image.resize((new_w, new_h), Image.LANCZOS)

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    canvas.paste(resized, ((size - new_w) // 2, (size - new_h) // 2))
    return canvas


def _call_now(fn: Callable[[], None]):
    fn()


class NotificationBatcher:
    """
    Collect-then-flush queue for load callbacks.

    The first submit() in an idle period arms a timer; everything submitted
    before it fires goes out in the same batch through `dispatcher`, which
    decides which thread runs it.
    """

    def __init__(self, window: float = ICON_NOTIFY_WINDOW,
                 dispatcher: Optional[Callable[[Callable[[], None]], None]] = None):
        self.window = window
        self._dispatch = dispatcher or _call_now
        self._lock = threading.Lock()
        self._pending: List[tuple] = []
        self._timer: Optional[threading.Timer] = None
        self._closed = False

    def submit(self, callback: Callable, *args):
        with self._lock:
            if self._closed:
                return
            self._pending.append((callback, args))
            if self._timer is None:
                self._timer = threading.Timer(self.window, self.flush)
                self._timer.daemon = True
                self._timer.start()

    def flush(self):
        """Hand every pending callback to the dispatcher as one batch."""
        with self._lock:
            batch = self._pending
            self._pending = []
            self._timer = None
        if not batch:
            return
        logger.debug(f"Dispatching {len(batch)} icon callback(s)")
        self._dispatch(lambda: self._run_batch(batch))

    @staticmethod
    def _run_batch(batch: List[tuple]):
        for callback, args in batch:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Icon callback failed: {e}", exc_info=True)

    def close(self):
        """Cancel the pending timer and drop queued callbacks."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            dropped = len(self._pending)
            self._pending = []
        if dropped:
            logger.debug(f"Dropped {dropped} pending icon callback(s)")


@dataclass(frozen=True)
class _IconEntry:
    image: Image.Image
    stored_at: float


class IconCache:
    """
    Usage:
        icons = IconCache(dispatcher=lambda fn: root.after(0, fn))
        icons.start()
        img = icons.get_icon(item.icon, on_loaded=lambda _: panel.redraw())
        ...
        icons.shutdown()
    """

    def __init__(self, icon_size: int = ICON_SIZE,
                 max_entries: int = ICON_CACHE_MAX_ENTRIES,
                 ttl: float = ICON_CACHE_TTL,
                 sweep_interval: float = ICON_SWEEP_INTERVAL,
                 notify_window: float = ICON_NOTIFY_WINDOW,
                 dispatcher: Optional[Callable[[Callable[[], None]], None]] = None,
                 session: Optional[requests.Session] = None,
                 max_workers: int = ICON_LOAD_WORKERS,
                 clock: Callable[[], float] = time.time):
        self.icon_size = icon_size
        self.max_entries = max_entries
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._session = session or requests.Session()
        if session is None:
            self._session.headers.update({"User-Agent": USER_AGENT})

        self._entries: Dict[str, _IconEntry] = {}
        self._loading: Dict[str, List[IconCallback]] = {}   # url → waiting callbacks
        self._futures = set()
        self._lock = threading.Lock()

        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="icon-loader")
        self._batcher = NotificationBatcher(notify_window, dispatcher)
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._closed = False

    def start(self):
        """Start the background expiry sweep."""
        with self._lock:
            if self._closed or self._sweeper is not None:
                return
            self._sweeper = threading.Thread(target=self._sweep_loop,
                                             name="icon-sweeper", daemon=True)
        self._sweeper.start()

    # ─── Public API ──────────────────────────────────

    def get_icon(self, url: Optional[str],
                 on_loaded: Optional[IconCallback] = None) -> Optional[Image.Image]:
        """
        Cached image for url, or None.

        On a miss (or an expired entry) a load is scheduled unless one is
        already running for this URL; on_loaded(image) is queued for the next
        notification batch once it succeeds. An expired image is still
        returned while its replacement loads.
        """
        if not url:
            return None

        with self._lock:
            if self._closed:
                return None

            entry = self._entries.get(url)
            if entry is not None and not self._is_expired(entry):
                return entry.image

            waiting = self._loading.get(url)
            if waiting is None:
                self._loading[url] = [on_loaded] if on_loaded else []
                future = self._executor.submit(self._load, url)
                self._futures.add(future)
                # _load takes the lock before finishing, so this cannot fire here
                future.add_done_callback(self._forget_future)
            elif on_loaded:
                waiting.append(on_loaded)

            return entry.image if entry is not None else None

    def contains(self, url: str) -> bool:
        """True if a non-expired entry exists for url."""
        with self._lock:
            entry = self._entries.get(url)
            return entry is not None and not self._is_expired(entry)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        with self._lock:
            expired = [url for url, entry in self._entries.items()
                       if self._is_expired(entry)]
            for url in expired:
                del self._entries[url]
            remaining = len(self._entries)
        logger.debug(f"Icon cache sweep removed {len(expired)}, {remaining} left")
        return len(expired)

    def wait_for_loads(self, timeout: Optional[float] = None) -> bool:
        """Block until every scheduled load has finished. False on timeout."""
        with self._lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, timeout: float = ICON_SHUTDOWN_TIMEOUT):
        """
        Stop scheduling and sweeping, drop pending notifications, give
        in-flight loads up to `timeout` seconds, then cancel what is still
        queued and release every entry. Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        deadline = time.monotonic() + timeout
        self._stop.set()
        self._batcher.close()
        if self._sweeper is not None:
            self._sweeper.join(timeout=timeout)

        if not self.wait_for_loads(max(0.0, deadline - time.monotonic())):
            logger.info("Cancelling icon loads still pending after shutdown wait")
        self._executor.shutdown(wait=False, cancel_futures=True)

        with self._lock:
            self._entries.clear()
            self._loading.clear()
        self._session.close()
        logger.debug("Icon cache shut down")

    # ─── Loading ─────────────────────────────────────

    def _forget_future(self, future):
        with self._lock:
            self._futures.discard(future)

    def _load(self, url: str):
        """Worker: download, decode, scale, store, then notify waiters."""
        image = None
        try:
            logger.debug(f"Loading icon from: {url}")
            resp = self._session.get(url, timeout=ICON_HTTP_TIMEOUT)
            resp.raise_for_status()
            with Image.open(io.BytesIO(resp.content)) as raw:
                image = scale_to_box(raw, self.icon_size)
        except (requests.RequestException, OSError) as e:
            # OSError covers PIL.UnidentifiedImageError and truncated data
            logger.warning(f"Failed to load icon from {url}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error loading icon from {url}: {e}", exc_info=True)

        with self._lock:
            callbacks = self._loading.pop(url, [])
            if image is None or self._closed:
                return
            self._entries[url] = _IconEntry(image, self._clock())
            if len(self._entries) > self.max_entries:
                self._evict_oldest()

        logger.debug(f"Cached icon for: {url}")
        for callback in callbacks:
            self._batcher.submit(callback, image)

    # ─── Eviction ────────────────────────────────────

    def _is_expired(self, entry: _IconEntry) -> bool:
        return self._clock() - entry.stored_at > self.ttl

    def _evict_oldest(self):
        """Drop the oldest ICON_EVICT_FRACTION of the cap. Caller holds the lock."""
        count = max(1, int(self.max_entries * ICON_EVICT_FRACTION))
        # sorted() is stable, so equal timestamps go in insertion order
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].stored_at)[:count]
        for url, _ in oldest:
            del self._entries[url]
        logger.debug(f"Removed {len(oldest)} oldest icon(s), {len(self._entries)} left")

    def _sweep_loop(self):
        while not self._stop.wait(self.sweep_interval):
            try:
                self.sweep_expired()
            except Exception as e:
                logger.error(f"Icon cache sweep failed: {e}")
