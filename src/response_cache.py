"""
Gielinor Gains - Response Cache
Holds the most recent successful /items response and serves filtered views
of it while it is younger than the TTL.

Threading:
- fetch() never blocks. Cache hits return an already-completed Future,
  misses run the fetcher on a small worker pool.
- Concurrent refreshes for the same limit share one network call
  (single-flight); every caller still gets its own filtered view.
- The snapshot and its timestamp live in one immutable slot swapped under
  a lock, so readers never see one updated without the other.
- Each network fetch takes a sequence number when dispatched. A response
  only replaces the slot if it is newer than what is installed, so a slow
  request finishing late cannot overwrite fresher data.
"""

import time
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from config import RESPONSE_CACHE_TTL, FETCH_WORKERS
from item_filter import filter_items
from models import ApiResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Slot:
    response: ApiResponse    # full, unfiltered
    fetched_at: float        # clock() reading, used for the TTL
    fetched_wall: float      # epoch seconds, for display
    seq: int


def filter_response(response: ApiResponse, limit: int, min_score: float,
                    from_cache: bool = False) -> ApiResponse:
    """Filtered copy of a successful response. Failures pass through unchanged."""
    if not response.success:
        return response
    items = filter_items(response.items, min_score, limit)
    return ApiResponse.ok(items, total_items=len(items), from_cache=from_cache)


def _completed(response: ApiResponse) -> Future:
    future = Future()
    future.set_result(response)
    return future


class ResponseCache:
    """
    Single-slot TTL cache in front of an ItemsFetcher.

    Usage:
        cache = ResponseCache(ItemsFetcher())
        cache.fetch(limit=50, min_score=2.0).add_done_callback(on_items)
    """

    def __init__(self, fetcher, ttl: float = RESPONSE_CACHE_TTL,
                 max_workers: int = FETCH_WORKERS,
                 clock: Callable[[], float] = time.monotonic):
        self._fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="gains-fetch")
        self._lock = threading.Lock()
        self._slot: Optional[_Slot] = None
        self._inflight: Dict[int, Tuple[int, Future]] = {}  # limit → (seq, future)
        self._next_seq = 0
        self._installed_seq = 0   # slot (or clear_cache) watermark
        self._last_request_cached = False
        self._closed = False

    # ─── Public API ──────────────────────────────────

    def fetch(self, limit: int, min_score: float, force_refresh: bool = False) -> Future:
        """
        Return a Future resolving to the filtered ApiResponse.

        Served from memory when not forced and the cached snapshot is younger
        than the TTL; otherwise a network fetch is started (or joined).
        The Future always resolves to an ApiResponse, never an exception.
        """
        with self._lock:
            slot = self._slot
            if not force_refresh and self._is_fresh(slot):
                self._last_request_cached = True
                hit = True
            else:
                hit = False

            if not hit:
                if self._closed:
                    return _completed(ApiResponse.failure(
                        "Unexpected error: item fetcher is shut down"))
                shared = self._start_fetch(limit)

        if hit:
            logger.debug("Returning cached items data")
            return _completed(filter_response(slot.response, limit, min_score,
                                              from_cache=True))

        result = Future()
        shared.add_done_callback(
            lambda done: self._deliver(done, result, limit, min_score))
        return result

    def clear_cache(self):
        """
        Drop the snapshot. Fetches already in flight will not repopulate it,
        and fetch() calls after this start a new request instead of joining them.
        """
        with self._lock:
            self._slot = None
            self._installed_seq = self._next_seq
            # Later callers must dispatch a fetch that is allowed to install
            self._inflight.clear()
            self._last_request_cached = False
        logger.debug("Response cache cleared")

    def has_cached_data(self) -> bool:
        with self._lock:
            return self._slot is not None

    def was_last_request_cached(self) -> bool:
        with self._lock:
            return self._last_request_cached

    def last_fetch_time(self) -> float:
        """Epoch seconds of the cached snapshot, 0 when empty."""
        with self._lock:
            return self._slot.fetched_wall if self._slot else 0

    def snapshot(self) -> Optional[ApiResponse]:
        """The full, unfiltered cached response (or None)."""
        with self._lock:
            return self._slot.response if self._slot else None

    def shutdown(self, wait: bool = False):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.debug("Response cache shut down")

    # ─── Internals ───────────────────────────────────

    def _is_fresh(self, slot: Optional[_Slot]) -> bool:
        return slot is not None and (self._clock() - slot.fetched_at) < self.ttl

    def _start_fetch(self, limit: int) -> Future:
        """Join the in-flight fetch for this limit or dispatch one. Caller holds the lock."""
        entry = self._inflight.get(limit)
        if entry is not None:
            logger.debug(f"Joining in-flight fetch #{entry[0]} (limit={limit})")
            return entry[1]

        self._next_seq += 1
        seq = self._next_seq
        # The worker needs the lock to finish, so it cannot complete
        # before the in-flight entry below is recorded.
        future = self._executor.submit(self._refresh, limit, seq)
        self._inflight[limit] = (seq, future)
        return future

    def _refresh(self, limit: int, seq: int) -> ApiResponse:
        """Worker: hit the network and install the result if it is the newest."""
        try:
            response = self._fetcher.fetch(limit)
        except Exception as e:
            logger.error(f"Unexpected error fetching items: {e}", exc_info=True)
            response = ApiResponse.failure(f"Unexpected error: {e}")

        with self._lock:
            entry = self._inflight.get(limit)
            if entry is not None and entry[0] == seq:
                del self._inflight[limit]

            if response.success:
                self._last_request_cached = False
                if seq > self._installed_seq:
                    self._slot = _Slot(response, self._clock(), time.time(), seq)
                    self._installed_seq = seq
                else:
                    logger.info(f"Discarding stale response #{seq} "
                                f"(cache already holds #{self._installed_seq})")
            else:
                logger.warning(f"Fetch #{seq} failed, keeping cached data: {response.error}")

        return response

    @staticmethod
    def _deliver(shared: Future, result: Future, limit: int, min_score: float):
        try:
            response = shared.result()
        except CancelledError:
            # shutdown() cancelled a queued fetch
            response = ApiResponse.failure("Unexpected error: fetch cancelled")
        result.set_result(filter_response(response, limit, min_score))
