"""Tests for icon_cache.py - async loads, expiry, eviction, batched callbacks."""

import queue
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from icon_cache import IconCache, NotificationBatcher, scale_to_box
from conftest import png_bytes

URL = "https://example.com/icons/rune_scimitar.png"


def _ok_response(content=None):
    resp = MagicMock()
    resp.content = content if content is not None else png_bytes()
    return resp


@pytest.fixture
def session():
    s = MagicMock()
    s.get.return_value = _ok_response()
    return s


@pytest.fixture
def icons(session, clock):
    cache = IconCache(session=session, clock=clock, notify_window=0.01)
    yield cache
    cache.shutdown(timeout=1)


# ── scale_to_box ─────────────────────────────────────────

def test_scale_wide_image_is_centred_vertically():
    img = scale_to_box(Image.new("RGB", (48, 24), (0, 0, 255)), 24)
    assert img.size == (24, 24)
    assert img.mode == "RGBA"
    assert img.getpixel((12, 12))[3] == 255
    assert img.getpixel((12, 0))[3] == 0      # letterbox band above
    assert img.getpixel((12, 23))[3] == 0     # and below


def test_scale_tall_image_is_centred_horizontally():
    img = scale_to_box(Image.new("RGBA", (10, 40), (0, 255, 0, 255)), 24)
    assert img.size == (24, 24)
    assert img.getpixel((12, 5))[3] == 255
    assert img.getpixel((0, 12))[3] == 0
    assert img.getpixel((23, 12))[3] == 0


def test_scale_small_square_upscales_to_box():
    img = scale_to_box(Image.new("RGBA", (8, 8), (9, 9, 9, 255)), 24)
    assert img.getpixel((0, 0))[3] == 255
    assert img.getpixel((23, 23))[3] == 255


# ── Loading ──────────────────────────────────────────────

def test_miss_returns_none_then_loads(icons, session):
    loaded = threading.Event()
    received = []

    def on_loaded(img):
        received.append(img)
        loaded.set()

    assert icons.get_icon(URL, on_loaded) is None
    assert loaded.wait(5)

    img = received[0]
    assert img.size == (24, 24)
    assert icons.get_icon(URL) is img
    assert session.get.call_count == 1


def test_empty_url_is_ignored(icons, session):
    assert icons.get_icon("") is None
    assert icons.get_icon(None) is None
    assert session.get.call_count == 0


def test_same_url_twice_loads_once(icons, session):
    release = threading.Event()

    def slow_get(url, timeout):
        release.wait(5)
        return _ok_response()

    session.get.side_effect = slow_get
    done = []
    all_done = threading.Event()

    def on_loaded(img):
        done.append(img)
        if len(done) == 2:
            all_done.set()

    icons.get_icon(URL, on_loaded)
    icons.get_icon(URL, on_loaded)     # joins the in-flight load
    release.set()

    assert all_done.wait(5)
    assert session.get.call_count == 1
    assert done[0] is done[1]


def test_download_failure_leaves_cache_unchanged(icons, session):
    session.get.side_effect = requests.ConnectionError("offline")
    callback = MagicMock()

    assert icons.get_icon(URL, callback) is None
    assert icons.wait_for_loads(5)
    assert not icons.contains(URL)
    assert icons.size() == 0

    # next access retries
    session.get.side_effect = None
    icons.get_icon(URL)
    assert icons.wait_for_loads(5)
    assert session.get.call_count == 2
    assert icons.contains(URL)
    time.sleep(0.05)
    callback.assert_not_called()


def test_http_error_status_is_a_failure(icons, session):
    resp = _ok_response()
    resp.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    session.get.return_value = resp

    icons.get_icon(URL)
    assert icons.wait_for_loads(5)
    assert not icons.contains(URL)


def test_undecodable_bytes_are_a_failure(icons, session):
    session.get.return_value = _ok_response(content=b"<html>not an image</html>")
    icons.get_icon(URL)
    assert icons.wait_for_loads(5)
    assert not icons.contains(URL)


# ── Expiry ───────────────────────────────────────────────

def test_expired_entry_is_returned_while_reloading(icons, session, clock):
    icons.get_icon(URL)
    assert icons.wait_for_loads(5)
    first = icons.get_icon(URL)

    clock.advance(icons.ttl + 1)
    assert not icons.contains(URL)
    assert icons.get_icon(URL) is first     # stale image, reload scheduled
    assert icons.wait_for_loads(5)
    assert session.get.call_count == 2
    assert icons.contains(URL)


def test_sweep_removes_only_expired(icons, clock):
    icons.get_icon("https://example.com/a.png")
    assert icons.wait_for_loads(5)
    clock.advance(icons.ttl - 10)
    icons.get_icon("https://example.com/b.png")
    assert icons.wait_for_loads(5)

    clock.advance(20)
    assert icons.sweep_expired() == 1
    assert icons.size() == 1
    assert icons.contains("https://example.com/b.png")


def test_background_sweeper_runs(session, clock):
    cache = IconCache(session=session, clock=clock, sweep_interval=0.02)
    try:
        cache.start()
        cache.get_icon(URL)
        assert cache.wait_for_loads(5)
        clock.advance(cache.ttl + 1)
        deadline = time.time() + 5
        while cache.size() and time.time() < deadline:
            time.sleep(0.01)
        assert cache.size() == 0
    finally:
        cache.shutdown(timeout=1)


# ── Capacity eviction ────────────────────────────────────

@pytest.mark.parametrize("cap, evicted", [(5, 1), (10, 2)])
def test_insert_past_cap_evicts_oldest_fifth(session, clock, cap, evicted):
    cache = IconCache(session=session, clock=clock, max_entries=cap)
    urls = [f"https://example.com/{i}.png" for i in range(cap + 1)]
    try:
        for i, url in enumerate(urls):
            clock.now = 1000.0 + i
            cache.get_icon(url)
            assert cache.wait_for_loads(5)

        assert cache.size() == cap + 1 - evicted
        for url in urls[:evicted]:
            assert not cache.contains(url)
        for url in urls[evicted:]:
            assert cache.contains(url)
    finally:
        cache.shutdown(timeout=1)


# ── Notification batching ────────────────────────────────

def test_batcher_coalesces_callbacks_into_one_dispatch():
    batches = []
    flushed = threading.Event()

    def dispatcher(fn):
        batches.append(fn)
        flushed.set()

    batcher = NotificationBatcher(window=0.05, dispatcher=dispatcher)
    seen = []
    for n in range(3):
        batcher.submit(seen.append, n)

    assert flushed.wait(5)
    assert len(batches) == 1
    batches[0]()
    assert seen == [0, 1, 2]


def test_batcher_isolates_failing_callback():
    seen = []
    done = threading.Event()

    def boom(_):
        raise RuntimeError("callback bug")

    batcher = NotificationBatcher(window=0.01)
    batcher.submit(boom, 1)
    batcher.submit(seen.append, 2)
    batcher.submit(lambda _: done.set(), 3)

    assert done.wait(5)
    assert seen == [2]


def test_batcher_close_drops_pending():
    callback = MagicMock()
    batcher = NotificationBatcher(window=0.05)
    batcher.submit(callback, 1)
    batcher.close()
    batcher.submit(callback, 2)
    time.sleep(0.15)
    callback.assert_not_called()


def test_callbacks_run_on_dispatcher_thread(session, clock):
    # Stand-in for tkinter's root.after(): the "UI thread" drains a queue
    ui_queue = queue.Queue()
    cache = IconCache(session=session, clock=clock, notify_window=0.01,
                      dispatcher=ui_queue.put)
    threads = []
    try:
        cache.get_icon("https://example.com/a.png", lambda img: threads.append(threading.current_thread()))
        cache.get_icon("https://example.com/b.png", lambda img: threads.append(threading.current_thread()))
        assert cache.wait_for_loads(5)

        run_batch = ui_queue.get(timeout=5)
        run_batch()
        while len(threads) < 2:
            ui_queue.get(timeout=5)()
        assert threads == [threading.current_thread()] * 2
    finally:
        cache.shutdown(timeout=1)


# ── Shutdown ─────────────────────────────────────────────

def test_shutdown_releases_entries_and_stops_scheduling(session, clock):
    cache = IconCache(session=session, clock=clock)
    cache.start()
    cache.get_icon(URL)
    assert cache.wait_for_loads(5)
    assert cache.size() == 1

    cache.shutdown(timeout=1)
    assert cache.size() == 0
    assert cache.get_icon(URL) is None
    assert session.get.call_count == 1

    cache.shutdown(timeout=1)   # second call is a no-op


def test_shutdown_waits_for_in_flight_load(session, clock):
    release = threading.Event()

    def slow_get(url, timeout):
        release.wait(5)
        return _ok_response()

    session.get.side_effect = slow_get
    callback = MagicMock()
    cache = IconCache(session=session, clock=clock)
    cache.get_icon(URL, callback)

    threading.Timer(0.05, release.set).start()
    started = time.time()
    cache.shutdown(timeout=2)
    assert time.time() - started < 2
    # the load finished after shutdown began: nothing stored, nobody notified
    assert cache.size() == 0
    time.sleep(0.05)
    callback.assert_not_called()


def test_shutdown_timeout_covers_sweeper_and_loads_together(session, clock):
    release = threading.Event()

    def slow_get(url, timeout):
        release.wait(5)
        return _ok_response()

    session.get.side_effect = slow_get
    cache = IconCache(session=session, clock=clock, sweep_interval=0.01)
    sweeping = threading.Event()

    def slow_sweep():
        sweeping.set()
        time.sleep(1.0)
        return 0

    cache.sweep_expired = slow_sweep
    try:
        cache.start()
        assert sweeping.wait(5)
        cache.get_icon(URL)

        started = time.monotonic()
        cache.shutdown(timeout=0.3)
        elapsed = time.monotonic() - started
        # one shared budget, not 0.3s for the sweeper plus 0.3s for loads
        assert elapsed < 0.5
    finally:
        release.set()
