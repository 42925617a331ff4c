"""Shared fixtures for the Gielinor Gains test suite."""

import io
import sys
import threading
from pathlib import Path

import pytest

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from PIL import Image

from models import ApiResponse, GainsItem


# ── Helper factories ─────────────────────────────────────

def make_item(name="Test Item", score=3.0, profit=100, **kwargs):
    """Shorthand to create a GainsItem for testing."""
    fields = dict(
        id=name.lower().replace(" ", "-"),
        name=name,
        quantity=100,
        daily_volume=10_000,
        latest_low_price=1_000,
        latest_high_price=1_200,
        adjusted_low_price=1_010,
        adjusted_high_price=1_190,
        profit=profit,
        adjusted_roi=5.0,
        score=score,
    )
    fields.update(kwargs)
    return GainsItem(**fields)


def make_raw_item(**overrides):
    """One item object as the API sends it."""
    raw = {
        "id": "rune-scimitar",
        "name": "Rune scimitar",
        "icon": "https://example.com/icons/rune_scimitar.png",
        "detailIcon": "https://example.com/icons/rune_scimitar_detail.png",
        "quantity": 70,
        "limit": 70,
        "dailyVolume": 25_000,
        "latestLowPrice": 14_800,
        "latestHighPrice": 15_500,
        "adjustedLowPrice": 14_850,
        "adjustedHighPrice": 15_450,
        "profit": 1_500,
        "adjustedRoi": 3.9,
        "score": 4.2,
        "rsi": 48.5,
        "roc": -1.2,
        "timeframe": "24h",
        "sparklineData": [14_900, 15_000, 15_100.5],
        "quantityConfidence": "high",
        "quantityReasoning": "Buy limit is the bottleneck",
        "buyVolumeSupport": 0.8,
        "sellVolumeSupport": 0.75,
        "limitingFactor": "buy_limit",
        "sDataCompleteness": 0.95,
        "medianHourlyVolume": 1_040.5,
    }
    raw.update(overrides)
    return raw


def make_payload(items, total=None):
    return {"data": items, "totalItems": len(items) if total is None else total}


def png_bytes(width=32, height=32, color=(200, 30, 30, 255)):
    """Encode a solid-colour PNG."""
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


# ── Test doubles ─────────────────────────────────────────

class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeFetcher:
    """
    Stands in for ItemsFetcher.

    `responses` maps limit → ApiResponse (or an exception to raise);
    `default` is used for limits not listed. `gates` maps limit → Event
    the fetch waits on before returning.
    """

    def __init__(self, default=None, responses=None, gates=None):
        self.default = default or ApiResponse.ok([make_item()])
        self.responses = responses or {}
        self.gates = gates or {}
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def fetch(self, limit):
        with self._lock:
            self.calls.append(limit)
        gate = self.gates.get(limit)
        if gate is not None:
            assert gate.wait(5), "gate never opened"
        result = self.responses.get(limit, self.default)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()
