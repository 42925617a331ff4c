"""
Gielinor Gains - Data Model
Trading-opportunity records and the /items response snapshot.

The API payload is validated against a strict schema: required fields must
be present and well-typed, optional fields may be absent or null. A document
that breaks the schema is rejected as a whole (ItemSchemaError), never
patched up with silent defaults.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

from config import SCORE_MIN, SCORE_MAX


class ItemSchemaError(ValueError):
    """Raised when an /items payload does not match the expected schema."""


@dataclass(frozen=True)
class GainsItem:
    """One trading opportunity as returned by the Gielinor Gains API."""
    id: str
    name: str
    quantity: int
    daily_volume: int
    latest_low_price: int
    latest_high_price: int
    adjusted_low_price: int
    adjusted_high_price: int
    profit: int
    adjusted_roi: float
    score: float                         # raw API value, may fall outside 0-5
    icon: Optional[str] = None
    detail_icon: Optional[str] = None
    limit: Optional[int] = None          # GE buy limit
    rsi: Optional[float] = None
    roc: Optional[float] = None
    timeframe: Optional[str] = None
    sparkline_data: Tuple[float, ...] = ()
    quantity_confidence: Optional[str] = None
    quantity_reasoning: Optional[str] = None
    buy_volume_support: Optional[float] = None
    sell_volume_support: Optional[float] = None
    limiting_factor: Optional[str] = None
    s_data_completeness: Optional[float] = None
    median_hourly_volume: Optional[float] = None

    @property
    def display_score(self) -> float:
        """Score clamped to the 0-5 display range."""
        return max(SCORE_MIN, min(SCORE_MAX, self.score))

    @property
    def price_range(self) -> str:
        return f"{self.adjusted_low_price:,} - {self.adjusted_high_price:,}"


@dataclass(frozen=True)
class ApiResponse:
    """
    One /items result: either a success carrying items, or a failure
    carrying an error message. Use ApiResponse.ok / ApiResponse.failure.
    """
    data: Optional[Tuple[GainsItem, ...]] = None
    total_items: int = 0
    success: bool = False
    error: Optional[str] = None
    from_cache: bool = False
    created_at: float = field(default_factory=time.time)

    @classmethod
    def ok(cls, items: Sequence[GainsItem], total_items: Optional[int] = None,
           from_cache: bool = False) -> "ApiResponse":
        items = tuple(items)
        return cls(
            data=items,
            total_items=len(items) if total_items is None else total_items,
            success=True,
            from_cache=from_cache,
        )

    @classmethod
    def failure(cls, error: str) -> "ApiResponse":
        return cls(data=None, total_items=0, success=False,
                   error=error or "Unknown error")

    @property
    def items(self) -> Tuple[GainsItem, ...]:
        """Items of a successful response, empty tuple for a failure."""
        return self.data or ()


# ─── Schema ──────────────────────────────────────

# json key → (attribute, kind, required)
_ITEM_FIELDS = (
    ("id",                 "id",                   "id",     True),
    ("name",               "name",                 "str",    True),
    ("quantity",           "quantity",             "int",    True),
    ("dailyVolume",        "daily_volume",         "int",    True),
    ("latestLowPrice",     "latest_low_price",     "int",    True),
    ("latestHighPrice",    "latest_high_price",    "int",    True),
    ("adjustedLowPrice",   "adjusted_low_price",   "int",    True),
    ("adjustedHighPrice",  "adjusted_high_price",  "int",    True),
    ("profit",             "profit",               "int",    True),
    ("adjustedRoi",        "adjusted_roi",         "float",  True),
    ("score",              "score",                "float",  True),
    ("icon",               "icon",                 "str",    False),
    ("detailIcon",         "detail_icon",          "str",    False),
    ("limit",              "limit",                "int",    False),
    ("rsi",                "rsi",                  "float",  False),
    ("roc",                "roc",                  "float",  False),
    ("timeframe",          "timeframe",            "str",    False),
    ("sparklineData",      "sparkline_data",       "floats", False),
    ("quantityConfidence", "quantity_confidence",  "str",    False),
    ("quantityReasoning",  "quantity_reasoning",   "str",    False),
    ("buyVolumeSupport",   "buy_volume_support",   "float",  False),
    ("sellVolumeSupport",  "sell_volume_support",  "float",  False),
    ("limitingFactor",     "limiting_factor",      "str",    False),
    ("sDataCompleteness",  "s_data_completeness",  "float",  False),
    ("medianHourlyVolume", "median_hourly_volume", "float",  False),
)


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false is never a number here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce(key: str, kind: str, value: Any):
    if kind == "str":
        if not isinstance(value, str):
            raise ItemSchemaError(f"'{key}' must be a string, got {type(value).__name__}")
        return value

    if kind == "id":
        if isinstance(value, str) and value:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        raise ItemSchemaError(f"'{key}' must be a non-empty string or integer")

    if kind == "int":
        if not _is_number(value):
            raise ItemSchemaError(f"'{key}' must be an integer, got {type(value).__name__}")
        if isinstance(value, float):
            if not value.is_integer():
                raise ItemSchemaError(f"'{key}' must be an integer, got {value}")
            return int(value)
        return value

    if kind == "float":
        if not _is_number(value):
            raise ItemSchemaError(f"'{key}' must be a number, got {type(value).__name__}")
        return float(value)

    if kind == "floats":
        if not isinstance(value, list):
            raise ItemSchemaError(f"'{key}' must be an array of numbers")
        if not all(_is_number(v) for v in value):
            raise ItemSchemaError(f"'{key}' contains a non-numeric value")
        return tuple(float(v) for v in value)

    raise ValueError(f"unknown field kind {kind!r}")


def parse_item(raw: Any) -> GainsItem:
    """Validate one item object from the API and build a GainsItem."""
    if not isinstance(raw, dict):
        raise ItemSchemaError(f"item must be an object, got {type(raw).__name__}")

    kwargs = {}
    for key, attr, kind, required in _ITEM_FIELDS:
        value = raw.get(key)
        if value is None:
            if required:
                raise ItemSchemaError(f"missing required field '{key}'")
            continue
        kwargs[attr] = _coerce(key, kind, value)

    return GainsItem(**kwargs)


def parse_envelope(payload: Any) -> ApiResponse:
    """
    Parse the /items envelope {"data": [...], "totalItems": n}.

    Missing or null "data" is a schema failure; a missing "totalItems"
    falls back to the number of items received.
    """
    if not isinstance(payload, dict):
        raise ItemSchemaError("response body must be a JSON object")

    data = payload.get("data")
    if data is None:
        raise ItemSchemaError("missing 'data' array")
    if not isinstance(data, list):
        raise ItemSchemaError("'data' must be an array")

    items = []
    for index, raw in enumerate(data):
        try:
            items.append(parse_item(raw))
        except ItemSchemaError as e:
            raise ItemSchemaError(f"item {index}: {e}") from e

    total = payload.get("totalItems")
    if total is None:
        total = len(items)
    elif not isinstance(total, int) or isinstance(total, bool):
        raise ItemSchemaError("'totalItems' must be an integer")

    return ApiResponse.ok(items, total_items=total)
