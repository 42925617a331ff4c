"""
Gielinor Gains - Score & Price Formatting
Display helpers shared by the panel: clamped score text, score colour,
star rating, and compact GP amounts.
"""

from typing import Tuple
from urllib.parse import quote

from config import SCORE_MIN, SCORE_MAX, WIKI_BASE_URL

Color = Tuple[int, int, int]

# (score, rgb) colour stops, matching the website's item cards
COLOR_STOPS = (
    (0, (0xdc, 0x26, 0x26)),   # red-600
    (1, (0xea, 0x58, 0x0c)),   # orange-500
    (2, (0xf5, 0x9e, 0x0b)),   # amber-500
    (3, (0x84, 0xcc, 0x16)),   # lime-500
    (4, (0x22, 0xc5, 0x5e)),   # green-500
    (5, (0x16, 0xa3, 0x4a)),   # green-600
)

ZERO_SCORE_COLOR = (0xa8, 0xa2, 0x9e)   # stone-400


def clamp_score(score: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, score))


def score_color(score: float) -> Color:
    """Interpolate between the colour stops; exactly 0 is grey."""
    s = clamp_score(score)
    if s == 0:
        return ZERO_SCORE_COLOR

    for (lo_val, lo_rgb), (hi_val, hi_rgb) in zip(COLOR_STOPS, COLOR_STOPS[1:]):
        if lo_val <= s <= hi_val:
            frac = (s - lo_val) / (hi_val - lo_val)
            return tuple(
                max(0, min(255, round(a + (b - a) * frac)))
                for a, b in zip(lo_rgb, hi_rgb)
            )
    return COLOR_STOPS[-1][1]


def score_hex(score: float) -> str:
    """score_color as '#rrggbb' (tkinter-friendly)."""
    return "#%02x%02x%02x" % score_color(score)


def score_text(score: float) -> str:
    return f"{clamp_score(score):.1f}"


def score_stars(score: float) -> str:
    """One ★ per whole point, plus ☆ for a remaining half point."""
    s = clamp_score(score)
    full = int(s)
    stars = "★" * full
    if s - full >= 0.5 and full < 5:
        stars += "☆"
    return stars


def format_price(price: int) -> str:
    """Compact GP amount: 1.2M, 3.4K, 950."""
    if abs(price) >= 1_000_000:
        return f"{price / 1_000_000:.1f}M"
    if abs(price) >= 1_000:
        return f"{price / 1_000:.1f}K"
    return str(price)


def format_full_price(price: int) -> str:
    """GP amount with thousands separators: 1,234,567."""
    return f"{price:,}"


def wiki_url(item_name: str) -> str:
    """OSRS wiki page for an item ("Rune scimitar" → .../w/Rune_scimitar)."""
    return WIKI_BASE_URL + quote(item_name.strip().replace(" ", "_"))
