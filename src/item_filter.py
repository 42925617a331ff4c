"""
Gielinor Gains - Item Filter
Score threshold + result limit applied to a snapshot, and the stable
field sort used by the panel before display.
"""

import logging
from typing import Iterable, List

from models import GainsItem

logger = logging.getLogger(__name__)

# Sort field → key function. "score" is the fallback for unknown fields.
SORT_KEYS = {
    "score": lambda item: item.score,
    "profit": lambda item: item.profit,
    "roi": lambda item: item.adjusted_roi,
    "volume": lambda item: item.daily_volume,
    "name": lambda item: item.name.lower(),
}

DEFAULT_SORT = "score"


def filter_items(items: Iterable[GainsItem], min_score: float, limit: int) -> List[GainsItem]:
    """
    Keep items with score >= min_score, in their original order,
    then truncate to at most `limit` entries.
    """
    if limit <= 0:
        return []

    result = []
    for item in items:
        if item.score >= min_score:
            result.append(item)
            if len(result) >= limit:
                break
    return result


def sort_items(items: Iterable[GainsItem], sort_by: str = DEFAULT_SORT,
               ascending: bool = False) -> List[GainsItem]:
    """
    Stable sort by one of SORT_KEYS. Equal keys keep their original order
    in both directions (sorted() with reverse=True is still stable).
    """
    field_name = (sort_by or DEFAULT_SORT).lower()
    key = SORT_KEYS.get(field_name)
    if key is None:
        logger.debug(f"Unknown sort field '{sort_by}', using {DEFAULT_SORT}")
        key = SORT_KEYS[DEFAULT_SORT]
    return sorted(items, key=key, reverse=not ascending)
