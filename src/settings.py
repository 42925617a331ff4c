"""
Gielinor Gains - User Settings
settings.json under the data dir, merged over DEFAULT_SETTINGS.
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from config import (
    SETTINGS_FILE,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_ITEM_LIMIT,
    DEFAULT_MIN_SCORE,
    DEFAULT_SHOW_ICONS,
    SCORE_MIN,
    SCORE_MAX,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "refresh_interval": DEFAULT_REFRESH_INTERVAL,
    "item_limit": DEFAULT_ITEM_LIMIT,
    "min_score": DEFAULT_MIN_SCORE,
    "show_icons": DEFAULT_SHOW_ICONS,
}


@dataclass
class PluginSettings:
    """User-tunable options read by the engine and the panel."""
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL   # seconds
    item_limit: int = DEFAULT_ITEM_LIMIT
    min_score: float = DEFAULT_MIN_SCORE                # 0-5
    show_icons: bool = DEFAULT_SHOW_ICONS

    @classmethod
    def from_dict(cls, data: dict) -> "PluginSettings":
        """Build from a settings dict, replacing out-of-range values."""
        merged = dict(DEFAULT_SETTINGS)
        merged.update(data or {})

        try:
            refresh = int(merged["refresh_interval"])
        except (TypeError, ValueError):
            refresh = DEFAULT_REFRESH_INTERVAL
        if refresh < 1:
            refresh = DEFAULT_REFRESH_INTERVAL

        try:
            limit = int(merged["item_limit"])
        except (TypeError, ValueError):
            limit = DEFAULT_ITEM_LIMIT
        if limit < 1:
            limit = DEFAULT_ITEM_LIMIT

        try:
            min_score = float(merged["min_score"])
        except (TypeError, ValueError):
            min_score = DEFAULT_MIN_SCORE
        min_score = max(SCORE_MIN, min(SCORE_MAX, min_score))

        show_icons = merged["show_icons"]
        if not isinstance(show_icons, bool):
            show_icons = DEFAULT_SHOW_ICONS

        return cls(
            refresh_interval=refresh,
            item_limit=limit,
            min_score=min_score,
            show_icons=show_icons,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings(path: Optional[Path] = None) -> PluginSettings:
    """Load settings from disk, merging with defaults."""
    path = path or SETTINGS_FILE
    saved = {}
    if path.exists():
        try:
            with open(path) as f:
                saved = json.load(f)
            if not isinstance(saved, dict):
                logger.warning(f"Ignoring settings file {path}: not a JSON object")
                saved = {}
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load settings: {e}")
            saved = {}
    return PluginSettings.from_dict(saved)


def save_settings(settings: PluginSettings, path: Optional[Path] = None):
    """Persist settings to disk."""
    path = path or SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w") as f:
            json.dump(settings.to_dict(), f, indent=2)
    except OSError as e:
        logger.warning(f"Failed to save settings: {e}")
