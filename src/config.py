"""
Gielinor Gains - Configuration
All tunable constants in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# ─────────────────────────────────────────────
# Version
# ─────────────────────────────────────────────
_version_file = Path(__file__).resolve().parent.parent / "resources" / "VERSION"
APP_VERSION = _version_file.read_text().strip() if _version_file.exists() else "dev"

# ─────────────────────────────────────────────
# Gielinor Gains API
# ─────────────────────────────────────────────
GAINS_API_BASE = os.environ.get("GAINS_API_BASE", "https://gielinorgains.com/api").rstrip("/")
GAINS_ITEMS_URL = f"{GAINS_API_BASE}/items"

USER_AGENT = f"Gielinor-Gains-Python/{APP_VERSION}"

# requests takes (connect, read); there is no separate write timeout
HTTP_CONNECT_TIMEOUT = 30
HTTP_READ_TIMEOUT = 45

# Transport-level retries on connection failure (not on HTTP status)
HTTP_CONNECT_RETRIES = 3

# ─────────────────────────────────────────────
# Response Cache
# ─────────────────────────────────────────────
# How long a successful /items response is served from memory (seconds)
RESPONSE_CACHE_TTL = 90

# Worker threads for network fetches
FETCH_WORKERS = 2

# ─────────────────────────────────────────────
# Icon Cache
# ─────────────────────────────────────────────
ICON_SIZE = 24                    # square bounding box (pixels)
ICON_CACHE_MAX_ENTRIES = 500
ICON_CACHE_TTL = 24 * 3600        # 24 hours
ICON_SWEEP_INTERVAL = 3600        # expired-entry sweep, hourly
ICON_EVICT_FRACTION = 0.2         # drop oldest 20% when over the cap
ICON_NOTIFY_WINDOW = 0.05         # coalesce load callbacks within 50ms
ICON_LOAD_WORKERS = 4
ICON_HTTP_TIMEOUT = 15
ICON_SHUTDOWN_TIMEOUT = 5.0       # wait for in-flight loads before cancelling

# ─────────────────────────────────────────────
# User Settings (defaults)
# ─────────────────────────────────────────────
DEFAULT_REFRESH_INTERVAL = 90     # seconds
DEFAULT_ITEM_LIMIT = 50
DEFAULT_MIN_SCORE = 0.0
DEFAULT_SHOW_ICONS = True

SCORE_MIN = 0.0
SCORE_MAX = 5.0

# ─────────────────────────────────────────────
# Paths
# ─────────────────────────────────────────────
DATA_DIR = Path(os.path.expanduser("~")) / ".gielinor-gains"
SETTINGS_FILE = DATA_DIR / "settings.json"

# ─────────────────────────────────────────────
# Wiki
# ─────────────────────────────────────────────
WIKI_BASE_URL = "https://oldschool.runescape.wiki/w/"

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────
LOG_LEVEL = "INFO"
LOG_FILE = DATA_DIR / "gains.log"
