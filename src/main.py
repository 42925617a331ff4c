"""
Gielinor Gains - Console Panel
Fetches trading opportunities and prints them as a table.

Usage:
    python main.py                        # Settings from ~/.gielinor-gains
    python main.py --limit 20 --min-score 3
    python main.py --sort profit --asc    # Sort by profit, ascending
    python main.py --watch                # Re-fetch every refresh interval
    python main.py --debug                # Verbose logging
"""

import sys
import os
import time
import logging
import argparse
from dataclasses import replace
from typing import List, Optional

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import setproctitle

from config import LOG_FILE, LOG_LEVEL
from core import GainsEngine
from item_filter import SORT_KEYS, DEFAULT_SORT, sort_items
from models import ApiResponse, GainsItem
from score_formatter import format_price, score_stars, score_text
from settings import PluginSettings, load_settings

logger = logging.getLogger("gielinor-gains")


class ConsolePanel:
    """
    Text rendition of the item panel.

    Keeps the last successful item list so a failed refresh only changes the
    status line, the way the plugin panel leaves its cards in place.
    """

    def __init__(self, engine: GainsEngine, sort_by: str = DEFAULT_SORT,
                 ascending: bool = False, out=None):
        self.engine = engine
        self.sort_by = sort_by
        self.ascending = ascending
        self._out = out or sys.stdout
        self.items: List[GainsItem] = []
        self.status = ""

    def refresh(self, force: bool = False) -> ApiResponse:
        self.status = "Fetching data..."
        response = self.engine.fetch_items(force_refresh=force).result()
        self.handle_response(response)
        return response

    def handle_response(self, response: ApiResponse):
        if response.success:
            self.items = sort_items(response.items, self.sort_by, self.ascending)
            source = "cached" if response.from_cache else "fresh"
            self.status = f"Loaded {len(self.items)} items ({source})"
            logger.info(f"Successfully loaded {len(self.items)} items")
        else:
            error = response.error or "Unknown error"
            self.status = f"Error: {error}"
            logger.error(f"Failed to load items: {error}")

    def render(self):
        out = self._out
        out.write(f"{'#':>3}  {'Item':<28} {'Score':<10} {'Buy / Sell':<25} "
                  f"{'Profit':>8} {'ROI':>7} {'Volume':>9}\n")
        out.write("-" * 96 + "\n")
        for rank, item in enumerate(self.items, 1):
            score = f"{score_text(item.score)} {score_stars(item.score)}"
            out.write(
                f"{rank:>3}  {item.name[:28]:<28} {score:<10} {item.price_range:<25} "
                f"{format_price(item.profit):>8} {item.adjusted_roi:>6.1f}% "
                f"{format_price(item.daily_volume):>9}\n"
            )
        out.write(f"\n{self.status}\n")
        out.flush()


# ─── Entry Point ─────────────────────────────────────

def setup_logging(debug: bool = False):
    """Configure logging.

    Console shows INFO+ with a short format; the log file gets DEBUG
    when --debug is used.
    """
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else getattr(logging, LOG_LEVEL))
    console.setFormatter(logging.Formatter(
        "%(asctime)s %(message)s",
        datefmt="%H:%M:%S"
    ))

    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(console)
    root_logger.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gielinor Gains - trading opportunities in your terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                          # Use saved settings
  python main.py --min-score 3.5          # Only strong opportunities
  python main.py --sort name --asc        # Alphabetical
  python main.py --watch --debug          # Keep refreshing, verbose log
        """
    )
    parser.add_argument("--limit", "-n", type=int,
                        help="Maximum number of items to show")
    parser.add_argument("--min-score", "-m", type=float,
                        help="Only show items with score >= this value (0-5)")
    parser.add_argument("--sort", "-s", default=DEFAULT_SORT,
                        choices=sorted(SORT_KEYS),
                        help=f"Sort field (default: {DEFAULT_SORT})")
    parser.add_argument("--asc", action="store_true",
                        help="Sort ascending instead of descending")
    parser.add_argument("--force", "-f", action="store_true",
                        help="Bypass the response cache on the first fetch")
    parser.add_argument("--watch", "-w", action="store_true",
                        help="Re-fetch every refresh interval until Ctrl+C")
    parser.add_argument("--debug", "-d", action="store_true",
                        help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setproctitle.setproctitle("gielinor-gains")

    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    settings = load_settings()
    overrides = {}
    if args.limit is not None:
        overrides["item_limit"] = args.limit
    if args.min_score is not None:
        overrides["min_score"] = args.min_score
    if overrides:
        settings = PluginSettings.from_dict({**settings.to_dict(), **overrides})
    # Console has nowhere to draw icons
    settings = replace(settings, show_icons=False)

    engine = GainsEngine(settings=settings)
    panel = ConsolePanel(engine, sort_by=args.sort, ascending=args.asc)
    try:
        engine.start()
        response = panel.refresh(force=args.force)
        panel.render()
        while args.watch:
            time.sleep(settings.refresh_interval)
            response = panel.refresh()
            panel.render()
        return 0 if response.success else 1
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        engine.shutdown()


if __name__ == "__main__":
    sys.exit(main())
