"""
Gielinor Gains Core - data pipeline behind the panel.

Usage:
    from core import GainsEngine

    engine = GainsEngine()
    engine.start()
    response = engine.fetch_items(limit=50, min_score=2.0).result()
"""

from core.gains_engine import GainsEngine

__all__ = [
    "GainsEngine",
]
