"""
Generators for footprints, floors and site zones
"""

from .placement import PlacementOrchestrator, PlacedFootprint
from .typologies import PlacementStrategy, PlacementResult, strategy_chain
from .utilities import UtilityAttacher, parking_capacity

__all__ = [
    "PlacementOrchestrator",
    "PlacedFootprint",
    "PlacementStrategy",
    "PlacementResult",
    "strategy_chain",
    "UtilityAttacher",
    "parking_capacity",
]
