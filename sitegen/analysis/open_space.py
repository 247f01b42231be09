"""
Open-space resolver
Derives residual green space by robust polygon subtraction. Always recomputed
from scratch, never patched.
"""

from typing import List, Optional, Sequence

from loguru import logger
from shapely.geometry.base import BaseGeometry

from .geometry_utils import GeometryUtils
from ..config import get_config
from ..models import Building, GreenArea, ParkingArea, UtilityArea


class OpenSpaceResolver:
    """
    Base minus buildings, then non-peripheral utilities, then non-peripheral parking

    Usage:
        resolver = OpenSpaceResolver()
        greens = resolver.resolve(base, plot.buildings, plot.utility_areas, plot.parking_areas)
    """

    def __init__(self):
        self.config = get_config()
        self.settings = self.config.open_space

    def resolve(
        self,
        base: Optional[BaseGeometry],
        buildings: Sequence[Building],
        utility_areas: Sequence[UtilityArea] = (),
        parking_areas: Sequence[ParkingArea] = (),
    ) -> List[GreenArea]:
        """
        Compute green areas

        Args:
            base: Setback- and peripheral-adjusted buildable polygon(s)
            buildings: All buildings on the plot
            utility_areas: Utility zones; peripheral ones are skipped
            parking_areas: Parking zones; peripheral ones are skipped

        Returns:
            One GreenArea per surviving fragment
        """
        if base is None or base.is_empty:
            return []

        eps = self.settings.subtract_epsilon_m
        remaining = GeometryUtils.robust_subtract(base, GeometryUtils.geometry_of(buildings), eps)
        remaining = GeometryUtils.robust_subtract(
            remaining,
            GeometryUtils.geometry_of(u for u in utility_areas if not u.peripheral),
            eps,
        )
        remaining = GeometryUtils.robust_subtract(
            remaining,
            GeometryUtils.geometry_of(p for p in parking_areas if not p.peripheral),
            eps,
        )

        fragments = GeometryUtils.explode(remaining)
        kept = [f for f in fragments if f.area >= self.settings.min_fragment_area_sqm]
        if len(kept) < len(fragments):
            logger.debug(f"Discarded {len(fragments) - len(kept)} sliver(s)")

        greens = []
        for i, fragment in enumerate(kept, 1):
            geometry, centroid, area = GeometryUtils.describe(fragment)
            greens.append(GreenArea(
                name=f"Green Area {i}",
                geometry=geometry,
                centroid=centroid,
                area=area,
            ))
        return greens
