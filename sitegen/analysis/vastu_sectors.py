"""
Vastu sector model
Partitions the buildable envelope into a 3x3 compass grid and assigns
placement-bias targets to requested typologies.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from shapely.geometry import Point, Polygon, box
from shapely.geometry.base import BaseGeometry

from .geometry_utils import GeometryUtils
from ..config import get_config


# (column from west, row from south) -> sector
GRID_SECTORS: Dict[Tuple[int, int], str] = {
    (0, 0): "SW", (1, 0): "S", (2, 0): "SE",
    (0, 1): "W", (1, 1): "CENTER", (2, 1): "E",
    (0, 2): "NW", (1, 2): "N", (2, 2): "NE",
}

# Heaviest construction first; the center (Brahmasthan) is never buildable
SECTOR_PRIORITY = ["SW", "S", "W", "SE", "NW", "N", "E", "NE"]

CORNER_SECTORS = ["SW", "SE", "NE", "NW"]


@dataclass
class SectorTarget:
    typology: str
    sector: Optional[str] = None
    target: Optional[Point] = None


@dataclass
class SectorPlan:
    """Typologies in placement order with their bias targets"""
    targets: List[SectorTarget] = field(default_factory=list)
    reservations: List[Polygon] = field(default_factory=list)


class VastuSectorModel:
    """
    3x3 directional grid over the bounding box of the valid area

    Usage:
        model = VastuSectorModel(envelope.valid_area)
        plan = model.plan(["hshaped", "point"], vastu=True)
    """

    def __init__(self, valid_area: Optional[BaseGeometry]):
        self.config = get_config()
        self.valid_area = valid_area
        self.cells: Dict[str, Polygon] = {}

        if valid_area is not None and not valid_area.is_empty:
            minx, miny, maxx, maxy = valid_area.bounds
            dx = (maxx - minx) / 3.0
            dy = (maxy - miny) / 3.0
            for (col, row), name in GRID_SECTORS.items():
                self.cells[name] = box(
                    minx + col * dx, miny + row * dy,
                    minx + (col + 1) * dx, miny + (row + 1) * dy
                )

    def cell(self, sector: str) -> Optional[Polygon]:
        return self.cells.get(sector)

    def sector_centroid(self, sector: str) -> Optional[Point]:
        cell = self.cells.get(sector)
        return cell.centroid if cell is not None else None

    def sector_of(self, point: Point) -> Optional[str]:
        """Compass sector containing a point (clamped to the grid)"""
        if not self.cells:
            return None
        minx, miny, maxx, maxy = self.valid_area.bounds
        dx = (maxx - minx) / 3.0 or 1.0
        dy = (maxy - miny) / 3.0 or 1.0
        col = min(2, max(0, int((point.x - minx) // dx)))
        row = min(2, max(0, int((point.y - miny) // dy)))
        return GRID_SECTORS[(col, row)]

    def center_reservation(self) -> Optional[BaseGeometry]:
        """Brahmasthan cell clipped to the valid area"""
        cell = self.cells.get("CENTER")
        if cell is None:
            return None
        return GeometryUtils.repair(cell.intersection(self.valid_area))

    def plan(self, typologies: Sequence[str], vastu: bool = False) -> SectorPlan:
        """
        Order typologies and assign bias targets

        Args:
            typologies: Requested typologies in request order
            vastu: Apply weighted sector assignment and reserve the center

        Returns:
            SectorPlan with one target per typology and any reserved polygons
        """
        typologies = list(dict.fromkeys(typologies))
        if not self.cells:
            return SectorPlan(targets=[SectorTarget(t) for t in typologies])

        if vastu:
            weights = self.config.placement.vastu_weights
            ordered = sorted(typologies, key=lambda t: -weights.get(t, 0))
            plan = SectorPlan()
            for i, typology in enumerate(ordered):
                sector = SECTOR_PRIORITY[i % len(SECTOR_PRIORITY)]
                plan.targets.append(SectorTarget(typology, sector, self.sector_centroid(sector)))
            center = self.center_reservation()
            if center is not None:
                plan.reservations.extend(GeometryUtils.polygons(center))
            logger.debug(
                "Vastu sectors: " + ", ".join(f"{t.typology}->{t.sector}" for t in plan.targets)
            )
            return plan

        # Anti-clustering: spread mixed requests over the corners
        if len(typologies) > 1 and any(t != "point" for t in typologies):
            return SectorPlan(targets=[
                SectorTarget(t, CORNER_SECTORS[i % 4], self.sector_centroid(CORNER_SECTORS[i % 4]))
                for i, t in enumerate(typologies)
            ])

        return SectorPlan(targets=[SectorTarget(t) for t in typologies])
