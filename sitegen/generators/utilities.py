"""
Utility and parking attachment
Turns abstract utility and parking requests into building floors and site zones.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from shapely.geometry import Polygon, box
from shapely.geometry.base import BaseGeometry

from ..analysis.geometry_utils import GeometryUtils
from ..analysis.setback_calculator import EnvelopeResult
from ..config import get_config
from ..errors import NoticeCode
from ..models import (
    Building, Floor, FloorKind, IntendedUse, Notice, ParkingArea, ParkingType,
    UtilityArea, UtilityType, EXTERNAL_UTILITIES,
)
from .colors import PARKING_COLOR, utility_color
from .floors import is_basement, restack

# Preferred anchor per external utility; remaining anchors are tried in ANCHOR_ORDER
VASTU_ANCHORS = {
    UtilityType.WATER: "NE",
    UtilityType.STP: "NW",
    UtilityType.WTP: "SE",
    UtilityType.FIRE: "SE",
    UtilityType.GAS: "S",
}
DEFAULT_ANCHORS = {
    UtilityType.WATER: "NW",
    UtilityType.STP: "SE",
    UtilityType.WTP: "SW",
    UtilityType.FIRE: "E",
    UtilityType.GAS: "W",
}
ANCHOR_ORDER = ["SW", "SE", "NE", "NW", "S", "E", "N", "W"]


@dataclass
class ExternalZones:
    areas: List[UtilityArea] = field(default_factory=list)
    volumes: List[Building] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)


def parking_capacity(area: float, efficiency: float, space_size: float) -> int:
    """Spaces that fit into an area at the given efficiency"""
    if area <= 0 or space_size <= 0:
        return 0
    return int(math.floor(area * efficiency / space_size))


class UtilityAttacher:
    """
    Attach internal utilities and structured parking to buildings and lay out
    peripheral and external zones on the site
    """

    def __init__(self, space_size: Optional[float] = None):
        self.config = get_config()
        self.parking = self.config.parking
        self.utilities = self.config.utilities
        self.space_size = space_size or self.parking.space_size_sqm

    # ============================================================
    # Building floors
    # ============================================================

    def attach_internal(self, building: Building, utilities: Sequence[UtilityType]) -> Building:
        """HVAC goes on the roof, Electrical at the base"""
        floors = list(building.floors)
        present = {f.utility_type for f in floors if f.kind == FloorKind.UTILITY}

        if UtilityType.ELECTRICAL in utilities and UtilityType.ELECTRICAL not in present:
            idx = sum(1 for f in floors if is_basement(f))
            floors.insert(idx, self._utility_floor(UtilityType.ELECTRICAL))
        if UtilityType.HVAC in utilities and UtilityType.HVAC not in present:
            floors.append(self._utility_floor(UtilityType.HVAC))

        return restack(building.model_copy(update={"floors": floors}))

    def attach_parking(self, building: Building, parking_types: Sequence[ParkingType]) -> Building:
        """Basement levels for underground parking, a grade floor for stilt/podium"""
        floors = list(building.floors)
        existing = {f.parking_type for f in floors if f.kind == FloorKind.PARKING}
        capacity = parking_capacity(building.area, self.parking.efficiency, self.space_size)

        if ParkingType.UNDERGROUND in parking_types and ParkingType.UNDERGROUND not in existing:
            basements = [
                Floor(
                    height=self.parking.basement_floor_height_m,
                    color=PARKING_COLOR,
                    kind=FloorKind.PARKING,
                    parking_type=ParkingType.UNDERGROUND,
                    parking_capacity=capacity,
                )
                for _ in range(self.parking.basement_levels)
            ]
            floors[0:0] = basements

        for grade_type in (ParkingType.STILT, ParkingType.PODIUM):
            if grade_type not in parking_types or existing & {ParkingType.STILT, ParkingType.PODIUM}:
                continue
            if not self.parking.allow_stilt:
                logger.info(f"{grade_type.value} parking disabled by policy for {building.name}")
                break
            idx = sum(1 for f in floors if is_basement(f))
            floors.insert(idx, Floor(
                height=building.typical_floor_height,
                color=PARKING_COLOR,
                kind=FloorKind.PARKING,
                parking_type=grade_type,
                parking_capacity=capacity,
            ))
            break

        return restack(building.model_copy(update={"floors": floors}))

    def _utility_floor(self, utility_type: UtilityType) -> Floor:
        return Floor(
            height=self.utilities.internal_floor_height_m.get(utility_type.value, 3.0),
            color=utility_color(utility_type),
            kind=FloorKind.UTILITY,
            utility_type=utility_type,
        )

    # ============================================================
    # Peripheral zones
    # ============================================================

    def surface_parking(
        self,
        envelope: EnvelopeResult,
        occupied: Sequence[BaseGeometry] = (),
    ) -> List[ParkingArea]:
        """
        Surface ParkingArea records

        Peripheral areas come from the parking ring. Without a ring, one
        plot-level area takes the largest fragment of the valid area left
        free by the occupied geometries.
        """
        ring_parts = GeometryUtils.explode(envelope.parking_zone, min_area=1.0)
        if ring_parts:
            return [self._parking_area(part, "Peripheral Parking", peripheral=True) for part in ring_parts]

        leftover = GeometryUtils.robust_subtract(envelope.valid_area, occupied, epsilon=0.0)
        largest = GeometryUtils.largest_polygon(leftover)
        if largest is None or parking_capacity(largest.area, self.parking.efficiency, self.space_size) == 0:
            logger.debug("No free fragment large enough for plot-level parking")
            return []
        return [self._parking_area(largest, "Surface Parking", peripheral=False)]

    def _parking_area(self, part: Polygon, name: str, peripheral: bool) -> ParkingArea:
        geometry, centroid, area = GeometryUtils.describe(part)
        return ParkingArea(
            name=name,
            geometry=geometry,
            centroid=centroid,
            area=area,
            parking_type=ParkingType.SURFACE,
            capacity=parking_capacity(part.area, self.parking.efficiency, self.space_size),
            efficiency=self.parking.efficiency,
            peripheral=peripheral,
        )

    def road_zone(self, envelope: EnvelopeResult) -> List[UtilityArea]:
        areas = []
        for part in GeometryUtils.explode(envelope.road_zone, min_area=1.0):
            geometry, centroid, area = GeometryUtils.describe(part)
            areas.append(UtilityArea(
                name="Peripheral Road",
                geometry=geometry,
                centroid=centroid,
                area=area,
                utility_type=UtilityType.ROADS,
                peripheral=True,
            ))
        return areas

    # ============================================================
    # External zones
    # ============================================================

    def external_zones(
        self,
        envelope: EnvelopeResult,
        buildings: Sequence[BaseGeometry],
        utilities: Sequence[UtilityType],
        vastu: bool = False,
    ) -> ExternalZones:
        """
        Fixed-size squares anchored at corners and edge midpoints of the buildable box

        Args:
            envelope: Buildable envelope; zones must lie inside its valid area
            buildings: Footprints zones must not overlap
            utilities: Requested utilities (non-external ones are ignored)
            vastu: Use vastu anchor preferences

        Returns:
            ExternalZones with areas, optional volumes and failure notices
        """
        out = ExternalZones()
        requested = [u for u in EXTERNAL_UTILITIES if u in utilities]
        if not requested:
            return out

        container = envelope.valid_area
        if container is None or container.is_empty:
            for utility in requested:
                out.notices.append(self._failure(utility, "no buildable area"))
            return out

        preferred = VASTU_ANCHORS if vastu else DEFAULT_ANCHORS
        blocked: List[BaseGeometry] = list(buildings)

        for utility in requested:
            size = self.utilities.zone_sizes_m[utility.value]
            zone = self._anchor_zone(container, blocked, size, preferred[utility])
            if zone is None:
                logger.warning(f"Could not place {utility.value} zone ({size}m)")
                out.notices.append(self._failure(utility, "no free anchor"))
                continue

            blocked.append(zone)
            geometry, centroid, area = GeometryUtils.describe(zone)
            out.areas.append(UtilityArea(
                name=f"{utility.value} Zone",
                geometry=geometry,
                centroid=centroid,
                area=area,
                utility_type=utility,
            ))

            if self.utilities.representative_volumes and utility.value in self.utilities.volume_types:
                out.volumes.append(self._volume(utility, zone))

        return out

    def _anchor_zone(
        self,
        container: BaseGeometry,
        blocked: Sequence[BaseGeometry],
        size: float,
        preferred: str,
    ) -> Optional[Polygon]:
        eps = self.config.placement.collision_epsilon_sqm
        order = [preferred] + [a for a in ANCHOR_ORDER if a != preferred]
        for anchor in order:
            for candidate in self._anchor_candidates(container.bounds, size, anchor):
                if GeometryUtils.outside_area(candidate, container) > eps:
                    continue
                if any(GeometryUtils.overlap_area(candidate, b) > eps for b in blocked):
                    continue
                return candidate
        return None

    def _anchor_candidates(self, bounds: Tuple[float, float, float, float], size: float, anchor: str):
        """Square at the anchor, then slid inward along the adjoining edges"""
        minx, miny, maxx, maxy = bounds
        off = self.utilities.edge_offset_m
        xs: Dict[str, float] = {
            "W": minx + off, "E": maxx - off - size, "C": (minx + maxx - size) / 2,
        }
        ys: Dict[str, float] = {
            "S": miny + off, "N": maxy - off - size, "C": (miny + maxy - size) / 2,
        }
        col = "W" if "W" in anchor else ("E" if "E" in anchor else "C")
        row = "S" if "S" in anchor else ("N" if "N" in anchor else "C")
        x0, y0 = xs[col], ys[row]
        step = size + off
        sx = 1 if col == "W" else (-1 if col == "E" else 0)
        sy = 1 if row == "S" else (-1 if row == "N" else 0)

        yield box(x0, y0, x0 + size, y0 + size)
        for k in range(1, 4):
            if sx:
                yield box(x0 + sx * k * step, y0, x0 + sx * k * step + size, y0 + size)
            if sy:
                yield box(x0, y0 + sy * k * step, x0 + size, y0 + sy * k * step + size)
            if not sx:
                yield box(x0 + k * step, y0, x0 + k * step + size, y0 + size)
                yield box(x0 - k * step, y0, x0 - k * step + size, y0 + size)
            if not sy:
                yield box(x0, y0 + k * step, x0 + size, y0 + k * step + size)
                yield box(x0, y0 - k * step, x0 + size, y0 - k * step + size)

    def _volume(self, utility: UtilityType, zone: Polygon) -> Building:
        geometry, centroid, area = GeometryUtils.describe(zone)
        height = self.utilities.volume_height_m
        return restack(Building(
            name=f"{utility.value} Plant",
            geometry=geometry,
            centroid=centroid,
            area=area,
            typical_floor_height=height,
            intended_use=IntendedUse.UTILITY,
            floors=[Floor(
                height=height,
                color=utility_color(utility),
                kind=FloorKind.UTILITY,
                utility_type=utility,
            )],
        ))

    @staticmethod
    def _failure(utility: UtilityType, reason: str) -> Notice:
        return Notice(
            code=NoticeCode.UTILITY_PLACEMENT_FAILED,
            message=f"{utility.value} zone could not be placed: {reason}",
        )
