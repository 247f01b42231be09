"""
Setback and buildable envelope calculator
Derives the setback boundary, peripheral parking/road rings and the valid
buildable area (split into chunks where an internal road bisects it).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from shapely.geometry import Polygon, box
from shapely.geometry.base import BaseGeometry

from .geometry_utils import GeometryUtils
from ..config import get_config


OPPOSITE_SIDE = {"N": "S", "S": "N", "E": "W", "W": "E"}


@dataclass
class EnvelopeResult:
    """Buildable envelope of one plot"""
    setback_boundary: Optional[Polygon] = None
    valid_area: Optional[BaseGeometry] = None
    parking_zone: Optional[BaseGeometry] = None
    road_zone: Optional[BaseGeometry] = None
    chunks: List[Polygon] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks


class SetbackCalculator:
    """
    Calculate setback boundary and buildable envelope from a plot boundary

    Inward-buffers the plot by its setback (or by per-side setbacks when
    road-access sides are known), carves fixed-width peripheral rings for
    surface parking and a circulation road, then removes authored roads.
    A setback that collapses the plot yields an empty envelope.
    """

    def __init__(self):
        self.config = get_config()
        self.peripheral = self.config.peripheral

    def calculate_envelope(
        self,
        boundary: Polygon,
        setback: float,
        front_setback: Optional[float] = None,
        rear_setback: Optional[float] = None,
        side_setback: Optional[float] = None,
        road_access_sides: Sequence[str] = (),
        with_road: bool = False,
        with_parking: bool = False,
        roads: Sequence[BaseGeometry] = (),
        authored_zones: Sequence[Polygon] = (),
    ) -> EnvelopeResult:
        """
        Derive the buildable envelope

        Args:
            boundary: Plot polygon in local meters
            setback: Uniform setback (meters)
            front_setback: Setback on road-access sides
            rear_setback: Setback on the sides opposite road access
            side_setback: Setback on remaining sides
            road_access_sides: Compass sides (N/S/E/W) fronting a road
            with_road: Carve a peripheral circulation road ring
            with_parking: Carve a peripheral surface parking ring
            roads: Buffered authored roads to remove from the valid area
            authored_zones: User-drawn buildable zones replacing the chunks

        Returns:
            EnvelopeResult, empty when the setback collapses the plot
        """
        boundary = GeometryUtils.largest_polygon(boundary)
        if boundary is None:
            logger.warning("Plot boundary is empty or degenerate")
            return EnvelopeResult()

        setback_boundary = self._apply_setbacks(
            boundary, setback, front_setback, rear_setback, side_setback, road_access_sides
        )
        if setback_boundary is None:
            logger.warning(f"Setback of {setback}m collapses the plot ({boundary.area:.1f} sqm)")
            return EnvelopeResult()

        result = EnvelopeResult(setback_boundary=setback_boundary)
        inner = setback_boundary

        # Outermost ring first: parking, then road
        if with_parking:
            ring, rest = self._carve_ring(inner, self.peripheral.parking_ring_m)
            if rest is None:
                # Surface parking moves to plot level instead
                logger.info(f"Parking ring of {self.peripheral.parking_ring_m}m would consume the setback boundary, skipped")
            else:
                result.parking_zone, inner = ring, rest
        if with_road and inner is not None:
            ring, inner = self._carve_ring(inner, self.peripheral.road_ring_m)
            result.road_zone = ring

        if inner is None:
            logger.warning("Peripheral rings consume the whole setback boundary")
            return result

        valid = inner
        if roads:
            valid = GeometryUtils.robust_subtract(valid, roads, epsilon=0.0)
            if valid is None:
                logger.warning("Authored roads consume the whole buildable area")
                return result

        result.valid_area = valid
        result.chunks = self._chunks(valid, authored_zones)

        logger.debug(
            f"Envelope: setback {setback_boundary.area:.1f} sqm, "
            f"valid {valid.area:.1f} sqm in {len(result.chunks)} chunk(s)"
        )
        return result

    def _apply_setbacks(
        self,
        boundary: Polygon,
        setback: float,
        front_setback: Optional[float],
        rear_setback: Optional[float],
        side_setback: Optional[float],
        road_access_sides: Sequence[str],
    ) -> Optional[Polygon]:
        """Uniform inward buffer, or per-side cuts when road access is known"""
        variable = road_access_sides and (
            front_setback is not None or rear_setback is not None or side_setback is not None
        )
        if not variable:
            return GeometryUtils.largest_polygon(boundary.buffer(-setback, join_style=2))

        side = side_setback if side_setback is not None else setback
        front = front_setback if front_setback is not None else setback
        rear = rear_setback if rear_setback is not None else setback

        shrunk = GeometryUtils.largest_polygon(boundary.buffer(-side, join_style=2))
        if shrunk is None:
            return None

        front_sides = set(road_access_sides)
        rear_sides = {OPPOSITE_SIDE[s] for s in front_sides} - front_sides

        for s in sorted(front_sides):
            if front > side:
                shrunk = self._cut_side(shrunk, boundary, s, front)
            if shrunk is None:
                return None
        for s in sorted(rear_sides):
            if rear > side:
                shrunk = self._cut_side(shrunk, boundary, s, rear)
            if shrunk is None:
                return None

        return shrunk

    @staticmethod
    def _cut_side(
        polygon: Polygon,
        boundary: Polygon,
        side: str,
        depth: float
    ) -> Optional[Polygon]:
        """Keep only what lies at least `depth` in from the plot's bounding edge on one side"""
        minx, miny, maxx, maxy = boundary.bounds
        pad = max(maxx - minx, maxy - miny)

        keep = {
            "N": box(minx - pad, miny - pad, maxx + pad, maxy - depth),
            "S": box(minx - pad, miny + depth, maxx + pad, maxy + pad),
            "E": box(minx - pad, miny - pad, maxx - depth, maxy + pad),
            "W": box(minx + depth, miny - pad, maxx + pad, maxy + pad),
        }[side]

        return GeometryUtils.largest_polygon(polygon.intersection(keep))

    def _carve_ring(self, polygon: Polygon, width: float):
        """Split a polygon into an outer ring of the given width and its interior"""
        inner = GeometryUtils.largest_polygon(polygon.buffer(-width, join_style=2))
        if inner is None:
            return GeometryUtils.repair(polygon), None
        ring = GeometryUtils.repair(polygon.difference(inner))
        return ring, inner

    def _chunks(
        self,
        valid: BaseGeometry,
        authored_zones: Sequence[Polygon]
    ) -> List[Polygon]:
        min_area = self.peripheral.min_chunk_area_sqm
        if authored_zones:
            chunks = []
            for zone in authored_zones:
                clipped = GeometryUtils.repair(zone.intersection(valid))
                chunks.extend(GeometryUtils.explode(clipped, min_area))
            return chunks
        return GeometryUtils.explode(valid, min_area)
