"""
Inline building sub-layout: structural cores, unit subdivision and entrances
"""

import math
from typing import List, Optional, Sequence

from shapely.geometry import Point, Polygon, box
from shapely.ops import nearest_points

from ..analysis.geometry_utils import GeometryUtils
from ..config import get_config
from ..models import BuildingLayout, BuildingUnit, IntendedUse

VASTU_ENTRANCE_SIDES = ("NE", "E", "N")
MAX_UNITS = 200


def unit_type_for(area: float, intended_use: IntendedUse) -> str:
    if intended_use != IntendedUse.RESIDENTIAL:
        return f"{intended_use.value} Unit"
    if area < 40:
        return "Studio"
    if area < 65:
        return "1BHK"
    if area < 100:
        return "2BHK"
    if area < 140:
        return "3BHK"
    return "4BHK"


def _core(wing: Polygon, footprint: Polygon) -> Optional[Polygon]:
    side = min(8.0, max(4.0, math.sqrt(wing.area) * 0.15))
    center = wing.centroid
    if not wing.contains(center):
        center = wing.representative_point()
    core = box(center.x - side / 2, center.y - side / 2, center.x + side / 2, center.y + side / 2)
    return GeometryUtils.largest_polygon(core.intersection(footprint))


def _entrance(footprint: Polygon, sides: Sequence[str]) -> Point:
    side = sides[0] if sides else "S"
    dx, dy = GeometryUtils.direction_vector(side)
    c = footprint.centroid
    reach = max(footprint.bounds[2] - footprint.bounds[0], footprint.bounds[3] - footprint.bounds[1]) * 10
    far = Point(c.x + dx * reach, c.y + dy * reach)
    return nearest_points(footprint.exterior, far)[0]


def generate_building_layout(
    footprint: Polygon,
    wings: Sequence[Polygon],
    intended_use: IntendedUse = IntendedUse.RESIDENTIAL,
    road_access_sides: Sequence[str] = (),
    vastu: bool = False,
) -> BuildingLayout:
    """
    Subdivide a footprint into cores and units and pick an entrance

    Args:
        footprint: Accepted footprint polygon
        wings: Wings the footprint was assembled from (one core each)
        intended_use: Drives average unit size and unit naming
        road_access_sides: Preferred entrance sides
        vastu: Prefer NE, E, N entrances

    Returns:
        BuildingLayout
    """
    config = get_config()

    cores: List[Polygon] = []
    for wing in wings or [footprint]:
        core = _core(wing, footprint)
        if core is not None:
            cores.append(core)

    usable = GeometryUtils.robust_subtract(footprint, cores, epsilon=0.0)

    units: List[BuildingUnit] = []
    avg = config.avg_unit_size_sqm.get(intended_use.value, 90.0)
    cell = math.sqrt(avg)
    if usable is not None:
        minx, miny, maxx, maxy = footprint.bounds
        y = miny
        while y < maxy and len(units) < MAX_UNITS:
            x = minx
            while x < maxx and len(units) < MAX_UNITS:
                piece = GeometryUtils.largest_polygon(usable.intersection(box(x, y, x + cell, y + cell)))
                if piece is not None and piece.area >= avg * 0.4:
                    units.append(BuildingUnit(
                        unit_type=unit_type_for(piece.area, intended_use),
                        geometry=GeometryUtils.polygon_to_geojson(piece),
                        area=round(piece.area, 2),
                    ))
                x += cell
            y += cell

    sides = VASTU_ENTRANCE_SIDES if vastu else tuple(road_access_sides)
    entrance = _entrance(footprint, sides)

    return BuildingLayout(
        cores=[GeometryUtils.polygon_to_geojson(c) for c in cores],
        units=units,
        entrances=[GeometryUtils.point_to_geojson(entrance)],
    )
