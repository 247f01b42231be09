"""
Geometry utilities for coordinate transformations, repair and boolean operations
"""

import math
from typing import List, Tuple, Optional, Iterable, Union

from loguru import logger
from shapely.geometry import Polygon, Point, LineString, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid

from ..errors import GeometryError
from ..models import GeoJSONPolygon, GeoJSONPoint, GeoJSONLineString


GeoJSONGeometry = Union[GeoJSONPolygon, GeoJSONPoint, GeoJSONLineString]


def _round_coords(coords, ndigits: int = 6):
    return [[round(c[0], ndigits), round(c[1], ndigits)] for c in coords]


class GeometryUtils:
    """Utility functions for geometric operations"""

    @staticmethod
    def degrees_to_local(
        coords: List[List[float]],
        ref_lon: float,
        ref_lat: float
    ) -> List[Tuple[float, float]]:
        """
        Convert [lon, lat] coordinates to local [x, y] meters from reference
        """
        m_per_deg_lat = 111000
        m_per_deg_lon = 111000 * math.cos(math.radians(ref_lat))

        local_coords = []
        for lon, lat in coords:
            x = (lon - ref_lon) * m_per_deg_lon
            y = (lat - ref_lat) * m_per_deg_lat
            local_coords.append((x, y))

        return local_coords

    # ============================================================
    # GeoJSON <-> shapely
    # ============================================================

    @staticmethod
    def to_shapely(geojson: Optional[GeoJSONGeometry]) -> Optional[BaseGeometry]:
        """Convert a GeoJSON model to a shapely geometry, None if missing or unreadable"""
        if geojson is None:
            return None
        try:
            geom = shape(geojson.model_dump())
        except Exception as e:
            logger.warning(f"Could not read {geojson.type} geometry: {e}")
            return None
        if geom.is_empty:
            return None
        return geom

    @staticmethod
    def polygon_to_geojson(polygon: Polygon) -> GeoJSONPolygon:
        rings = [_round_coords(polygon.exterior.coords)]
        rings.extend(_round_coords(ring.coords) for ring in polygon.interiors)
        return GeoJSONPolygon(coordinates=rings)

    @staticmethod
    def point_to_geojson(point: Point) -> GeoJSONPoint:
        return GeoJSONPoint(coordinates=[round(point.x, 6), round(point.y, 6)])

    @staticmethod
    def line_to_geojson(line: LineString) -> GeoJSONLineString:
        return GeoJSONLineString(coordinates=_round_coords(line.coords))

    @staticmethod
    def describe(polygon: Polygon) -> Tuple[GeoJSONPolygon, GeoJSONPoint, float]:
        """Geometry, centroid and area fields for a polygon record"""
        return (
            GeometryUtils.polygon_to_geojson(polygon),
            GeometryUtils.point_to_geojson(polygon.centroid),
            round(polygon.area, 2),
        )

    @staticmethod
    def geometry_of(records: Iterable, attr: str = "geometry") -> List[BaseGeometry]:
        """Shapely geometries of a record collection, skipping records without one"""
        geoms = []
        for record in records:
            geom = GeometryUtils.to_shapely(getattr(record, attr, None))
            if geom is not None:
                geoms.append(geom)
        return geoms

    # ============================================================
    # Repair & flattening
    # ============================================================

    @staticmethod
    def polygons(geom: Optional[BaseGeometry]) -> List[Polygon]:
        """Flatten any geometry into its non-empty polygon parts"""
        if geom is None or geom.is_empty:
            return []
        if isinstance(geom, Polygon):
            return [geom]
        if hasattr(geom, "geoms"):
            parts = []
            for part in geom.geoms:
                parts.extend(GeometryUtils.polygons(part))
            return parts
        return []

    @staticmethod
    def repair(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
        """
        Resolve self-intersections and drop non-areal debris.

        Returns a Polygon or MultiPolygon, or None when nothing areal is left.
        """
        if geom is None or geom.is_empty:
            return None
        if not geom.is_valid:
            try:
                geom = make_valid(geom)
            except Exception as e:
                logger.debug(f"make_valid failed, falling back to buffer(0): {e}")
                try:
                    geom = geom.buffer(0)
                except Exception as e2:
                    raise GeometryError(f"Could not repair {geom.geom_type}: {e2}") from e2
        parts = [p for p in GeometryUtils.polygons(geom) if p.area > 0]
        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        merged = unary_union(parts)
        if not merged.is_valid:
            merged = merged.buffer(0)
        return merged if not merged.is_empty else None

    @staticmethod
    def largest_polygon(geom: Optional[BaseGeometry]) -> Optional[Polygon]:
        """Pick the largest polygon of a multi-part result"""
        parts = GeometryUtils.polygons(GeometryUtils.repair(geom))
        if not parts:
            return None
        return max(parts, key=lambda p: p.area)

    @staticmethod
    def explode(geom: Optional[BaseGeometry], min_area: float = 0.0) -> List[Polygon]:
        """Independent single polygons at least min_area large"""
        return [p for p in GeometryUtils.polygons(geom) if p.area >= min_area]

    @staticmethod
    def safe_union(geoms: Iterable[BaseGeometry]) -> Optional[BaseGeometry]:
        parts = []
        for g in geoms:
            repaired = GeometryUtils.repair(g)
            if repaired is not None:
                parts.append(repaired)
        if not parts:
            return None
        return GeometryUtils.repair(unary_union(parts))

    @staticmethod
    def robust_subtract(
        base: Optional[BaseGeometry],
        clips: Iterable[BaseGeometry],
        epsilon: float = 0.05
    ) -> Optional[BaseGeometry]:
        """
        Subtract clip geometries from base one polygon at a time.

        Each clip is flattened to polygons, repaired and grown by epsilon so
        shared edges are fully consumed. A part that fails is skipped and the
        running base is kept.
        """
        result = GeometryUtils.repair(base)
        if result is None:
            return None

        for clip in clips:
            if clip is None or clip.is_empty:
                continue
            try:
                parts = GeometryUtils.polygons(clip)
            except Exception as e:
                logger.warning(f"Skipping unreadable clip geometry: {e}")
                continue

            for part in parts:
                try:
                    fixed = GeometryUtils.repair(part)
                    if fixed is None:
                        continue
                    cutter = fixed.buffer(epsilon) if epsilon > 0 else fixed
                    repaired = GeometryUtils.repair(result.difference(cutter))
                except Exception as e:
                    logger.warning(f"Subtraction step failed, keeping running base: {e}")
                    continue

                if repaired is None:
                    return None
                result = repaired

        return result

    @staticmethod
    def overlap_area(a: BaseGeometry, b: BaseGeometry) -> float:
        if not a.intersects(b):
            return 0.0
        return a.intersection(b).area

    @staticmethod
    def outside_area(geom: BaseGeometry, container: BaseGeometry) -> float:
        """Area of geom falling outside container"""
        return geom.difference(container).area

    @staticmethod
    def direction_vector(side: str) -> Tuple[float, float]:
        """Unit vector for a compass direction"""
        vectors = {
            "N": (0.0, 1.0),
            "S": (0.0, -1.0),
            "E": (1.0, 0.0),
            "W": (-1.0, 0.0),
            "NE": (math.sqrt(0.5), math.sqrt(0.5)),
            "NW": (-math.sqrt(0.5), math.sqrt(0.5)),
            "SE": (math.sqrt(0.5), -math.sqrt(0.5)),
            "SW": (-math.sqrt(0.5), -math.sqrt(0.5)),
        }
        return vectors[side]
