"""
Typology placement strategies

Each strategy tries to fit one footprint (possibly several wings) into a
buildable chunk and reports success or failure. Typologies map to ordered
fallback chains so an unsatisfiable exact request still yields a footprint.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from loguru import logger
from shapely import affinity
from shapely.geometry import Point, Polygon, box
from shapely.ops import unary_union

from ..analysis.geometry_utils import GeometryUtils
from ..config import get_config
from .obstacles import ObstacleSet


@dataclass
class PlacementContext:
    """Inputs for one strategy call, in the strategy's (possibly rotated) frame"""
    chunk: Polygon
    obstacles: ObstacleSet
    spacing: float
    rng: random.Random
    target: Optional[Point] = None
    vastu: bool = False


@dataclass
class PlacementResult:
    strategy: str
    wings: List[Polygon] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.wings)


class PlacementStrategy:
    """Base class for typology placement strategies"""

    name = "base"

    def __init__(self):
        self.settings = get_config().placement

    def place(self, ctx: PlacementContext) -> PlacementResult:
        raise NotImplementedError

    def wing_depth(self, width: float, height: float) -> float:
        s = self.settings
        return min(s.max_wing_depth_m, max(s.min_wing_depth_m, min(width, height) * 0.12))

    def fits(self, geometry, ctx: PlacementContext) -> bool:
        eps = self.settings.collision_epsilon_sqm
        if GeometryUtils.outside_area(geometry, ctx.chunk) > eps:
            return False
        return not ctx.obstacles.collides(geometry)


class ShapeStrategy(PlacementStrategy):
    """
    Fixed-shape strategy placed at candidate anchors

    Anchors are the bias target, the chunk corners, the chunk centroid
    (skipped under vastu) and a shuffled scan grid. Each anchor is the
    center of the shape's bounding box, clamped so the box stays inside the
    chunk's bounding box. Full size is tried first, then a reduced size.
    """

    area_thresholds: Tuple[float, float] = (2000.0, 4000.0)

    def scale_factor(self, area: float) -> float:
        low, high = self.area_thresholds
        if area < low:
            return 0.38
        if area < high:
            return 0.35
        return 0.30

    def dimensions(self, width: float, height: float, depth: float, factor: float) -> Dict[str, float]:
        raise NotImplementedError

    def wings(self, dims: Dict[str, float]) -> List[Polygon]:
        """Wing rectangles with the shape's bounding box at the origin"""
        raise NotImplementedError

    def place(self, ctx: PlacementContext) -> PlacementResult:
        minx, miny, maxx, maxy = ctx.chunk.bounds
        width, height = maxx - minx, maxy - miny
        depth = self.wing_depth(width, height)
        base = self.dimensions(width, height, depth, self.scale_factor(ctx.chunk.area))
        base["depth"] = depth

        for scale in (1.0, self.settings.fallback_scale):
            dims = self._vary(base, scale, ctx.rng)
            shape = self.wings(dims)
            if not shape:
                continue
            sminx, sminy, smaxx, smaxy = unary_union(shape).bounds
            sw, sh = smaxx - sminx, smaxy - sminy
            if sw > width or sh > height:
                continue

            for anchor in candidate_anchors(ctx, sw, sh, self.settings.scan_grid_steps):
                placed = [
                    affinity.translate(p, anchor[0] - sw / 2 - sminx, anchor[1] - sh / 2 - sminy)
                    for p in shape
                ]
                if self.fits(unary_union(placed), ctx):
                    return PlacementResult(self.name, placed)

        return PlacementResult(self.name)

    def _vary(self, base: Dict[str, float], scale: float, rng: random.Random) -> Dict[str, float]:
        variance = self.settings.size_variance
        dims = {}
        for key in sorted(base):
            value = base[key] * scale
            if key != "depth":
                value *= 1.0 + rng.uniform(-variance, variance)
            dims[key] = value
        return dims


def candidate_anchors(
    ctx: PlacementContext,
    shape_width: float,
    shape_height: float,
    steps: int
) -> List[Tuple[float, float]]:
    """Ordered, clamped and de-duplicated anchor points for a shape of the given size"""
    minx, miny, maxx, maxy = ctx.chunk.bounds
    lo_x, hi_x = minx + shape_width / 2, maxx - shape_width / 2
    lo_y, hi_y = miny + shape_height / 2, maxy - shape_height / 2

    def clamp(x: float, y: float) -> Tuple[float, float]:
        return (min(max(x, lo_x), hi_x), min(max(y, lo_y), hi_y))

    raw: List[Tuple[float, float]] = []
    if ctx.target is not None:
        raw.append((ctx.target.x, ctx.target.y))
    raw.extend([(lo_x, lo_y), (hi_x, lo_y), (hi_x, hi_y), (lo_x, hi_y)])
    if not ctx.vastu:
        c = ctx.chunk.centroid
        raw.append((c.x, c.y))

    grid = [
        (float(x), float(y))
        for x in np.linspace(lo_x, hi_x, steps)
        for y in np.linspace(lo_y, hi_y, steps)
    ]
    ctx.rng.shuffle(grid)
    raw.extend(grid)

    anchors = []
    seen = set()
    for x, y in raw:
        point = clamp(x, y)
        key = (round(point[0], 3), round(point[1], 3))
        if key in seen:
            continue
        seen.add(key)
        anchors.append(point)

    if ctx.target is not None:
        tx, ty = ctx.target.x, ctx.target.y
        anchors.sort(key=lambda p: (p[0] - tx) ** 2 + (p[1] - ty) ** 2)
    return anchors


# ============================================================
# Shape strategies
# ============================================================

class LShapeStrategy(ShapeStrategy):
    name = "lshaped"

    def dimensions(self, width, height, depth, factor):
        return {
            "leg_y": min(max(height * factor, depth * 2.2), min(height * 0.45, 35.0)),
            "leg_x": min(max(width * factor, depth * 2.2), min(width * 0.45, 35.0)),
        }

    def wings(self, dims):
        d, a, b = dims["depth"], dims["leg_y"], dims["leg_x"]
        if a <= d or b <= d:
            return []
        return [box(0, 0, d, a), box(d, 0, b, d)]


class UShapeStrategy(ShapeStrategy):
    name = "ushaped"
    area_thresholds = (2500.0, 5000.0)

    def dimensions(self, width, height, depth, factor):
        return {
            "span_x": max(depth * 3.0, min(width * factor, min(width * 0.5, 45.0))),
            "span_y": max(depth * 2.5, min(height * factor, min(height * 0.5, 45.0))),
        }

    def wings(self, dims):
        d, x, y = dims["depth"], dims["span_x"], dims["span_y"]
        if x <= 2 * d or y <= d:
            return []
        return [box(0, 0, x, d), box(0, d, d, y), box(x - d, d, x, y)]


class TShapeStrategy(ShapeStrategy):
    name = "tshaped"

    def dimensions(self, width, height, depth, factor):
        return {
            "bar": max(depth * 2.5, min(width * factor, min(width * 0.5, 45.0))),
            "stem": max(depth * 2.0, min(height * factor, min(height * 0.5, 40.0))),
        }

    def wings(self, dims):
        d, bar, stem = dims["depth"], dims["bar"], dims["stem"]
        if bar <= d or stem <= d:
            return []
        mid = bar / 2
        return [box(0, stem - d, bar, stem), box(mid - d / 2, 0, mid + d / 2, stem - d)]


class HShapeStrategy(ShapeStrategy):
    name = "hshaped"
    area_thresholds = (3000.0, 6000.0)

    def wing_depth(self, width, height):
        s = self.settings
        return min(s.max_wing_depth_m, max(s.min_wing_depth_m, min(width, height) * 0.1))

    def dimensions(self, width, height, depth, factor):
        bar = max(depth * 2.5, min(height * factor, min(height * 0.45, 40.0)))
        separation = max(depth * 1.5, min(width * 0.25, min(width * 0.35, 28.0)))
        if separation + 2 * depth > width * 0.55:
            separation = max(depth * 1.5, width * 0.55 - 2 * depth)
        return {"bar": bar, "separation": separation}

    def wings(self, dims):
        d, bar, sep = dims["depth"], dims["bar"], dims["separation"]
        if bar <= d or sep <= 0:
            return []
        mid = bar / 2
        return [
            box(0, 0, d, bar),
            box(d + sep, 0, 2 * d + sep, bar),
            box(d, mid - d / 2, d + sep, mid + d / 2),
        ]


class OShapeStrategy(ShapeStrategy):
    """Rectangular courtyard block"""
    name = "oshaped"

    def dimensions(self, width, height, depth, factor):
        return {
            "span_x": max(depth * 3.0, min(width * factor, min(width * 0.5, 45.0))),
            "span_y": max(depth * 3.0, min(height * factor, min(height * 0.5, 45.0))),
        }

    def wings(self, dims):
        d, x, y = dims["depth"], dims["span_x"], dims["span_y"]
        if x <= 2 * d or y <= 2 * d:
            return []
        return [
            box(0, 0, x, d),
            box(0, y - d, x, y),
            box(0, d, d, y - d),
            box(x - d, d, x, y - d),
        ]


class SlabStrategy(ShapeStrategy):
    name = "slab"

    def dimensions(self, width, height, depth, factor):
        longest = max(width, height)
        length = max(depth * 2.5, min(longest * factor * 1.5, min(longest * 0.6, 60.0)))
        return {"length": length, "horizontal": 1.0 if width >= height else 0.0}

    def _vary(self, base, scale, rng):
        dims = super()._vary(
            {k: v for k, v in base.items() if k != "horizontal"}, scale, rng
        )
        dims["horizontal"] = base["horizontal"]
        return dims

    def wings(self, dims):
        d, length = dims["depth"], dims["length"]
        if dims["horizontal"]:
            return [box(0, 0, length, d)]
        return [box(0, 0, d, length)]


class PerimeterStrategy(PlacementStrategy):
    """Continuous block following the chunk edge around a central court"""
    name = "perimeter"

    def place(self, ctx: PlacementContext) -> PlacementResult:
        minx, miny, maxx, maxy = ctx.chunk.bounds
        depth = self.wing_depth(maxx - minx, maxy - miny)

        inner = GeometryUtils.largest_polygon(ctx.chunk.buffer(-depth, join_style=2))
        if inner is None or inner.area < depth * depth:
            return PlacementResult(self.name)

        ring = GeometryUtils.largest_polygon(ctx.chunk.difference(inner))
        if ring is None or not self.fits(ring, ctx):
            return PlacementResult(self.name)
        return PlacementResult(self.name, [ring])


class PointStrategy(PlacementStrategy):
    """Grid of square towers at a stride of tower width plus spacing"""
    name = "point"

    def place(self, ctx: PlacementContext) -> PlacementResult:
        width = self.settings.tower_width_m
        for size in (width, width * self.settings.fallback_scale):
            towers = self._grid(ctx, size)
            if towers:
                return PlacementResult(self.name, towers)
        return PlacementResult(self.name)

    def _grid(self, ctx: PlacementContext, size: float) -> List[Polygon]:
        minx, miny, maxx, maxy = ctx.chunk.bounds
        stride = size + ctx.spacing
        nx = int((maxx - minx - size) // stride) + 1 if maxx - minx >= size else 0
        ny = int((maxy - miny - size) // stride) + 1 if maxy - miny >= size else 0
        if nx <= 0 or ny <= 0:
            return []

        # Center the grid inside the bounding box
        x0 = minx + ((maxx - minx) - (nx * size + (nx - 1) * ctx.spacing)) / 2
        y0 = miny + ((maxy - miny) - (ny * size + (ny - 1) * ctx.spacing)) / 2

        candidates = [
            box(x0 + i * stride, y0 + j * stride, x0 + i * stride + size, y0 + j * stride + size)
            for j in range(ny)
            for i in range(nx)
        ]
        if ctx.target is not None:
            candidates.sort(key=lambda p: p.centroid.distance(ctx.target))

        towers = []
        for tower in candidates:
            if len(towers) >= self.settings.max_towers_per_chunk:
                break
            if self.fits(tower, ctx):
                towers.append(tower)
        return towers


STRATEGIES = {
    cls.name: cls
    for cls in (
        PointStrategy, SlabStrategy, LShapeStrategy, UShapeStrategy,
        TShapeStrategy, HShapeStrategy, OShapeStrategy, PerimeterStrategy,
    )
}

FALLBACK_CHAINS: Dict[str, List[str]] = {
    "hshaped": ["hshaped", "ushaped", "lshaped", "slab", "point"],
    "ushaped": ["ushaped", "lshaped", "slab", "point"],
    "tshaped": ["tshaped", "lshaped", "slab", "point"],
    "lshaped": ["lshaped", "slab", "point"],
    "oshaped": ["oshaped", "ushaped", "slab", "point"],
    "perimeter": ["perimeter", "oshaped", "slab", "point"],
    "slab": ["slab", "point"],
    "point": ["point"],
}


def strategy_chain(typology: str) -> List[PlacementStrategy]:
    """Ordered strategies to try for a typology"""
    names = FALLBACK_CHAINS.get(typology)
    if names is None:
        logger.warning(f"Unknown typology '{typology}', placing point towers instead")
        names = FALLBACK_CHAINS["point"]
    return [STRATEGIES[name]() for name in names]
