"""
Typology placement orchestrator
Sequences strategy chains over buildable chunks with one shared obstacle list.
"""

import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from shapely import affinity
from shapely.geometry import Point, Polygon
from shapely.ops import unary_union

from ..analysis.geometry_utils import GeometryUtils
from ..analysis.vastu_sectors import SectorTarget
from ..config import get_config
from .obstacles import ObstacleSet
from .typologies import PlacementContext, PlacementResult, strategy_chain


@dataclass
class PlacedFootprint:
    """An accepted footprint and where it came from"""
    polygon: Polygon
    typology: str
    strategy: str
    group_id: str
    chunk_index: int
    wings: List[Polygon] = field(default_factory=list)
    sector: Optional[str] = None


class PlacementOrchestrator:
    """
    Place requested typologies into buildable chunks

    For each typology (in plan order) and each chunk, the typology's
    strategy chain is walked until one strategy succeeds. Every returned
    wing is collision-tested on its own against the obstacles as they stood
    before the call; rejected wings are dropped without retry.

    Usage:
        orchestrator = PlacementOrchestrator(obstacles, spacing=6.0, rng=random.Random(7))
        placed = orchestrator.place(chunks, plan.targets)
    """

    def __init__(
        self,
        obstacles: ObstacleSet,
        spacing: float,
        rng: random.Random,
        orientation: float = 0.0,
        vastu: bool = False,
    ):
        self.config = get_config()
        self.obstacles = obstacles
        self.spacing = spacing
        self.rng = rng
        self.orientation = orientation % 360.0
        self.vastu = vastu
        self.eps = self.config.placement.collision_epsilon_sqm

    def place(self, chunks: Sequence[Polygon], targets: Sequence[SectorTarget]) -> List[PlacedFootprint]:
        placed: List[PlacedFootprint] = []
        group = 0

        for target in targets:
            for chunk_index, chunk in enumerate(chunks):
                bias = target.target
                if bias is not None and not chunk.buffer(1e-6).contains(bias):
                    bias = chunk.exterior.interpolate(chunk.exterior.project(bias))

                result = self._walk_chain(target.typology, chunk, bias)
                if result is None:
                    logger.debug(f"No strategy placed {target.typology} in chunk {chunk_index}")
                    continue

                group += 1
                accepted = self._accept(result.wings)
                if not accepted:
                    continue

                for footprint, wings in self._merge(result.strategy, accepted):
                    placed.append(PlacedFootprint(
                        polygon=footprint,
                        typology=target.typology,
                        strategy=result.strategy,
                        group_id=f"group-{group}",
                        chunk_index=chunk_index,
                        wings=wings,
                        sector=target.sector,
                    ))

        logger.info(f"Placed {len(placed)} footprint(s) for {len(targets)} typolog(ies)")
        return placed

    def _walk_chain(self, typology: str, chunk: Polygon, bias: Optional[Point]) -> Optional[PlacementResult]:
        for strategy in strategy_chain(typology):
            try:
                result = self._run_strategy(strategy, chunk, bias)
            except Exception as e:
                logger.warning(f"Strategy {strategy.name} failed for {typology}: {e}")
                continue
            if result.success:
                if strategy.name != typology:
                    logger.debug(f"{typology} fell back to {strategy.name}")
                return result
        return None

    def _run_strategy(self, strategy, chunk: Polygon, bias: Optional[Point]) -> PlacementResult:
        """Run a strategy in a frame rotated by the run's orientation"""
        if not self.orientation:
            ctx = PlacementContext(chunk, self.obstacles, self.spacing, self.rng, bias, self.vastu)
            return strategy.place(ctx)

        origin = chunk.centroid
        ctx = PlacementContext(
            chunk=affinity.rotate(chunk, -self.orientation, origin=origin),
            obstacles=self.obstacles.rotated(-self.orientation, origin),
            spacing=self.spacing,
            rng=self.rng,
            target=affinity.rotate(bias, -self.orientation, origin=origin) if bias is not None else None,
            vastu=self.vastu,
        )
        result = strategy.place(ctx)
        result.wings = [affinity.rotate(w, self.orientation, origin=origin) for w in result.wings]
        result.wings = [w for w in result.wings if w.area > 0]
        return self._contain(result, chunk)

    def _contain(self, result: PlacementResult, chunk: Polygon) -> PlacementResult:
        kept = [w for w in result.wings if GeometryUtils.outside_area(w, chunk) <= self.eps]
        if len(kept) != len(result.wings):
            logger.debug(f"Dropped {len(result.wings) - len(kept)} wing(s) outside chunk after rotation")
        result.wings = kept
        return result

    def _accept(self, wings: Sequence[Polygon]) -> List[Polygon]:
        """Collision-test each wing against the pre-call obstacles, then record the survivors"""
        snapshot = self.obstacles.copy()
        accepted = []
        for wing in wings:
            try:
                collides = snapshot.collides(wing)
            except Exception as e:
                logger.warning(f"Collision test failed, rejecting wing: {e}")
                continue
            if collides:
                logger.debug(f"Rejected colliding wing of {wing.area:.1f} sqm")
                continue
            accepted.append(wing)
        for wing in accepted:
            self.obstacles.add(wing, "building", clearance=self.spacing)
        return accepted

    @staticmethod
    def _merge(strategy: str, wings: List[Polygon]):
        """Point towers stay separate; wings of a composite merge where they connect"""
        if strategy == "point":
            return [(w, [w]) for w in wings]
        merged = GeometryUtils.repair(unary_union(wings))
        parts = GeometryUtils.polygons(merged)
        return [
            (part, [w for w in wings if GeometryUtils.overlap_area(w, part) > 0])
            for part in parts
        ]
