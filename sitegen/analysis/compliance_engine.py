"""
Compliance engine
Converts regulation + plot area into footprint, floor and GFA ceilings.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ..config import get_config
from ..errors import NoticeCode
from ..models import GenerationParams, Notice, Regulation


@dataclass
class ComplianceLimits:
    """Effective regulatory envelope for one run"""
    far: float
    coverage_pct: float
    max_height: float
    setback: float
    floor_height: float
    max_footprint: float
    max_gfa: float
    max_floors: int
    min_floors: int
    floor_ceiling: int
    target_floors: int
    target_building_count: int
    open_space_ratio: float = 0.0
    regulation_missing: bool = False
    notices: List[Notice] = field(default_factory=list)

    def floors_for_density(self, density: float) -> int:
        """Floor count between target and ceiling"""
        span = max(0, self.floor_ceiling - self.target_floors)
        return self.target_floors + int(round(density * span))


def resolve(*values, fallback):
    """First value that is not None"""
    for value in values:
        if value is not None:
            return value
    return fallback


class ComplianceEngine:
    """
    Resolve effective limits as user override, then regulation, then fallback

    A user floor maximum above the height-derived ceiling is honored and
    logged, never clamped down.
    """

    def __init__(self):
        self.config = get_config()
        self.fallbacks = self.config.fallbacks

    def resolve_setback(
        self,
        regulation: Optional[Regulation],
        params: Optional[GenerationParams] = None,
        plot_setback: Optional[float] = None
    ) -> float:
        override = params.setback if params is not None else None
        reg_value = regulation.setback if regulation is not None else None
        return float(resolve(override, plot_setback, reg_value, fallback=self.fallbacks.setback_m))

    def evaluate(
        self,
        plot_area: float,
        regulation: Optional[Regulation],
        params: GenerationParams,
        plot_setback: Optional[float] = None,
    ) -> ComplianceLimits:
        """
        Compute the ceilings for one generation run

        Args:
            plot_area: Plot area in sqm
            regulation: Regulation record, None when lookup found nothing
            params: Generation parameters carrying user overrides
            plot_setback: Setback stored on the plot itself

        Returns:
            ComplianceLimits
        """
        notices: List[Notice] = []
        reg = regulation or Regulation()
        if regulation is None:
            logger.info("No regulation found, using fallback constants")
            notices.append(Notice(
                code=NoticeCode.REGULATION_MISSING,
                level="info",
                message="No regulation found for this plot; fallback FAR, coverage, height and setback applied",
            ))

        far = float(resolve(params.target_far, reg.floor_area_ratio, fallback=self.fallbacks.floor_area_ratio))
        coverage_pct = float(resolve(
            params.target_coverage, reg.max_ground_coverage, fallback=self.fallbacks.max_ground_coverage_pct
        ))
        max_height = float(resolve(params.max_height, reg.max_height, fallback=self.fallbacks.max_height_m))
        setback = self.resolve_setback(regulation, params, plot_setback)
        floor_height = self.config.floor_heights.get(params.land_use.value, 3.0)

        open_space = self.required_open_space(params.green_certifications, reg)
        if open_space > 0 and coverage_pct > (1.0 - open_space) * 100.0:
            tightened = (1.0 - open_space) * 100.0
            logger.info(
                f"Open space requirement {open_space:.0%} tightens coverage "
                f"from {coverage_pct:.1f}% to {tightened:.1f}%"
            )
            coverage_pct = tightened

        max_footprint = plot_area * coverage_pct / 100.0
        max_gfa = plot_area * far
        max_floors = max(1, int(math.floor(max_height / floor_height)))

        min_floors = max(1, params.min_floors or 1)
        floor_ceiling = max_floors
        if params.max_floors is not None:
            floor_ceiling = max(1, params.max_floors)
            if params.max_floors > max_floors:
                logger.warning(
                    f"User max floors {params.max_floors} exceeds height ceiling "
                    f"of {max_floors} floors ({max_height}m); honoring user value"
                )
                notices.append(Notice(
                    code=NoticeCode.USER_FLOOR_OVERRIDE,
                    message=(
                        f"Max floors {params.max_floors} exceeds the {max_height:g}m height "
                        f"limit ({max_floors} floors)"
                    ),
                ))
        floor_ceiling = max(floor_ceiling, min_floors)

        needed = math.ceil(max_gfa / max_footprint) if max_footprint > 0 else min_floors
        target_floors = min(max(needed, min_floors), floor_ceiling)

        typology_count = max(1, len(set(params.typologies)))
        avg_footprint = max_footprint / typology_count
        if avg_footprint > 0 and target_floors > 0:
            target_building_count = math.ceil(max_gfa / (avg_footprint * target_floors))
        else:
            target_building_count = 0

        limits = ComplianceLimits(
            far=far,
            coverage_pct=coverage_pct,
            max_height=max_height,
            setback=setback,
            floor_height=floor_height,
            max_footprint=max_footprint,
            max_gfa=max_gfa,
            max_floors=max_floors,
            min_floors=min_floors,
            floor_ceiling=floor_ceiling,
            target_floors=target_floors,
            target_building_count=target_building_count,
            open_space_ratio=open_space,
            regulation_missing=regulation is None,
            notices=notices,
        )
        logger.debug(
            f"Limits: FAR {far}, coverage {coverage_pct:.1f}%, height {max_height}m, "
            f"floors {target_floors}/{floor_ceiling}, buildings ~{target_building_count}"
        )
        return limits

    def required_open_space(self, certifications: List[str], regulation: Regulation) -> float:
        """Strictest minimum open-space ratio from certifications and regulation"""
        table = self.config.open_space.certification_open_space
        ratios = [table[c] for c in certifications if c in table]
        if regulation.min_open_space is not None:
            ratios.append(regulation.min_open_space)
        return max(ratios, default=0.0)
