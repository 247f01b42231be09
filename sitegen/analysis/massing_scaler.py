"""
Massing scaler
Post-hoc FAR enforcement and coverage reporting over generated buildings.
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from loguru import logger

from ..config import get_config
from ..errors import NoticeCode
from ..generators.floors import set_occupiable_count
from ..models import Building, IntendedUse, Notice, Provenance
from .compliance_engine import ComplianceLimits


@dataclass
class MassingReport:
    far_before: float = 0.0
    far_after: float = 0.0
    scale: float = 1.0
    scaled: bool = False
    coverage_ratio: float = 0.0
    coverage_exceeded: bool = False
    notices: List[Notice] = field(default_factory=list)


class MassingScaler:
    """
    Enforce FAR by uniform floor truncation; report coverage overage

    Footprints are never shrunk: they are already collision-validated.
    """

    def __init__(self):
        self.config = get_config()
        self.tolerance = self.config.fallbacks.overage_tolerance

    @staticmethod
    def floor_area(buildings: Sequence[Building]) -> float:
        """Occupiable floor area of non-utility buildings"""
        return sum(
            b.area * b.num_floors
            for b in buildings
            if b.intended_use != IntendedUse.UTILITY
        )

    def actual_far(self, buildings: Sequence[Building], plot_area: float) -> float:
        if plot_area <= 0:
            return 0.0
        return self.floor_area(buildings) / plot_area

    @staticmethod
    def coverage(buildings: Sequence[Building], plot_area: float) -> float:
        if plot_area <= 0:
            return 0.0
        return sum(b.area for b in buildings) / plot_area

    def enforce(
        self,
        buildings: Sequence[Building],
        plot_area: float,
        limits: ComplianceLimits,
    ) -> Tuple[List[Building], MassingReport]:
        """
        Scale floor counts down when FAR exceeds the effective limit

        Args:
            buildings: Buildings on the plot (authored and generated)
            plot_area: Plot area in sqm
            limits: Effective limits for the run

        Returns:
            (buildings, report); only generated non-utility buildings are rescaled
        """
        report = MassingReport()
        report.far_before = self.actual_far(buildings, plot_area)
        result = list(buildings)

        if report.far_before > limits.far * self.tolerance:
            scale = limits.far / report.far_before
            report.scale = scale
            report.scaled = True
            result = [
                set_occupiable_count(b, max(1, int(math.floor(b.num_floors * scale))))
                if b.intended_use != IntendedUse.UTILITY and b.provenance == Provenance.GENERATED
                else b
                for b in buildings
            ]
            logger.info(
                f"FAR {report.far_before:.2f} exceeds {limits.far:.2f}; "
                f"scaling floor counts by {scale:.3f}"
            )
            report.notices.append(Notice(
                code=NoticeCode.FAR_SCALED,
                level="info",
                message=f"Floor counts scaled by {scale:.2f} to respect FAR {limits.far:g}",
            ))

        report.far_after = self.actual_far(result, plot_area)
        report.coverage_ratio = self.coverage(result, plot_area)

        ceiling = limits.coverage_pct / 100.0
        if report.coverage_ratio > ceiling * self.tolerance:
            report.coverage_exceeded = True
            logger.warning(
                f"Ground coverage {report.coverage_ratio:.1%} exceeds limit {ceiling:.1%}"
            )
            report.notices.append(Notice(
                code=NoticeCode.COVERAGE_EXCEEDED,
                message=(
                    f"Ground coverage {report.coverage_ratio:.1%} exceeds the "
                    f"{limits.coverage_pct:.1f}% limit"
                ),
            ))

        return result, report
