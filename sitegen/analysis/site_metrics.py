"""
Site metrics for a generated plot: area, FAR, coverage, green share, parking and units
"""

import math
from typing import Any, Dict

from ..models import FloorKind, IntendedUse, ParkingType, Plot, UtilityType
from .massing_scaler import MassingScaler

# Built-up area per dwelling unit (sqm)
AREA_PER_UNIT = 100.0


class SiteMetricsCalculator:
    """Summary figures shown alongside a scenario"""

    def calculate(self, plot: Plot, parking_ratio: float = 1.0) -> Dict[str, Any]:
        plot_area = plot.area
        buildings = plot.buildings
        occupiable = [b for b in buildings if b.intended_use != IntendedUse.UTILITY]

        footprint = sum(b.area for b in buildings)
        gfa = MassingScaler.floor_area(buildings)
        green = sum(g.area for g in plot.green_areas)
        roads = sum(u.area for u in plot.utility_areas if u.utility_type == UtilityType.ROADS)

        units = int(gfa // AREA_PER_UNIT)
        breakdown = {t.value: 0 for t in ParkingType}
        for area in plot.parking_areas:
            breakdown[area.parking_type.value] += area.capacity
        for building in buildings:
            for floor in building.floors:
                if floor.kind == FloorKind.PARKING and floor.parking_type is not None:
                    breakdown[floor.parking_type.value] += floor.parking_capacity

        return {
            "plot_area": round(plot_area, 2),
            "building_count": len(occupiable),
            "total_footprint": round(footprint, 2),
            "total_gfa": round(gfa, 2),
            "achieved_far": round(gfa / plot_area, 3) if plot_area > 0 else 0.0,
            "coverage_pct": round(footprint / plot_area * 100, 2) if plot_area > 0 else 0.0,
            "green_area": round(green, 2),
            "green_pct": round(green / plot_area * 100, 2) if plot_area > 0 else 0.0,
            "open_space": round(max(0.0, plot_area - footprint), 2),
            "road_area": round(roads, 2),
            "total_units": units,
            "parking_required": math.ceil(units * parking_ratio),
            "parking_provided": sum(breakdown.values()),
            "parking_breakdown": breakdown,
            "max_height": round(max((b.height for b in buildings), default=0.0), 2),
        }
