"""
Floor stacking for generated buildings

Floors are ordered bottom to top. Basements take negative levels; everything
else is numbered from 0 upward, so prepending a floor shifts the rest up.
"""

from typing import List

from ..models import Building, Floor, FloorKind, IntendedUse, ParkingType
from .colors import floor_colors

GRADE_PARKING = (ParkingType.STILT, ParkingType.PODIUM)


def is_basement(floor: Floor) -> bool:
    return floor.kind == FloorKind.PARKING and floor.parking_type == ParkingType.UNDERGROUND


def occupiable_floors(count: int, floor_height: float, intended_use: IntendedUse) -> List[Floor]:
    colors = floor_colors(count, intended_use)
    return [
        Floor(level=i, height=floor_height, color=colors[i])
        for i in range(count)
    ]


def restack(building: Building) -> Building:
    """
    Recompute levels, elevations, base height and roof height

    Args:
        building: Building whose floor list changed

    Returns:
        New Building with consistent vertical fields
    """
    basements = [f for f in building.floors if is_basement(f)]
    above = [f for f in building.floors if not is_basement(f)]

    floors: List[Floor] = []
    depth = 0.0
    stacked_basements = []
    for i, floor in enumerate(reversed(basements)):
        depth += floor.height
        stacked_basements.append(floor.model_copy(update={"level": -(i + 1), "elevation": -depth}))
    floors.extend(reversed(stacked_basements))

    elevation = 0.0
    base_height = None
    for i, floor in enumerate(above):
        floors.append(floor.model_copy(update={"level": i, "elevation": elevation}))
        grade_parking = floor.kind == FloorKind.PARKING and floor.parking_type in GRADE_PARKING
        if base_height is None and not grade_parking:
            base_height = elevation
        elevation += floor.height

    return building.model_copy(update={
        "floors": floors,
        "height": round(elevation, 2),
        "base_height": round(base_height if base_height is not None else 0.0, 2),
    })


def recolor(building: Building) -> Building:
    """Fresh gradient over the occupiable floors"""
    occupiable = [f for f in building.floors if f.kind == FloorKind.OCCUPIABLE]
    colors = iter(floor_colors(len(occupiable), building.intended_use))
    floors = [
        f.model_copy(update={"color": next(colors)}) if f.kind == FloorKind.OCCUPIABLE else f
        for f in building.floors
    ]
    return building.model_copy(update={"floors": floors})


def set_occupiable_count(building: Building, count: int) -> Building:
    """Drop or add occupiable floors at the top of the occupiable stack"""
    count = max(1, count)
    current = building.num_floors
    floors = list(building.floors)

    if count < current:
        to_remove = current - count
        for idx in range(len(floors) - 1, -1, -1):
            if to_remove == 0:
                break
            if floors[idx].kind == FloorKind.OCCUPIABLE:
                del floors[idx]
                to_remove -= 1
    elif count > current:
        last = max(
            (i for i, f in enumerate(floors) if f.kind == FloorKind.OCCUPIABLE),
            default=len(floors) - 1,
        )
        extra = [Floor(height=building.typical_floor_height) for _ in range(count - current)]
        floors[last + 1:last + 1] = extra

    return recolor(restack(building.model_copy(update={"floors": floors})))
