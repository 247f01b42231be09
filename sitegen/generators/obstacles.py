"""
Obstacle tracking for collision rejection
"""

from dataclasses import dataclass
from typing import Iterator, List

from shapely import affinity
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry


@dataclass
class Obstacle:
    geometry: BaseGeometry
    kind: str = "building"
    clearance: float = 0.0


class ObstacleSet:
    """
    Placed or reserved polygons a new footprint may not touch

    Buildings carry a clearance (the run's spacing); reservations such as
    the vastu center or authored roads only reject true overlap.
    """

    def __init__(self, epsilon: float = 0.01):
        self.epsilon = epsilon
        self._items: List[Obstacle] = []

    def __iter__(self) -> Iterator[Obstacle]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, geometry: BaseGeometry, kind: str = "building", clearance: float = 0.0) -> None:
        if geometry is None or geometry.is_empty:
            return
        self._items.append(Obstacle(geometry, kind, clearance))

    def collides(self, geometry: BaseGeometry) -> bool:
        for obstacle in self._items:
            other = obstacle.geometry
            if obstacle.clearance > 0:
                if geometry.distance(other) < obstacle.clearance - 1e-6:
                    return True
            elif geometry.intersects(other) and geometry.intersection(other).area > self.epsilon:
                return True
        return False

    def copy(self) -> "ObstacleSet":
        clone = ObstacleSet(self.epsilon)
        clone._items = list(self._items)
        return clone

    def rotated(self, angle: float, origin: Point) -> "ObstacleSet":
        clone = ObstacleSet(self.epsilon)
        clone._items = [
            Obstacle(affinity.rotate(o.geometry, angle, origin=origin), o.kind, o.clearance)
            for o in self._items
        ]
        return clone
