"""
Tests for residual green space and robust subtraction
"""

import pytest
from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon, box

from sitegen.analysis.geometry_utils import GeometryUtils
from sitegen.analysis.open_space import OpenSpaceResolver
from sitegen.errors import GeometryError
from sitegen.models import Building, ParkingArea, UtilityArea, UtilityType


def record(cls, polygon, **fields):
    geometry, centroid, area = GeometryUtils.describe(polygon)
    return cls(geometry=geometry, centroid=centroid, area=area, **fields)


@pytest.fixture
def resolver():
    return OpenSpaceResolver()


def test_subtracts_buildings_and_non_peripheral_zones(resolver):
    base = box(0, 0, 50, 50)
    buildings = [record(Building, box(10, 10, 20, 20))]
    utilities = [record(UtilityArea, box(30, 30, 35, 35), utility_type=UtilityType.STP)]
    parking = [record(ParkingArea, box(0, 0, 50, 5), peripheral=True)]

    greens = resolver.resolve(base, buildings, utilities, parking)

    assert len(greens) == 1
    assert greens[0].name == "Green Area 1"
    assert greens[0].area == pytest.approx(2500 - 100 - 25, abs=5.0)

    green = GeometryUtils.to_shapely(greens[0].geometry)
    assert green.intersection(box(10, 10, 20, 20)).area < 1e-6
    assert green.intersection(box(30, 30, 35, 35)).area < 1e-6


def test_non_peripheral_parking_is_subtracted(resolver):
    base = box(0, 0, 50, 50)
    parking = [record(ParkingArea, box(0, 0, 50, 10))]

    greens = resolver.resolve(base, [], [], parking)

    assert sum(g.area for g in greens) == pytest.approx(2000, abs=5.0)


def test_slivers_are_discarded(resolver):
    base = box(0, 0, 50, 50)
    buildings = [record(Building, box(0, 0, 50, 49.9))]

    assert resolver.resolve(base, buildings) == []


def test_split_base_yields_one_green_per_fragment(resolver):
    base = box(0, 0, 50, 50)
    buildings = [record(Building, box(20, -1, 30, 51))]

    greens = resolver.resolve(base, buildings)

    assert len(greens) == 2
    assert [g.name for g in greens] == ["Green Area 1", "Green Area 2"]


def test_shared_edges_leave_no_slivers(resolver):
    """Footprints tiling the base exactly consume it"""
    base = box(0, 0, 40, 20)
    buildings = [record(Building, box(0, 0, 20, 20)), record(Building, box(20, 0, 40, 20))]

    assert resolver.resolve(base, buildings) == []


def test_empty_base(resolver):
    assert resolver.resolve(None, []) == []


def test_robust_subtract_repairs_invalid_clip():
    bowtie = Polygon([(0, 0), (10, 10), (10, 0), (0, 10)])
    result = GeometryUtils.robust_subtract(box(0, 0, 20, 20), [bowtie], epsilon=0.0)

    assert not bowtie.is_valid
    assert result.is_valid
    assert result.area == pytest.approx(400 - 50)


def test_robust_subtract_returns_none_when_consumed():
    assert GeometryUtils.robust_subtract(box(0, 0, 10, 10), [box(-1, -1, 11, 11)]) is None


def test_repair_keeps_areal_parts():
    bowtie = Polygon([(0, 0), (10, 10), (10, 0), (0, 10)])
    repaired = GeometryUtils.repair(bowtie)

    assert repaired.is_valid
    assert repaired.area == pytest.approx(50)
    assert len(GeometryUtils.polygons(repaired)) == 2


def test_robust_subtract_skips_a_failing_difference(monkeypatch):
    bad = box(0, 0, 5, 5)
    difference = Polygon.difference

    def failing_difference(self, other, *args, **kwargs):
        if other.equals(bad):
            raise GEOSException("TopologyException: side location conflict")
        return difference(self, other, *args, **kwargs)

    monkeypatch.setattr(Polygon, "difference", failing_difference)
    clips = [box(12, 12, 16, 16), bad, box(2, 12, 6, 16)]

    result = GeometryUtils.robust_subtract(box(0, 0, 20, 20), clips, epsilon=0.0)

    assert result.area == pytest.approx(400 - 16 - 16)
    assert result.contains(Point(2.5, 2.5))
    assert not result.contains(Point(4, 14))


def test_robust_subtract_skips_a_failing_repair(monkeypatch):
    repair = GeometryUtils.repair

    def failing_repair(geom):
        # Only the result of cutting the 5x5 corner fails
        if geom is not None and abs(geom.area - (400 - 16 - 25)) < 1e-6:
            raise GeometryError("Could not repair Polygon")
        return repair(geom)

    monkeypatch.setattr(GeometryUtils, "repair", staticmethod(failing_repair))
    clips = [box(12, 12, 16, 16), box(0, 0, 5, 5), box(2, 12, 6, 16)]

    result = GeometryUtils.robust_subtract(box(0, 0, 20, 20), clips, epsilon=0.0)

    assert result.area == pytest.approx(400 - 16 - 16)
    assert result.contains(Point(2.5, 2.5))
