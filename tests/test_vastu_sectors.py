"""
Tests for the 3x3 compass sector model
"""

import pytest
from shapely.geometry import Point, box

from sitegen.analysis.vastu_sectors import VastuSectorModel


@pytest.fixture
def model():
    return VastuSectorModel(box(0, 0, 90, 90))


@pytest.mark.parametrize("x, y, expected", [
    (10, 10, "SW"),
    (45, 10, "S"),
    (80, 10, "SE"),
    (10, 45, "W"),
    (45, 45, "CENTER"),
    (80, 80, "NE"),
    (10, 80, "NW"),
    (-20, 200, "NW"),
])
def test_sector_of(model, x, y, expected):
    assert model.sector_of(Point(x, y)) == expected


def test_vastu_orders_by_weight(model):
    """Heavier typologies take the higher priority sectors"""
    plan = model.plan(["point", "hshaped"], vastu=True)

    assert [t.typology for t in plan.targets] == ["hshaped", "point"]
    assert [t.sector for t in plan.targets] == ["SW", "S"]
    assert plan.targets[0].target.equals(Point(15, 15))


def test_vastu_reserves_center(model):
    plan = model.plan(["slab"], vastu=True)

    assert len(plan.reservations) == 1
    assert plan.reservations[0].area == pytest.approx(900.0)
    assert plan.reservations[0].centroid.equals(Point(45, 45))


def test_vastu_priority_wraps():
    model = VastuSectorModel(box(0, 0, 90, 90))
    typologies = ["hshaped", "ushaped", "lshaped", "tshaped", "slab", "oshaped", "perimeter", "point", "custom"]

    plan = model.plan(typologies, vastu=True)

    assert len(plan.targets) == 9
    assert plan.targets[-1].sector == "SW"


def test_mixed_request_spreads_over_corners(model):
    plan = model.plan(["slab", "point"], vastu=False)

    assert [t.sector for t in plan.targets] == ["SW", "SE"]
    assert plan.reservations == []


def test_single_typology_has_no_bias(model):
    plan = model.plan(["lshaped"], vastu=False)

    assert len(plan.targets) == 1
    assert plan.targets[0].target is None


def test_point_only_request_has_no_bias(model):
    plan = model.plan(["point", "point"], vastu=False)

    assert len(plan.targets) == 1
    assert plan.targets[0].sector is None


def test_empty_area_plans_without_targets():
    plan = VastuSectorModel(None).plan(["slab", "point"], vastu=True)

    assert all(t.target is None for t in plan.targets)
    assert plan.reservations == []
