"""
Tests for internal utility floors, structured parking and site utility zones
"""

import pytest
from shapely.geometry import Point, box

from sitegen.analysis.geometry_utils import GeometryUtils
from sitegen.analysis.setback_calculator import SetbackCalculator
from sitegen.config import get_config
from sitegen.errors import NoticeCode
from sitegen.generators.floors import occupiable_floors, restack, set_occupiable_count
from sitegen.generators.utilities import UtilityAttacher, parking_capacity
from sitegen.models import Building, FloorKind, IntendedUse, ParkingType, UtilityType


@pytest.fixture
def attacher():
    return UtilityAttacher()


@pytest.fixture
def building():
    geometry, centroid, area = GeometryUtils.describe(box(0, 0, 20, 20))
    return restack(Building(
        name="Tower 1",
        geometry=geometry,
        centroid=centroid,
        area=area,
        typical_floor_height=3.0,
        floors=occupiable_floors(3, 3.0, IntendedUse.RESIDENTIAL),
    ))


@pytest.fixture
def envelope():
    return SetbackCalculator().calculate_envelope(box(0, 0, 100, 100), setback=4.0)


def test_parking_capacity_formula():
    assert parking_capacity(1000.0, 0.75, 12.5) == 60
    assert parking_capacity(0.0, 0.75, 12.5) == 0
    assert parking_capacity(100.0, 0.75, 0.0) == 0


def test_hvac_on_roof_electrical_at_base(attacher, building):
    result = attacher.attach_internal(building, [UtilityType.HVAC, UtilityType.ELECTRICAL])

    assert result.floors[0].utility_type == UtilityType.ELECTRICAL
    assert result.floors[0].level == 0
    assert result.floors[-1].utility_type == UtilityType.HVAC
    assert result.height == pytest.approx(15.0)
    assert result.num_floors == 3
    assert [f.level for f in result.floors] == [0, 1, 2, 3, 4]


def test_attach_internal_is_idempotent(attacher, building):
    once = attacher.attach_internal(building, [UtilityType.HVAC, UtilityType.ELECTRICAL])
    twice = attacher.attach_internal(once, [UtilityType.HVAC, UtilityType.ELECTRICAL])

    assert len(twice.floors) == len(once.floors)


def test_external_utility_types_add_no_floors(attacher, building):
    result = attacher.attach_internal(building, [UtilityType.STP, UtilityType.ROADS])

    assert len(result.floors) == 3


def test_underground_parking_adds_basements(attacher, building):
    result = attacher.attach_parking(building, [ParkingType.UNDERGROUND])

    basements = [f for f in result.floors if f.kind == FloorKind.PARKING]
    assert len(basements) == 2
    assert sorted(f.level for f in basements) == [-2, -1]
    assert sorted(f.elevation for f in basements) == pytest.approx([-7.0, -3.5])
    assert all(f.parking_capacity == 24 for f in basements)
    assert result.height == pytest.approx(9.0)
    assert result.base_height == 0.0


def test_stilt_parking_lifts_the_building(attacher, building):
    result = attacher.attach_parking(building, [ParkingType.STILT])

    assert result.floors[0].kind == FloorKind.PARKING
    assert result.floors[0].parking_type == ParkingType.STILT
    assert result.floors[0].level == 0
    assert result.base_height == pytest.approx(3.0)
    assert result.height == pytest.approx(12.0)


def test_stilt_below_electrical_and_above_basements(attacher, building):
    result = attacher.attach_internal(building, [UtilityType.ELECTRICAL])
    result = attacher.attach_parking(result, [ParkingType.UNDERGROUND, ParkingType.STILT])

    kinds = [(f.kind, f.parking_type or f.utility_type) for f in result.floors]
    assert kinds[:4] == [
        (FloorKind.PARKING, ParkingType.UNDERGROUND),
        (FloorKind.PARKING, ParkingType.UNDERGROUND),
        (FloorKind.PARKING, ParkingType.STILT),
        (FloorKind.UTILITY, UtilityType.ELECTRICAL),
    ]
    assert result.floors[2].level == 0


def test_stilt_disabled_by_policy(attacher, building, monkeypatch):
    monkeypatch.setattr(get_config().parking, "allow_stilt", False)

    result = attacher.attach_parking(building, [ParkingType.STILT])

    assert len(result.floors) == 3
    assert result.base_height == 0.0


def test_floor_count_change_preserves_utilities(attacher, building):
    with_utils = attacher.attach_internal(building, [UtilityType.HVAC, UtilityType.ELECTRICAL])

    taller = set_occupiable_count(with_utils, 6)
    shorter = set_occupiable_count(with_utils, 1)

    assert taller.num_floors == 6
    assert taller.floors[-1].utility_type == UtilityType.HVAC
    assert shorter.num_floors == 1
    assert shorter.floors[0].utility_type == UtilityType.ELECTRICAL
    assert shorter.height == pytest.approx(9.0)


def test_external_zones_use_default_anchors(attacher, envelope):
    zones = attacher.external_zones(envelope, [], [UtilityType.WATER, UtilityType.STP, UtilityType.HVAC])

    by_type = {a.utility_type: GeometryUtils.to_shapely(a.geometry) for a in zones.areas}
    assert set(by_type) == {UtilityType.STP, UtilityType.WATER}

    water = by_type[UtilityType.WATER].centroid
    stp = by_type[UtilityType.STP].centroid
    assert water.x < 50 and water.y > 50
    assert stp.x > 50 and stp.y < 50
    for zone in by_type.values():
        assert zone.within(envelope.valid_area)
    assert zones.notices == []


def test_external_zones_use_vastu_anchors(attacher, envelope):
    zones = attacher.external_zones(envelope, [], [UtilityType.WATER], vastu=True)

    water = GeometryUtils.to_shapely(zones.areas[0].geometry).centroid
    assert water.x > 50 and water.y > 50


def test_external_zone_avoids_buildings(attacher, envelope):
    blocker = box(4, 85, 20, 96)
    zones = attacher.external_zones(envelope, [blocker], [UtilityType.WATER])

    zone = GeometryUtils.to_shapely(zones.areas[0].geometry)
    assert zone.intersection(blocker).area < 1e-6


def test_external_zone_failure_becomes_notice(attacher, envelope):
    zones = attacher.external_zones(envelope, [envelope.valid_area], [UtilityType.FIRE, UtilityType.GAS])

    assert zones.areas == []
    assert [n.code for n in zones.notices] == [NoticeCode.UTILITY_PLACEMENT_FAILED] * 2


def test_representative_volumes(attacher, envelope, monkeypatch):
    monkeypatch.setattr(get_config().utilities, "representative_volumes", True)

    zones = attacher.external_zones(envelope, [], [UtilityType.STP, UtilityType.GAS])

    assert len(zones.volumes) == 1
    plant = zones.volumes[0]
    assert plant.intended_use == IntendedUse.UTILITY
    assert plant.num_floors == 0
    assert plant.height == pytest.approx(3.0)
    assert GeometryUtils.to_shapely(plant.geometry).contains(Point(plant.centroid.coordinates))


def test_surface_parking_ring_records(attacher):
    ring_envelope = SetbackCalculator().calculate_envelope(
        box(0, 0, 100, 100), setback=4.0, with_parking=True
    )
    areas = attacher.surface_parking(ring_envelope)

    assert len(areas) == 1
    assert areas[0].peripheral
    assert areas[0].capacity == parking_capacity(areas[0].area, 0.75, 12.5)


def test_surface_parking_falls_back_to_plot_level(attacher):
    small = SetbackCalculator().calculate_envelope(box(0, 0, 17, 17), setback=4.0, with_parking=True)
    tower = box(4, 4, 8, 13)

    areas = attacher.surface_parking(small, [tower])

    assert len(areas) == 1
    assert not areas[0].peripheral
    assert areas[0].parking_type == ParkingType.SURFACE
    assert areas[0].area == pytest.approx(45.0)
    assert areas[0].capacity == 2
    assert GeometryUtils.to_shapely(areas[0].geometry).intersection(tower).area < 1e-6


def test_surface_parking_without_room(attacher):
    small = SetbackCalculator().calculate_envelope(box(0, 0, 17, 17), setback=4.0, with_parking=True)

    assert attacher.surface_parking(small, [box(0, 0, 17, 17)]) == []
