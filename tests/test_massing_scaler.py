"""
Tests for FAR enforcement and coverage reporting
"""

import pytest
from shapely.geometry import box

from sitegen.analysis.compliance_engine import ComplianceEngine
from sitegen.analysis.geometry_utils import GeometryUtils
from sitegen.analysis.massing_scaler import MassingScaler
from sitegen.errors import NoticeCode
from sitegen.generators.floors import occupiable_floors, restack
from sitegen.models import Building, GenerationParams, IntendedUse, Provenance


def make_building(x, y, size, floors, use=IntendedUse.RESIDENTIAL, provenance=Provenance.GENERATED):
    geometry, centroid, area = GeometryUtils.describe(box(x, y, x + size, y + size))
    return restack(Building(
        geometry=geometry,
        centroid=centroid,
        area=area,
        floors=occupiable_floors(floors, 3.0, use),
        intended_use=use,
        provenance=provenance,
    ))


@pytest.fixture
def scaler():
    return MassingScaler()


def limits_for(**overrides):
    params = GenerationParams(**overrides)
    return ComplianceEngine().evaluate(1000.0, None, params)


def test_far_within_limit_is_untouched(scaler):
    buildings = [make_building(0, 0, 10, 5)]
    result, report = scaler.enforce(buildings, 1000.0, limits_for(target_far=1.0))

    assert not report.scaled
    assert result[0].num_floors == 5
    assert report.notices == []


def test_far_overage_scales_floors(scaler):
    """Two 200 sqm buildings at 5 floors on 1000 sqm is FAR 2.0"""
    side = 200 ** 0.5
    buildings = [make_building(0, 0, side, 5), make_building(50, 50, side, 5)]

    result, report = scaler.enforce(buildings, 1000.0, limits_for(target_far=1.0))

    assert report.scaled
    assert report.scale == pytest.approx(0.5, rel=1e-3)
    assert [b.num_floors for b in result] == [2, 2]
    assert report.far_after <= 1.0 * 1.05
    assert NoticeCode.FAR_SCALED in [n.code for n in report.notices]


def test_scaling_keeps_at_least_one_floor(scaler):
    buildings = [make_building(0, 0, 30, 2)]
    result, _ = scaler.enforce(buildings, 1000.0, limits_for(target_far=0.1))

    assert result[0].num_floors == 1


def test_scaled_building_restacks(scaler):
    side = 200 ** 0.5
    result, _ = scaler.enforce([make_building(0, 0, side, 10)], 1000.0, limits_for(target_far=1.0))

    building = result[0]
    assert building.height == pytest.approx(building.num_floors * 3.0)
    assert [f.level for f in building.floors] == list(range(building.num_floors))


def test_authored_and_utility_buildings_not_scaled(scaler):
    side = 200 ** 0.5
    authored = make_building(0, 0, side, 8, provenance=Provenance.AUTHORED)
    plant = make_building(60, 60, 5, 1, use=IntendedUse.UTILITY)
    generated = make_building(30, 30, side, 8)

    result, report = scaler.enforce([authored, plant, generated], 1000.0, limits_for(target_far=1.0))

    assert report.scaled
    assert result[0].num_floors == 8
    assert result[1].num_floors == 1
    assert result[2].num_floors < 8


def test_utility_buildings_excluded_from_far(scaler):
    plant = make_building(0, 0, 20, 3, use=IntendedUse.UTILITY)

    assert scaler.actual_far([plant], 1000.0) == 0.0


def test_coverage_overage_is_reported_not_fixed(scaler):
    side = 200 ** 0.5
    buildings = [make_building(x, 0, side, 1) for x in (0, 20, 40)]

    result, report = scaler.enforce(buildings, 1000.0, limits_for(target_coverage=30.0))

    assert report.coverage_exceeded
    assert report.coverage_ratio == pytest.approx(0.6, rel=1e-3)
    assert [b.area for b in result] == [b.area for b in buildings]
    assert NoticeCode.COVERAGE_EXCEEDED in [n.code for n in report.notices]
