"""
Tests for regulation resolution and floor targets
"""

import pytest

from sitegen.analysis.compliance_engine import ComplianceEngine
from sitegen.errors import NoticeCode
from sitegen.models import GenerationParams, Regulation


@pytest.fixture
def engine():
    return ComplianceEngine()


def test_fallbacks_when_regulation_missing(engine):
    limits = engine.evaluate(1000.0, None, GenerationParams())

    assert limits.regulation_missing
    assert limits.far == 2.0
    assert limits.coverage_pct == 50.0
    assert limits.max_height == 15.0
    assert limits.setback == 4.0
    assert limits.max_floors == 5
    assert [n.code for n in limits.notices] == [NoticeCode.REGULATION_MISSING]


def test_ceilings_for_1000_sqm(engine, regulation):
    params = GenerationParams(min_floors=5, max_floors=12)
    limits = engine.evaluate(1000.0, regulation, params)

    assert limits.max_footprint == pytest.approx(500.0)
    assert limits.max_gfa == pytest.approx(2000.0)
    assert limits.target_floors == 5
    assert limits.floor_ceiling == 12


def test_user_overrides_take_precedence(engine, regulation):
    params = GenerationParams(target_far=1.5, target_coverage=30.0, max_height=24.0, setback=6.0)
    limits = engine.evaluate(1000.0, regulation, params, plot_setback=3.0)

    assert limits.far == 1.5
    assert limits.coverage_pct == 30.0
    assert limits.max_height == 24.0
    assert limits.setback == 6.0
    assert limits.max_floors == 8


def test_plot_setback_beats_regulation(engine, regulation):
    assert engine.resolve_setback(regulation, GenerationParams(), plot_setback=7.5) == 7.5
    assert engine.resolve_setback(regulation, GenerationParams()) == 4.0
    assert engine.resolve_setback(None) == 4.0


def test_user_max_floors_above_height_ceiling_is_honored(engine, regulation):
    """15m at 3m per floor allows 5; an explicit 12 stands"""
    limits = engine.evaluate(1000.0, regulation, GenerationParams(max_floors=12))

    assert limits.max_floors == 5
    assert limits.floor_ceiling == 12
    assert limits.floors_for_density(1.0) == 12
    assert NoticeCode.USER_FLOOR_OVERRIDE in [n.code for n in limits.notices]


def test_floors_for_density_interpolates(engine, regulation):
    limits = engine.evaluate(1000.0, regulation, GenerationParams(min_floors=4, max_floors=10))

    assert limits.floors_for_density(0.0) == 4
    assert limits.floors_for_density(0.5) == 7
    assert limits.floors_for_density(1.0) == 10


def test_certification_tightens_coverage(engine):
    regulation = Regulation(floor_area_ratio=2.0, max_ground_coverage=80.0, max_height=30.0)
    limits = engine.evaluate(1000.0, regulation, GenerationParams(green_certifications=["IGBC"]))

    assert limits.open_space_ratio == pytest.approx(0.25)
    assert limits.coverage_pct == pytest.approx(75.0)


def test_certification_never_relaxes_coverage(engine):
    regulation = Regulation(floor_area_ratio=2.0, max_ground_coverage=40.0, max_height=30.0)
    limits = engine.evaluate(1000.0, regulation, GenerationParams(green_certifications=["LEED"]))

    assert limits.coverage_pct == pytest.approx(40.0)


def test_regulation_open_space_counts(engine):
    regulation = Regulation(max_ground_coverage=90.0, min_open_space=0.3)

    assert engine.required_open_space(["Green Building"], regulation) == pytest.approx(0.3)
    assert engine.required_open_space(["Unknown"], Regulation()) == 0.0
