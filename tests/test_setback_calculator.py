"""
Tests for setback and peripheral zone derivation
"""

import pytest
from shapely.geometry import LineString, box

from sitegen.analysis.setback_calculator import SetbackCalculator


@pytest.fixture
def calculator():
    return SetbackCalculator()


def test_uniform_setback(calculator):
    """A 4m setback on a 40m square leaves a 32m square"""
    envelope = calculator.calculate_envelope(box(0, 0, 40, 40), setback=4.0)

    assert envelope.setback_boundary.area == pytest.approx(32 * 32)
    assert envelope.valid_area.area == pytest.approx(32 * 32)
    assert len(envelope.chunks) == 1
    assert envelope.parking_zone is None
    assert envelope.road_zone is None


def test_collapsed_setback_yields_empty_envelope(calculator):
    envelope = calculator.calculate_envelope(box(0, 0, 20, 20), setback=12.0)

    assert envelope.is_empty
    assert envelope.setback_boundary is None
    assert envelope.valid_area is None


def test_peripheral_rings(calculator):
    """Parking ring is outermost, road ring inside it"""
    envelope = calculator.calculate_envelope(
        box(0, 0, 100, 100), setback=4.0, with_road=True, with_parking=True
    )

    assert envelope.parking_zone.area == pytest.approx(92 ** 2 - 82 ** 2, abs=1.0)
    assert envelope.road_zone.area == pytest.approx(82 ** 2 - 70 ** 2, abs=1.0)
    assert envelope.valid_area.area == pytest.approx(70 ** 2, abs=1.0)
    assert envelope.parking_zone.intersection(envelope.valid_area).area < 1e-6
    assert envelope.road_zone.intersection(envelope.parking_zone).area < 1e-6


def test_road_ring_only_is_outermost(calculator):
    envelope = calculator.calculate_envelope(box(0, 0, 100, 100), setback=4.0, with_road=True)

    assert envelope.parking_zone is None
    assert envelope.road_zone.area == pytest.approx(92 ** 2 - 80 ** 2, abs=1.0)


def test_parking_ring_skipped_when_it_would_consume_everything(calculator):
    envelope = calculator.calculate_envelope(box(0, 0, 17, 17), setback=4.0, with_parking=True)

    assert envelope.parking_zone is None
    assert envelope.valid_area.area == pytest.approx(81.0)
    assert len(envelope.chunks) == 1


def test_authored_road_bisects_valid_area(calculator):
    road = LineString([(-10, 50), (110, 50)]).buffer(3.0)
    envelope = calculator.calculate_envelope(box(0, 0, 100, 100), setback=4.0, roads=[road])

    assert len(envelope.chunks) == 2
    for chunk in envelope.chunks:
        assert chunk.intersection(road).area < 1e-6


def test_variable_setbacks_from_road_side(calculator):
    """Front on the road side, rear opposite, side setbacks elsewhere"""
    envelope = calculator.calculate_envelope(
        box(0, 0, 40, 40),
        setback=3.0,
        front_setback=8.0,
        rear_setback=5.0,
        side_setback=2.0,
        road_access_sides=["S"],
    )

    minx, miny, maxx, maxy = envelope.setback_boundary.bounds
    assert (minx, miny, maxx, maxy) == pytest.approx((2.0, 8.0, 38.0, 35.0))
    assert envelope.setback_boundary.area == pytest.approx(36 * 27)


def test_authored_zones_replace_chunks(calculator):
    zone = box(0, 0, 30, 30)
    envelope = calculator.calculate_envelope(box(0, 0, 100, 100), setback=4.0, authored_zones=[zone])

    assert len(envelope.chunks) == 1
    assert envelope.chunks[0].area == pytest.approx(26 * 26)
