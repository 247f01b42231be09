"""
Shared fixtures for the Site Layout Generator tests
"""

import sys
from pathlib import Path

import pytest
from shapely.geometry import box

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sitegen.analysis.geometry_utils import GeometryUtils
from sitegen.models import Plot, Regulation
from sitegen.persistence import PlotRepository


def _make_plot(width, depth, setback=4.0, regulation=None, **fields):
    polygon = box(0, 0, width, depth)
    geometry, centroid, area = GeometryUtils.describe(polygon)
    return Plot(
        name=f"{width}x{depth}",
        geometry=geometry,
        centroid=centroid,
        area=area,
        setback=setback,
        regulation=regulation,
        **fields,
    )


@pytest.fixture
def plot_factory():
    """Build rectangular plots anchored at the origin"""
    return _make_plot


@pytest.fixture
def regulation():
    return Regulation(
        location="Test City",
        type="Residential",
        setback=4.0,
        floor_area_ratio=2.0,
        max_ground_coverage=50.0,
        max_height=15.0,
        road_width=9.0,
    )


@pytest.fixture
def plot_1000(regulation):
    """1000 sqm square plot"""
    side = 1000 ** 0.5
    return _make_plot(side, side, setback=4.0, regulation=regulation)


@pytest.fixture
def large_plot(regulation):
    return _make_plot(100.0, 100.0, setback=4.0, regulation=regulation)


@pytest.fixture
def repository(large_plot):
    return PlotRepository([large_plot])


@pytest.fixture
def shape_of():
    """Shapely geometry of a record's geometry field"""
    return lambda record: GeometryUtils.to_shapely(record.geometry)
