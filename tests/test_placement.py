"""
Tests for typology strategies and the placement orchestrator
"""

import random
from itertools import combinations

import pytest
from shapely.geometry import Point, box
from shapely.ops import unary_union

from sitegen.analysis.vastu_sectors import SectorTarget
from sitegen.generators.obstacles import ObstacleSet
from sitegen.generators.placement import PlacementOrchestrator
from sitegen.generators.typologies import (
    FALLBACK_CHAINS, STRATEGIES, PlacementContext, strategy_chain,
)


def context(chunk, spacing=6.0, seed=1, target=None):
    return PlacementContext(chunk, ObstacleSet(), spacing, random.Random(seed), target)


@pytest.mark.parametrize("name", sorted(STRATEGIES))
def test_strategy_fits_open_chunk(name):
    chunk = box(0, 0, 100, 100)
    result = STRATEGIES[name]().place(context(chunk))

    assert result.success
    assert result.strategy == name
    assert unary_union(result.wings).difference(chunk).area < 0.01
    for a, b in combinations(result.wings, 2):
        assert a.intersection(b).area < 1e-6


def test_strategy_respects_obstacles():
    chunk = box(0, 0, 40, 40)
    ctx = context(chunk)
    ctx.obstacles.add(box(0, 0, 20, 40), "reserved")

    result = STRATEGIES["point"]().place(ctx)

    assert result.success
    for tower in result.wings:
        assert tower.intersection(box(0, 0, 20, 40)).area < 0.01


def test_point_towers_keep_spacing():
    result = STRATEGIES["point"]().place(context(box(0, 0, 60, 60), spacing=8.0))

    assert len(result.wings) > 1
    for a, b in combinations(result.wings, 2):
        assert a.distance(b) >= 8.0 - 1e-6


def test_same_seed_same_placement():
    chunk = box(0, 0, 80, 60)
    first = STRATEGIES["lshaped"]().place(context(chunk, seed=11))
    second = STRATEGIES["lshaped"]().place(context(chunk, seed=11))

    assert [w.bounds for w in first.wings] == [w.bounds for w in second.wings]


def test_target_pulls_shape_toward_it():
    chunk = box(0, 0, 100, 100)
    result = STRATEGIES["slab"]().place(context(chunk, target=Point(90, 90)))

    centroid = unary_union(result.wings).centroid
    assert centroid.x > 50 and centroid.y > 50


def test_fallback_chains_end_in_point():
    for typology, chain in FALLBACK_CHAINS.items():
        assert chain[0] == typology
        assert chain[-1] == "point"


def test_unknown_typology_falls_back_to_point():
    assert [s.name for s in strategy_chain("pyramid")] == ["point"]


def test_orchestrator_walks_fallback_chain():
    """An L-block cannot fit a 15m chunk; a point tower can"""
    orchestrator = PlacementOrchestrator(ObstacleSet(), spacing=6.0, rng=random.Random(3))
    placed = orchestrator.place([box(0, 0, 15, 15)], [SectorTarget("lshaped")])

    assert len(placed) == 1
    assert placed[0].typology == "lshaped"
    assert placed[0].strategy == "point"


def test_orchestrator_footprints_never_overlap():
    orchestrator = PlacementOrchestrator(ObstacleSet(), spacing=6.0, rng=random.Random(5))
    chunk = box(0, 0, 100, 100)
    targets = [
        SectorTarget("ushaped", "SW", Point(17, 17)),
        SectorTarget("slab", "SE", Point(83, 17)),
        SectorTarget("point", "NE", Point(83, 83)),
    ]

    placed = orchestrator.place([chunk], targets)

    assert {p.typology for p in placed} == {"ushaped", "slab", "point"}
    for a, b in combinations(placed, 2):
        assert a.polygon.intersection(b.polygon).area < 1e-6
        if a.group_id != b.group_id:
            assert a.polygon.distance(b.polygon) >= 6.0 - 1e-6


def test_orchestrator_composite_wings_merge():
    orchestrator = PlacementOrchestrator(ObstacleSet(), spacing=6.0, rng=random.Random(2))
    placed = orchestrator.place([box(0, 0, 100, 100)], [SectorTarget("hshaped")])

    assert len(placed) == 1
    assert placed[0].strategy == "hshaped"
    assert len(placed[0].wings) == 3


def test_orchestrator_rotated_frame_stays_in_chunk():
    orchestrator = PlacementOrchestrator(
        ObstacleSet(), spacing=6.0, rng=random.Random(9), orientation=30.0
    )
    chunk = box(0, 0, 100, 100)
    placed = orchestrator.place([chunk], [SectorTarget("slab")])

    assert placed
    for footprint in placed:
        assert footprint.polygon.difference(chunk).area < 0.01


def test_orchestrator_records_accepted_obstacles():
    obstacles = ObstacleSet()
    orchestrator = PlacementOrchestrator(obstacles, spacing=6.0, rng=random.Random(4))
    placed = orchestrator.place([box(0, 0, 40, 40)], [SectorTarget("point")])

    assert len(obstacles) == len(placed)
    assert all(o.clearance == 6.0 for o in obstacles)


def test_obstacle_clearance_and_overlap():
    obstacles = ObstacleSet()
    obstacles.add(box(0, 0, 10, 10), "building", clearance=5.0)
    obstacles.add(box(50, 50, 60, 60), "road")

    assert obstacles.collides(box(12, 0, 20, 10))
    assert not obstacles.collides(box(15, 0, 25, 10))
    assert not obstacles.collides(box(60, 50, 70, 60))
    assert obstacles.collides(box(55, 55, 65, 65))
