"""
Generation Pipeline for procedural site layouts

Stages, each taking and returning a PlotWorkspace:

  1. Prepare: clone the plot, drop generated entities, resolve limits
  2. Envelope: setbacks, peripheral parking/road rings, authored roads
  3. Sectors: vastu / anti-clustering placement targets
  4. Placement: typology strategy chains with collision rejection
  5. Massing: FAR scaling, coverage report
  6. Utilities: HVAC/Electrical floors, structured parking, site zones
  7. Open space: green areas from robust subtraction
  8. Metrics

The pipeline performs no I/O and never reads the caller's plot after the
initial clone.
"""

import json
import os
import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from loguru import logger
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from .config import get_config, GeneratorConfig
from .errors import MissingBoundaryError, NoticeCode
from .models import (
    Building, BuildableArea, GenerationParams, Notice, ParkingType, Plot, Provenance,
    UtilityType, PROVENANCE_COLLECTIONS,
)
from .analysis.compliance_engine import ComplianceEngine, ComplianceLimits
from .analysis.geometry_utils import GeometryUtils
from .analysis.massing_scaler import MassingScaler, MassingReport
from .analysis.open_space import OpenSpaceResolver
from .analysis.setback_calculator import SetbackCalculator, EnvelopeResult
from .analysis.site_metrics import SiteMetricsCalculator
from .analysis.vastu_sectors import VastuSectorModel, SectorPlan
from .generators.building_layout import generate_building_layout
from .generators.floors import occupiable_floors, restack
from .generators.obstacles import ObstacleSet
from .generators.placement import PlacementOrchestrator, PlacedFootprint
from .generators.utilities import UtilityAttacher
from .persistence import encode_plot

TYPOLOGY_LABELS = {
    "point": "Tower",
    "slab": "Slab",
    "lshaped": "L-Block",
    "ushaped": "U-Block",
    "tshaped": "T-Block",
    "hshaped": "H-Block",
    "oshaped": "Courtyard Block",
    "perimeter": "Perimeter Block",
}

ENTRY_CLEARANCE_M = 1.5


@dataclass
class PlotWorkspace:
    """State handed from stage to stage; each stage returns a new workspace"""
    plot: Plot
    params: GenerationParams
    seed: int
    boundary: Polygon
    limits: ComplianceLimits
    envelope: EnvelopeResult = field(default_factory=EnvelopeResult)
    plan: SectorPlan = field(default_factory=SectorPlan)
    road_buffers: List[BaseGeometry] = field(default_factory=list)
    placements: List[PlacedFootprint] = field(default_factory=list)
    massing: Optional[MassingReport] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    notices: List[Notice] = field(default_factory=list)

    def with_plot(self, **updates) -> "PlotWorkspace":
        return replace(self, plot=self.plot.model_copy(update=updates))

    def with_notices(self, notices: List[Notice]) -> "PlotWorkspace":
        return replace(self, notices=self.notices + list(notices))


def authored(items) -> list:
    return [item for item in items if item.provenance == Provenance.AUTHORED]


def generated(items) -> list:
    return [item for item in items if item.provenance == Provenance.GENERATED]


class GenerationPipeline:
    """
    Runs the full generation stack against a clone of a plot

    Usage:
        pipeline = GenerationPipeline()
        workspace = pipeline.run(plot, GenerationParams(typologies=["point"], seed=7))
        pipeline.save(workspace.plot, "output/plot.json")
    """

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or get_config()

        self.setback_calculator = SetbackCalculator()
        self.compliance_engine = ComplianceEngine()
        self.massing_scaler = MassingScaler()
        self.open_space_resolver = OpenSpaceResolver()
        self.metrics_calculator = SiteMetricsCalculator()

    def run(self, plot: Plot, params: GenerationParams) -> PlotWorkspace:
        """
        Generate one layout

        Args:
            plot: Live plot (left untouched)
            params: Generation parameters

        Returns:
            Final PlotWorkspace; its plot carries the generated collections
        """
        workspace = self.prepare(plot, params)
        for stage in (
            self.derive_envelope,
            self.plan_sectors,
            self.place_typologies,
            self.scale_massing,
            self.attach_utilities,
            self.resolve_open_space,
            self.summarize,
        ):
            workspace = stage(workspace)
        return workspace

    # ============================================================
    # STAGE 1: Prepare
    # ============================================================

    def prepare(self, plot: Plot, params: GenerationParams) -> PlotWorkspace:
        boundary = GeometryUtils.largest_polygon(GeometryUtils.to_shapely(plot.geometry))
        if boundary is None:
            raise MissingBoundaryError(plot.id)

        clone = plot.model_copy(deep=True)
        updates = {name: authored(getattr(clone, name)) for name in PROVENANCE_COLLECTIONS}
        updates["area"] = round(boundary.area, 2)
        if clone.centroid is None:
            updates["centroid"] = GeometryUtils.point_to_geojson(boundary.centroid)
        clone = clone.model_copy(update=updates)

        limits = self.compliance_engine.evaluate(boundary.area, clone.regulation, params, clone.setback)
        seed = params.seed if params.seed is not None else self.config.default_seed

        logger.info(
            f"Generating layout for plot {clone.id} ({boundary.area:.0f} sqm), "
            f"typologies={params.typologies}, seed={seed}"
        )
        return PlotWorkspace(
            plot=clone,
            params=params,
            seed=seed,
            boundary=boundary,
            limits=limits,
            notices=list(limits.notices),
        )

    # ============================================================
    # STAGE 2: Envelope
    # ============================================================

    def derive_envelope(self, ws: PlotWorkspace) -> PlotWorkspace:
        params, plot = ws.params, ws.plot
        reg = plot.regulation

        def side_value(override, attr):
            if override is not None:
                return override
            return getattr(reg, attr) if reg is not None else None

        road_buffers = []
        for road in authored(plot.roads):
            line = GeometryUtils.to_shapely(road.centerline)
            if line is not None:
                road_buffers.append(line.buffer(road.width / 2.0))

        zones = GeometryUtils.geometry_of(authored(plot.buildable_areas))
        envelope = self.setback_calculator.calculate_envelope(
            ws.boundary,
            setback=ws.limits.setback,
            front_setback=side_value(params.front_setback, "front_setback"),
            rear_setback=side_value(params.rear_setback, "rear_setback"),
            side_setback=side_value(params.side_setback, "side_setback"),
            road_access_sides=plot.road_access_sides,
            with_road=UtilityType.ROADS in params.selected_utilities,
            with_parking=ParkingType.SURFACE in params.parking_types,
            roads=road_buffers,
            authored_zones=[z for z in zones if isinstance(z, Polygon)],
        )

        notices = []
        buildable = []
        if envelope.is_empty:
            notices.append(Notice(
                code=NoticeCode.INVALID_PLOT_GEOMETRY,
                message=(
                    f"No buildable area remains after a {ws.limits.setback:g}m setback "
                    f"and peripheral zones; no buildings were placed"
                ),
            ))
        else:
            min_area = self.config.peripheral.min_chunk_area_sqm
            for i, part in enumerate(GeometryUtils.explode(envelope.valid_area, min_area), 1):
                geometry, centroid, area = GeometryUtils.describe(part)
                buildable.append(BuildableArea(
                    name=f"Buildable Area {i}",
                    geometry=geometry,
                    centroid=centroid,
                    area=area,
                    intended_use=params.land_use,
                ))

        ws = replace(ws, envelope=envelope, road_buffers=road_buffers)
        ws = ws.with_plot(buildable_areas=authored(plot.buildable_areas) + buildable)
        return ws.with_notices(notices)

    # ============================================================
    # STAGE 3: Sectors
    # ============================================================

    def plan_sectors(self, ws: PlotWorkspace) -> PlotWorkspace:
        model = VastuSectorModel(ws.envelope.valid_area)
        plan = model.plan(ws.params.typologies, vastu=ws.params.vastu_compliant)
        return replace(ws, plan=plan)

    # ============================================================
    # STAGE 4: Placement
    # ============================================================

    def place_typologies(self, ws: PlotWorkspace) -> PlotWorkspace:
        if ws.envelope.is_empty:
            return ws

        params = ws.params
        spacing = params.spacing if params.spacing is not None else self.config.placement.default_spacing_m

        obstacles = ObstacleSet(self.config.placement.collision_epsilon_sqm)
        for reservation in ws.plan.reservations:
            obstacles.add(reservation, "reserved")
        for road in ws.road_buffers:
            obstacles.add(road, "road")
        for entry in ws.plot.entries:
            point = GeometryUtils.to_shapely(entry.position)
            if point is not None:
                obstacles.add(point.buffer(ENTRY_CLEARANCE_M), "entry")
        for footprint in GeometryUtils.geometry_of(ws.plot.buildings):
            obstacles.add(footprint, "building", clearance=spacing)

        orchestrator = PlacementOrchestrator(
            obstacles,
            spacing=spacing,
            rng=random.Random(ws.seed),
            orientation=params.orientation,
            vastu=params.vastu_compliant,
        )
        placements = orchestrator.place(ws.envelope.chunks, ws.plan.targets)

        floor_count = ws.limits.floors_for_density(params.density)
        floor_height = ws.limits.floor_height
        buildings = []
        counters: Dict[str, int] = {}
        for placement in placements:
            label = TYPOLOGY_LABELS.get(placement.strategy, placement.strategy.title())
            counters[label] = counters.get(label, 0) + 1
            geometry, centroid, area = GeometryUtils.describe(placement.polygon)
            layout = generate_building_layout(
                placement.polygon,
                placement.wings,
                intended_use=params.land_use,
                road_access_sides=ws.plot.road_access_sides,
                vastu=params.vastu_compliant,
            )
            buildings.append(restack(Building(
                name=f"{label} {counters[label]}",
                geometry=geometry,
                centroid=centroid,
                area=area,
                typical_floor_height=floor_height,
                floors=occupiable_floors(floor_count, floor_height, params.land_use),
                intended_use=params.land_use,
                typology=placement.typology,
                strategy=placement.strategy,
                group_id=placement.group_id,
                layout=layout,
            )))

        ws = replace(ws, placements=placements)
        return ws.with_plot(buildings=ws.plot.buildings + buildings)

    # ============================================================
    # STAGE 5: Massing
    # ============================================================

    def scale_massing(self, ws: PlotWorkspace) -> PlotWorkspace:
        buildings, report = self.massing_scaler.enforce(ws.plot.buildings, ws.plot.area, ws.limits)
        ws = replace(ws, massing=report).with_plot(buildings=buildings)
        return ws.with_notices(report.notices)

    # ============================================================
    # STAGE 6: Utilities & parking
    # ============================================================

    def attach_utilities(self, ws: PlotWorkspace) -> PlotWorkspace:
        params, plot = ws.params, ws.plot
        space_size = plot.regulation.parking_space_size if plot.regulation is not None else None
        attacher = UtilityAttacher(space_size=space_size)
        notices: List[Notice] = []

        buildings = []
        for building in plot.buildings:
            if building.provenance == Provenance.GENERATED:
                building = attacher.attach_internal(building, params.selected_utilities)
                building = attacher.attach_parking(building, params.parking_types)
            buildings.append(building)

        grade_requested = {ParkingType.STILT, ParkingType.PODIUM} & set(params.parking_types)
        if grade_requested and not self.config.parking.allow_stilt:
            notices.append(Notice(
                code=NoticeCode.STILT_PARKING_DISABLED,
                level="info",
                message="Stilt/podium parking is disabled by policy and was not added",
            ))

        zones = attacher.external_zones(
            ws.envelope,
            GeometryUtils.geometry_of(buildings),
            params.selected_utilities,
            vastu=params.vastu_compliant,
        )
        notices.extend(zones.notices)

        roads = attacher.road_zone(ws.envelope) if UtilityType.ROADS in params.selected_utilities else []
        parking = []
        if ParkingType.SURFACE in params.parking_types:
            occupied = GeometryUtils.geometry_of(
                buildings + zones.volumes + plot.parking_areas + plot.utility_areas + zones.areas
            )
            parking = attacher.surface_parking(ws.envelope, occupied)
            if not parking:
                notices.append(Notice(
                    code=NoticeCode.UTILITY_PLACEMENT_FAILED,
                    message="No room left for surface parking",
                ))

        ws = ws.with_plot(
            buildings=buildings + zones.volumes,
            parking_areas=plot.parking_areas + parking,
            utility_areas=plot.utility_areas + roads + zones.areas,
        )
        return ws.with_notices(notices)

    # ============================================================
    # STAGE 7: Open space
    # ============================================================

    def resolve_open_space(self, ws: PlotWorkspace) -> PlotWorkspace:
        plot = ws.plot
        greens = self.open_space_resolver.resolve(
            self.green_base(plot),
            plot.buildings,
            plot.utility_areas,
            plot.parking_areas,
        )
        return ws.with_plot(green_areas=authored(plot.green_areas) + greens)

    def green_base(self, plot: Plot, override: Optional[BaseGeometry] = None) -> Optional[BaseGeometry]:
        """
        Buildable polygon the green areas are cut from

        Union of the generated buildable areas; when a plot has none, the
        envelope is recomputed from the plot's own setback and peripheral zones.
        """
        if override is not None:
            return GeometryUtils.repair(override)

        base = GeometryUtils.safe_union(GeometryUtils.geometry_of(generated(plot.buildable_areas)))
        if base is not None:
            return base

        boundary = GeometryUtils.largest_polygon(GeometryUtils.to_shapely(plot.geometry))
        if boundary is None:
            return None
        setback = self.compliance_engine.resolve_setback(plot.regulation, None, plot.setback)
        roads = [
            line.buffer(road.width / 2.0)
            for road in authored(plot.roads)
            for line in [GeometryUtils.to_shapely(road.centerline)]
            if line is not None
        ]
        envelope = self.setback_calculator.calculate_envelope(
            boundary,
            setback=setback,
            road_access_sides=plot.road_access_sides,
            with_road=any(u.peripheral and u.utility_type == UtilityType.ROADS for u in plot.utility_areas),
            with_parking=any(p.peripheral for p in plot.parking_areas),
            roads=roads,
        )
        return envelope.valid_area

    def regenerate_green_areas(self, plot: Plot, override: Optional[BaseGeometry] = None) -> Plot:
        """Recompute the generated green areas of a plot from scratch"""
        greens = self.open_space_resolver.resolve(
            self.green_base(plot, override),
            plot.buildings,
            plot.utility_areas,
            plot.parking_areas,
        )
        logger.info(f"Regenerated {len(greens)} green area(s) for plot {plot.id}")
        return plot.model_copy(update={"green_areas": authored(plot.green_areas) + greens})

    # ============================================================
    # STAGE 8: Metrics
    # ============================================================

    def summarize(self, ws: PlotWorkspace) -> PlotWorkspace:
        metrics = self.metrics_calculator.calculate(ws.plot)
        limits = ws.limits
        metrics.update({
            "effective_far": limits.far,
            "effective_coverage_pct": round(limits.coverage_pct, 2),
            "effective_max_height": limits.max_height,
            "setback": limits.setback,
            "target_floors": limits.target_floors,
            "target_building_count": limits.target_building_count,
            "far_scaled": bool(ws.massing and ws.massing.scaled),
            "coverage_exceeded": bool(ws.massing and ws.massing.coverage_exceeded),
        })
        logger.info(
            f"Layout: {metrics['building_count']} building(s), FAR {metrics['achieved_far']}, "
            f"coverage {metrics['coverage_pct']}%, {len(ws.plot.green_areas)} green area(s)"
        )
        return replace(ws, metrics=metrics)

    def save(self, plot: Plot, output_path: str) -> str:
        """Save a plot to a JSON file"""
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(encode_plot(plot), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved plot to {output_path}")
        return output_path
