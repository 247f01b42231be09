#!/usr/bin/env python
"""
Command-line interface for the Site Layout Generator

Usage:
    python cli.py generate --width 40 --depth 25 --typologies point --output scenarios.json
    python cli.py generate --boundary site.geojson --road 0,-40,0,40 --vastu
    python cli.py generate --input plots.json --plot-id plot-1 --apply 0
    python cli.py green --input plots.json --plot-id plot-1
    python cli.py visualize --input scenarios.json --output layout.png
"""

import os
import sys
import json
import argparse
from datetime import datetime

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from shapely.geometry import LineString, Polygon, box

from sitegen.analysis.geometry_utils import GeometryUtils
from sitegen.config import get_config, validate_config
from sitegen.errors import SiteGenError
from sitegen.models import GenerationParams, ParkingType, Plot, Regulation, Road, UtilityType
from sitegen.persistence import PlotRepository, decode_plot, encode_plot
from sitegen.scenarios import ScenarioOrchestrator


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def boundary_polygon(path: str) -> Polygon:
    """
    Read a lon/lat GeoJSON polygon (geometry or Feature) into local meters

    The first exterior vertex becomes the local origin.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if data.get("type") == "Feature":
        data = data["geometry"]
    exterior = data["coordinates"][0]
    ref_lon, ref_lat = exterior[0][0], exterior[0][1]
    return Polygon(GeometryUtils.degrees_to_local([c[:2] for c in exterior], ref_lon, ref_lat))


def parse_road(text: str, width: float) -> Road:
    """x1,y1,x2,y2[,...] -> authored road centerline"""
    values = [float(v) for v in text.split(",")]
    if len(values) < 4 or len(values) % 2:
        raise ValueError(f"Road needs an even number of at least 4 coordinates: {text}")
    line = LineString(list(zip(values[0::2], values[1::2])))
    return Road(centerline=GeometryUtils.line_to_geojson(line), width=width)


def new_plot(polygon: Polygon, args) -> Plot:
    """Plot from a local-meter boundary and the CLI regulation flags"""
    geometry, centroid, area = GeometryUtils.describe(polygon)
    regulation = None
    if args.far is not None or args.coverage is not None or args.max_height is not None:
        regulation = Regulation(
            location="cli",
            type="custom",
            floor_area_ratio=args.far,
            max_ground_coverage=args.coverage,
            max_height=args.max_height,
        )
    return Plot(
        id=args.plot_id or f"plot_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
        name="CLI plot",
        geometry=geometry,
        centroid=centroid,
        area=area,
        setback=args.setback,
        road_access_sides=args.road_sides or [],
        regulation=regulation,
        roads=[parse_road(r, args.road_width) for r in args.road or []],
    )


def load_repository(path: str) -> PlotRepository:
    """Repository file ({"plots": [...]}) or a single encoded plot"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if "plots" in data:
        return PlotRepository([decode_plot(p) for p in data["plots"]])
    return PlotRepository([decode_plot(data)])


def cmd_generate(args):
    """Generate three scenario variants for a plot"""
    setup_logging(args.verbose)

    try:
        validate_config(get_config())
    except ValueError as e:
        logger.error(str(e))
        return 1

    if args.input:
        if not os.path.exists(args.input):
            logger.error(f"Input file not found: {args.input}")
            return 1
        repository = load_repository(args.input)
        if len(repository) == 0:
            logger.error(f"No plots in {args.input}")
            return 1
        plot_id = args.plot_id or next(iter(repository)).id
    elif args.boundary or (args.width and args.depth):
        try:
            if args.boundary:
                polygon = boundary_polygon(args.boundary)
            else:
                # Axis-aligned, centered on the origin
                polygon = box(-args.width / 2, -args.depth / 2, args.width / 2, args.depth / 2)
            plot = new_plot(polygon, args)
        except (OSError, KeyError, IndexError, ValueError) as e:
            logger.error(f"Could not build plot: {e}")
            return 1
        repository = PlotRepository()
        plot_id = repository.add(plot).id
    else:
        logger.error("Provide --input, --boundary, or both --width and --depth")
        return 1

    params = GenerationParams(
        typologies=args.typologies,
        spacing=args.spacing,
        orientation=args.orientation,
        min_floors=args.min_floors,
        max_floors=args.max_floors,
        selected_utilities=[UtilityType(u) for u in args.utilities or []],
        parking_types=[ParkingType(p) for p in args.parking or []],
        vastu_compliant=args.vastu,
        green_certifications=args.certification or [],
        seed=args.seed,
    )

    orchestrator = ScenarioOrchestrator(repository)

    try:
        scenarios = []
        for scenario in orchestrator.iter_scenarios(plot_id, params):
            m = scenario.metrics
            logger.info(
                f"✓ {scenario.name}: {m['building_count']} building(s), FAR {m['achieved_far']}, "
                f"coverage {m['coverage_pct']}%, green {m['green_pct']}%"
            )
            for notice in scenario.notices:
                logger.warning(f"  [{notice.code.value}] {notice.message}")
            scenarios.append(scenario)
    except SiteGenError as e:
        logger.error(f"Failed to generate scenarios: {e}")
        return 1

    output_path = args.output or f"scenarios_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump({
            "plot_id": plot_id,
            "scenarios": [
                {
                    "name": s.name,
                    "metrics": s.metrics,
                    "notices": [n.model_dump(mode="json") for n in s.notices],
                    "params": s.params.model_dump(mode="json"),
                    "plot": encode_plot(s.plot),
                }
                for s in scenarios
            ],
        }, f, indent=2, ensure_ascii=False)
    logger.info(f"✓ Saved scenarios: {output_path}")

    if args.apply is not None:
        try:
            orchestrator.apply_scenario(args.apply)
        except SiteGenError as e:
            logger.error(f"Could not apply scenario: {e}")
            return 1
        target = args.input or os.path.splitext(output_path)[0] + "_plots.json"
        repository.save(target)
        logger.info(f"✓ Applied scenario {args.apply} to {plot_id}")
    else:
        orchestrator.discard_scenarios()

    return 0


def cmd_green(args):
    """Regenerate green areas for a stored plot"""
    setup_logging(args.verbose)

    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    repository = load_repository(args.input)
    if len(repository) == 0:
        logger.error(f"No plots in {args.input}")
        return 1
    plot_id = args.plot_id or next(iter(repository)).id

    try:
        greens = ScenarioOrchestrator(repository).regenerate_green_areas(plot_id)
    except SiteGenError as e:
        logger.error(f"Failed to regenerate green areas: {e}")
        return 1

    repository.save(args.output or args.input)
    logger.info(f"✓ {len(greens)} green area(s), {sum(g.area for g in greens):.1f} sqm")
    return 0


def cmd_visualize(args):
    """Render a scenario file (or plot file) to an image"""
    setup_logging(args.verbose)

    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    import matplotlib
    if args.output:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from matplotlib.patches import Polygon as MplPolygon

    with open(args.input, "r", encoding="utf-8") as f:
        data = json.load(f)

    if "scenarios" in data:
        panels = [(s["name"], decode_plot(s["plot"])) for s in data["scenarios"]]
    elif "plots" in data:
        panels = [(p.name or p.id, p) for p in (decode_plot(item) for item in data["plots"])]
    else:
        plot = decode_plot(data)
        panels = [(plot.name or plot.id, plot)]

    if not panels:
        logger.error("Nothing to visualize")
        return 1

    fig, axes = plt.subplots(1, len(panels), figsize=(6 * len(panels), 6), squeeze=False)

    def draw(ax, geometry, **style):
        polygon = GeometryUtils.to_shapely(geometry)
        for part in GeometryUtils.polygons(polygon):
            ax.add_patch(MplPolygon(list(part.exterior.coords), closed=True, **style))

    for ax, (title, plot) in zip(axes[0], panels):
        draw(ax, plot.geometry, fill=False, edgecolor="black", linewidth=1.5)
        for area in plot.buildable_areas:
            draw(ax, area.geometry, fill=False, edgecolor="gray", linestyle="--", linewidth=0.8)
        for area in plot.parking_areas:
            draw(ax, area.geometry, facecolor="#b0b7c3", edgecolor="#555b63", alpha=0.6)
        for area in plot.utility_areas:
            draw(ax, area.geometry, facecolor="#4d4d4d" if area.peripheral else "#e67e22", alpha=0.5)
        for area in plot.green_areas:
            draw(ax, area.geometry, facecolor="#7dcea0", edgecolor="#1e8449", alpha=0.7)
        for building in plot.buildings:
            color = building.floors[-1].color if building.floors else "#cccccc"
            draw(ax, building.geometry, facecolor=color, edgecolor="black", linewidth=0.8)
            if building.centroid is not None:
                x, y = building.centroid.coordinates
                ax.annotate(f"{building.num_floors}F", (x, y), ha="center", va="center", fontsize=7)

        ax.set_title(title)
        ax.set_aspect("equal")
        ax.autoscale_view()
        ax.set_xlabel("x (m)")
        ax.set_ylabel("y (m)")

    plt.tight_layout()
    if args.output:
        plt.savefig(args.output, dpi=150)
        logger.info(f"✓ Saved visualization: {args.output}")
    else:
        plt.show()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Site Layout Generator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Generate scenarios for a 40 x 25 m plot:
    python cli.py generate --width 40 --depth 25 --typologies point --output scenarios.json

  Generate for a stored plot and apply the first variant:
    python cli.py generate --boundary site.geojson --road 0,-40,0,40 --vastu
    python cli.py generate --input plots.json --plot-id plot-1 --apply 0

  Regenerate green areas:
    python cli.py green --input plots.json --plot-id plot-1

  Visualize scenarios:
    python cli.py visualize --input scenarios.json --output layout.png
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate scenario variants for a plot")
    gen_parser.add_argument("--input", "-i", help="Plot or repository JSON file")
    gen_parser.add_argument("--plot-id", help="Plot ID (defaults to the first plot)")
    gen_parser.add_argument("--width", type=float, help="Rectangular plot width (m)")
    gen_parser.add_argument("--depth", type=float, help="Rectangular plot depth (m)")
    gen_parser.add_argument("--boundary", "-b", help="GeoJSON polygon in lon/lat degrees")
    gen_parser.add_argument("--road", action="append", help="Authored road centerline x1,y1,x2,y2 (m, repeatable)")
    gen_parser.add_argument("--road-width", type=float, default=6.0, help="Authored road width (m)")
    gen_parser.add_argument("--setback", type=float, help="Setback (m)")
    gen_parser.add_argument("--road-sides", nargs="*", choices=["N", "S", "E", "W"], help="Road access sides")
    gen_parser.add_argument("--far", type=float, help="Floor area ratio")
    gen_parser.add_argument("--coverage", type=float, help="Max ground coverage (%%)")
    gen_parser.add_argument("--max-height", type=float, help="Max height (m)")
    gen_parser.add_argument("--typologies", "-t", nargs="+", default=["point"], help="Building typologies")
    gen_parser.add_argument("--spacing", type=float, help="Spacing between buildings (m)")
    gen_parser.add_argument("--orientation", type=float, default=0.0, help="Orientation (degrees)")
    gen_parser.add_argument("--min-floors", type=int, help="Minimum floors")
    gen_parser.add_argument("--max-floors", type=int, help="Maximum floors")
    gen_parser.add_argument("--utilities", nargs="*", choices=[u.value for u in UtilityType], help="Utilities")
    gen_parser.add_argument("--parking", nargs="*", choices=[p.value for p in ParkingType], help="Parking types")
    gen_parser.add_argument("--vastu", action="store_true", help="Vastu-compliant placement")
    gen_parser.add_argument("--certification", nargs="*", help="Green certifications (IGBC, GRIHA, LEED)")
    gen_parser.add_argument("--seed", type=int, help="Random seed")
    gen_parser.add_argument("--apply", type=int, help="Apply scenario at this index")
    gen_parser.add_argument("--output", "-o", help="Output scenarios JSON file")
    gen_parser.set_defaults(func=cmd_generate)

    # Green command
    green_parser = subparsers.add_parser("green", help="Regenerate green areas of a stored plot")
    green_parser.add_argument("--input", "-i", required=True, help="Plot or repository JSON file")
    green_parser.add_argument("--plot-id", help="Plot ID (defaults to the first plot)")
    green_parser.add_argument("--output", "-o", help="Output file (defaults to input)")
    green_parser.set_defaults(func=cmd_green)

    # Visualize command
    viz_parser = subparsers.add_parser("visualize", help="Visualize a scenarios or plot JSON file")
    viz_parser.add_argument("--input", "-i", required=True, help="Input JSON file")
    viz_parser.add_argument("--output", "-o", help="Output image file (shows window if not specified)")
    viz_parser.set_defaults(func=cmd_visualize)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
