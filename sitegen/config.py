"""
Configuration settings for the Site Layout Generator
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class RegulationFallbacks:
    """Values used when neither the user nor the regulation supplies one"""
    floor_area_ratio: float = 2.0
    max_ground_coverage_pct: float = 50.0
    max_height_m: float = 15.0
    setback_m: float = 4.0

    # Tolerance applied before FAR / coverage overage is acted on
    overage_tolerance: float = 1.05


@dataclass
class PeripheralConfig:
    """Fixed-width rings carved inside the setback boundary"""
    parking_ring_m: float = 5.0
    road_ring_m: float = 6.0

    # Chunks of the valid area smaller than this are not offered for placement
    min_chunk_area_sqm: float = 25.0


@dataclass
class PlacementConfig:
    """Typology placement settings"""
    default_spacing_m: float = 6.0
    collision_epsilon_sqm: float = 0.01

    # Point towers
    tower_width_m: float = 10.0
    max_towers_per_chunk: int = 12

    # Wing sizing for composite typologies
    min_wing_depth_m: float = 10.0
    max_wing_depth_m: float = 14.0
    size_variance: float = 0.10
    fallback_scale: float = 0.7

    # Extra anchors scanned after target / corners / centroid
    scan_grid_steps: int = 5

    # Vastu scoring weights (heavier typologies claim better sectors first)
    vastu_weights: Dict[str, int] = field(default_factory=lambda: {
        "hshaped": 7,
        "ushaped": 6,
        "lshaped": 5,
        "tshaped": 4,
        "slab": 3,
        "oshaped": 2,
        "perimeter": 2,
        "point": 1,
    })


@dataclass
class ParkingConfig:
    """Parking capacity and structured parking settings"""
    efficiency: float = 0.75
    space_size_sqm: float = 12.5
    basement_floor_height_m: float = 3.5
    basement_levels: int = 2

    # Policy switch for stilt / podium parking floors
    allow_stilt: bool = True


@dataclass
class UtilityConfig:
    """Internal utility floors and external utility zones"""
    zone_sizes_m: Dict[str, float] = field(default_factory=lambda: {
        "STP": 8.0,
        "WTP": 6.0,
        "Water": 5.0,
        "Fire": 6.0,
        "Gas": 4.0,
    })
    internal_floor_height_m: Dict[str, float] = field(default_factory=lambda: {
        "HVAC": 3.0,
        "Electrical": 3.0,
    })

    # Inset of zone squares from the buildable bounding box
    edge_offset_m: float = 1.0

    # Emit a low-rise Utility building for tank/plant zones
    representative_volumes: bool = False
    volume_height_m: float = 3.0
    volume_types: tuple = ("STP", "WTP", "Water")


@dataclass
class OpenSpaceConfig:
    """Green area derivation"""
    subtract_epsilon_m: float = 0.05
    min_fragment_area_sqm: float = 10.0

    # Minimum open-space ratio implied by each green certification
    certification_open_space: Dict[str, float] = field(default_factory=lambda: {
        "IGBC": 0.25,
        "GRIHA": 0.25,
        "LEED": 0.20,
        "Green Building": 0.15,
    })


@dataclass
class ScenarioConfig:
    """Variant parameters for the scenario orchestrator"""
    max_density_spacing_factor: float = 0.6
    min_spacing_m: float = 3.0
    alternative_spacing_factor: float = 1.25
    alternative_orientation_offset: float = 45.0


@dataclass
class GeneratorConfig:
    """Generator configuration"""
    fallbacks: RegulationFallbacks = field(default_factory=RegulationFallbacks)
    peripheral: PeripheralConfig = field(default_factory=PeripheralConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    parking: ParkingConfig = field(default_factory=ParkingConfig)
    utilities: UtilityConfig = field(default_factory=UtilityConfig)
    open_space: OpenSpaceConfig = field(default_factory=OpenSpaceConfig)
    scenarios: ScenarioConfig = field(default_factory=ScenarioConfig)

    # Floor-to-floor height by intended use (meters)
    floor_heights: Dict[str, float] = field(default_factory=lambda: {
        "Residential": 3.0,
        "Commercial": 4.0,
        "Mixed-Use": 3.5,
        "Industrial": 4.5,
        "Public": 4.0,
        "Utility": 3.0,
    })

    # Average unit size by intended use (sqm), drives the unit subdivision grid
    avg_unit_size_sqm: Dict[str, float] = field(default_factory=lambda: {
        "Residential": 90.0,
        "Commercial": 150.0,
        "Mixed-Use": 110.0,
        "Industrial": 400.0,
        "Public": 200.0,
    })

    default_seed: int = 42
    output_dir: str = "output"


# Global config instance
config = GeneratorConfig()


def get_config() -> GeneratorConfig:
    """Get global configuration"""
    return config


def validate_config(config: GeneratorConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ValueError if any required value is missing or invalid.
    """
    errors = []

    fb = config.fallbacks
    if fb.floor_area_ratio <= 0:
        errors.append(f"fallbacks.floor_area_ratio must be positive, got {fb.floor_area_ratio}")
    if not 0 < fb.max_ground_coverage_pct <= 100:
        errors.append(
            f"fallbacks.max_ground_coverage_pct must be in (0, 100], got {fb.max_ground_coverage_pct}"
        )
    if fb.max_height_m <= 0:
        errors.append(f"fallbacks.max_height_m must be positive, got {fb.max_height_m}")
    if fb.setback_m < 0:
        errors.append(f"fallbacks.setback_m must not be negative, got {fb.setback_m}")
    if fb.overage_tolerance < 1.0:
        errors.append(f"fallbacks.overage_tolerance must be >= 1.0, got {fb.overage_tolerance}")

    if config.peripheral.parking_ring_m <= 0 or config.peripheral.road_ring_m <= 0:
        errors.append("peripheral ring widths must be positive")

    if not 0 < config.parking.efficiency <= 1:
        errors.append(f"parking.efficiency must be in (0, 1], got {config.parking.efficiency}")
    if config.parking.space_size_sqm <= 0:
        errors.append(f"parking.space_size_sqm must be positive, got {config.parking.space_size_sqm}")

    for name, size in config.utilities.zone_sizes_m.items():
        if size <= 0:
            errors.append(f"utilities.zone_sizes_m[{name}] must be positive, got {size}")

    if config.open_space.subtract_epsilon_m < 0:
        errors.append("open_space.subtract_epsilon_m must not be negative")
    for name, ratio in config.open_space.certification_open_space.items():
        if not 0 <= ratio < 1:
            errors.append(f"open_space.certification_open_space[{name}] must be in [0, 1), got {ratio}")

    for use, height in config.floor_heights.items():
        if height <= 0:
            errors.append(f"floor_heights[{use}] must be positive, got {height}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
