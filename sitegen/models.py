"""
Pydantic models for the Site Layout Generator
Plot, its sub-collections, regulation records, generation parameters and scenarios.

Geometry is held as GeoJSON-shaped models in local meters (x east, y north);
shapely objects are produced on demand through GeometryUtils.
"""

from enum import Enum
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field
import uuid

from .errors import NoticeCode


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ============================================================
# GeoJSON Types
# ============================================================

class GeoJSONPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]  # [x, y]


class GeoJSONPolygon(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: List[List[List[float]]]  # [exterior, *holes]


class GeoJSONLineString(BaseModel):
    type: Literal["LineString"] = "LineString"
    coordinates: List[List[float]]


# ============================================================
# Enumerations
# ============================================================

class Provenance(str, Enum):
    AUTHORED = "authored"
    GENERATED = "generated"


class IntendedUse(str, Enum):
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"
    MIXED_USE = "Mixed-Use"
    INDUSTRIAL = "Industrial"
    PUBLIC = "Public"
    UTILITY = "Utility"


class FloorKind(str, Enum):
    OCCUPIABLE = "occupiable"
    UTILITY = "utility"
    PARKING = "parking"


class ParkingType(str, Enum):
    SURFACE = "surface"
    UNDERGROUND = "underground"
    STILT = "stilt"
    PODIUM = "podium"


class UtilityType(str, Enum):
    HVAC = "HVAC"
    ELECTRICAL = "Electrical"
    ROADS = "Roads"
    STP = "STP"
    WTP = "WTP"
    WATER = "Water"
    FIRE = "Fire"
    GAS = "Gas"


INTERNAL_UTILITIES = (UtilityType.HVAC, UtilityType.ELECTRICAL)
EXTERNAL_UTILITIES = (
    UtilityType.STP, UtilityType.WTP, UtilityType.WATER, UtilityType.FIRE, UtilityType.GAS
)


class Notice(BaseModel):
    """Advisory message surfaced to the user"""
    code: NoticeCode
    level: Literal["info", "warning"] = "warning"
    message: str


# ============================================================
# Regulation
# ============================================================

class Regulation(BaseModel):
    """Regulation record keyed by location + type. Never mutated by the pipeline."""
    model_config = ConfigDict(frozen=True)

    location: str = ""
    type: str = ""
    setback: Optional[float] = None
    front_setback: Optional[float] = None
    rear_setback: Optional[float] = None
    side_setback: Optional[float] = None
    floor_area_ratio: Optional[float] = None
    max_ground_coverage: Optional[float] = None  # percent
    max_height: Optional[float] = None
    road_width: Optional[float] = None
    min_open_space: Optional[float] = None  # ratio 0-1
    parking_space_size: Optional[float] = None
    solar: bool = False
    rainwater: bool = False


# ============================================================
# Buildings
# ============================================================

class Floor(BaseModel):
    id: str = Field(default_factory=lambda: new_id("floor"))
    level: int = 0
    elevation: float = 0.0
    height: float
    color: str = "#cccccc"
    kind: FloorKind = FloorKind.OCCUPIABLE
    utility_type: Optional[UtilityType] = None
    parking_type: Optional[ParkingType] = None
    parking_capacity: int = 0


class BuildingUnit(BaseModel):
    id: str = Field(default_factory=lambda: new_id("unit"))
    unit_type: str
    geometry: Optional[GeoJSONPolygon] = None
    area: float = 0.0


class BuildingLayout(BaseModel):
    """Inline sub-layout produced alongside a placed footprint"""
    cores: List[GeoJSONPolygon] = Field(default_factory=list)
    units: List[BuildingUnit] = Field(default_factory=list)
    entrances: List[GeoJSONPoint] = Field(default_factory=list)


class Building(BaseModel):
    id: str = Field(default_factory=lambda: new_id("bldg"))
    name: str = ""
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    height: float = 0.0
    base_height: float = 0.0
    typical_floor_height: float = 3.0
    floors: List[Floor] = Field(default_factory=list)
    intended_use: IntendedUse = IntendedUse.RESIDENTIAL
    typology: Optional[str] = None
    strategy: Optional[str] = None
    group_id: Optional[str] = None
    layout: Optional[BuildingLayout] = None
    provenance: Provenance = Provenance.GENERATED

    @property
    def num_floors(self) -> int:
        """Occupiable floors only"""
        return sum(1 for f in self.floors if f.kind == FloorKind.OCCUPIABLE)


# ============================================================
# Plot Sub-collections
# ============================================================

class GreenArea(BaseModel):
    id: str = Field(default_factory=lambda: new_id("green"))
    name: str = "Green Area"
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    provenance: Provenance = Provenance.GENERATED


class ParkingArea(BaseModel):
    id: str = Field(default_factory=lambda: new_id("parking"))
    name: str = "Parking"
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    parking_type: ParkingType = ParkingType.SURFACE
    capacity: int = 0
    efficiency: float = 0.75
    peripheral: bool = False
    provenance: Provenance = Provenance.GENERATED


class UtilityArea(BaseModel):
    id: str = Field(default_factory=lambda: new_id("utility"))
    name: str = "Utility"
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    utility_type: UtilityType
    peripheral: bool = False
    provenance: Provenance = Provenance.GENERATED


class BuildableArea(BaseModel):
    id: str = Field(default_factory=lambda: new_id("buildable"))
    name: str = "Buildable Area"
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    intended_use: Optional[IntendedUse] = None
    provenance: Provenance = Provenance.GENERATED


class Entry(BaseModel):
    id: str = Field(default_factory=lambda: new_id("entry"))
    name: str = "Entry"
    position: Optional[GeoJSONPoint] = None
    kind: Literal["gate", "pedestrian", "service"] = "gate"
    provenance: Provenance = Provenance.AUTHORED


class Road(BaseModel):
    """Hand-drawn internal road"""
    id: str = Field(default_factory=lambda: new_id("road"))
    name: str = "Road"
    centerline: Optional[GeoJSONLineString] = None
    width: float = 6.0
    provenance: Provenance = Provenance.AUTHORED


# ============================================================
# Plot
# ============================================================

class Plot(BaseModel):
    id: str = Field(default_factory=lambda: new_id("plot"))
    name: str = ""
    geometry: Optional[GeoJSONPolygon] = None
    centroid: Optional[GeoJSONPoint] = None
    area: float = 0.0
    setback: Optional[float] = None
    road_access_sides: List[Literal["N", "S", "E", "W"]] = Field(default_factory=list)
    regulation: Optional[Regulation] = None
    buildings: List[Building] = Field(default_factory=list)
    green_areas: List[GreenArea] = Field(default_factory=list)
    parking_areas: List[ParkingArea] = Field(default_factory=list)
    buildable_areas: List[BuildableArea] = Field(default_factory=list)
    utility_areas: List[UtilityArea] = Field(default_factory=list)
    entries: List[Entry] = Field(default_factory=list)
    roads: List[Road] = Field(default_factory=list)


# Collections holding both authored and generated entities
PROVENANCE_COLLECTIONS = (
    "buildings", "green_areas", "parking_areas", "buildable_areas", "utility_areas",
)


# ============================================================
# Generation
# ============================================================

class GenerationParams(BaseModel):
    """Parameters for one generation run"""
    model_config = ConfigDict(frozen=True)

    typologies: List[str] = Field(default_factory=lambda: ["point"])
    spacing: Optional[float] = None
    orientation: float = 0.0

    # Overrides (None falls through to regulation, then fallback)
    setback: Optional[float] = None
    front_setback: Optional[float] = None
    rear_setback: Optional[float] = None
    side_setback: Optional[float] = None
    target_far: Optional[float] = None
    target_coverage: Optional[float] = None  # percent
    max_height: Optional[float] = None
    min_floors: Optional[int] = None
    max_floors: Optional[int] = None

    land_use: IntendedUse = IntendedUse.RESIDENTIAL
    selected_utilities: List[UtilityType] = Field(default_factory=list)
    parking_types: List[ParkingType] = Field(default_factory=list)
    vastu_compliant: bool = False
    green_certifications: List[str] = Field(default_factory=list)

    # 0 = target floors, 1 = floor ceiling
    density: float = Field(default=0.0, ge=0.0, le=1.0)
    seed: Optional[int] = None


class Scenario(BaseModel):
    """A named full Plot snapshot produced by one pipeline run"""
    name: str
    plot: Plot
    params: GenerationParams
    metrics: Dict[str, Any] = Field(default_factory=dict)
    notices: List[Notice] = Field(default_factory=list)
