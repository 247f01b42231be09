"""
Exceptions and advisory notice codes for the Site Layout Generator

Only missing prerequisites (no plot, no boundary) abort a request. Everything
else degrades locally and, where the user should know, becomes a Notice.
"""

from enum import Enum


class SiteGenError(Exception):
    """Base class for generator errors"""


class PlotNotFoundError(SiteGenError):
    """No plot registered under the requested id"""

    def __init__(self, plot_id: str):
        super().__init__(f"Plot not found: {plot_id}")
        self.plot_id = plot_id


class MissingBoundaryError(SiteGenError):
    """Plot has no usable boundary geometry"""

    def __init__(self, plot_id: str):
        super().__init__(f"Plot {plot_id} has no boundary geometry")
        self.plot_id = plot_id


class GeometryError(SiteGenError):
    """A geometry operation failed or produced an unusable result"""


class ScenarioStateError(SiteGenError):
    """Scenario operation is not valid in the current state"""


class NoticeCode(str, Enum):
    COVERAGE_EXCEEDED = "coverage_exceeded"
    FAR_SCALED = "far_scaled"
    REGULATION_MISSING = "regulation_missing"
    INVALID_PLOT_GEOMETRY = "invalid_plot_geometry"
    UTILITY_PLACEMENT_FAILED = "utility_placement_failed"
    USER_FLOOR_OVERRIDE = "user_floor_override"
    STILT_PARKING_DISABLED = "stilt_parking_disabled"
