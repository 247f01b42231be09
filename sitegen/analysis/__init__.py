"""
Analysis modules for the Site Layout Generator
"""

from .geometry_utils import GeometryUtils
from .setback_calculator import SetbackCalculator, EnvelopeResult
from .vastu_sectors import VastuSectorModel
from .compliance_engine import ComplianceEngine, ComplianceLimits
from .massing_scaler import MassingScaler, MassingReport
from .open_space import OpenSpaceResolver
from .site_metrics import SiteMetricsCalculator

__all__ = [
    "GeometryUtils",
    "SetbackCalculator",
    "EnvelopeResult",
    "VastuSectorModel",
    "ComplianceEngine",
    "ComplianceLimits",
    "MassingScaler",
    "MassingReport",
    "OpenSpaceResolver",
    "SiteMetricsCalculator",
]
