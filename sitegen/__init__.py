"""
Site Layout Generator

Procedural generation of constraint-satisfying site layouts: setbacks and
peripheral zones, typology placement, compliance scaling, utilities and
parking, open space, and multi-variant scenarios.
"""

from .config import get_config, validate_config
from .models import GenerationParams, Plot, Regulation, Scenario
from .pipeline import GenerationPipeline, PlotWorkspace
from .persistence import PlotRepository, encode_plot, decode_plot
from .scenarios import ScenarioOrchestrator, ScenarioState

__version__ = "1.0.0"

__all__ = [
    "get_config",
    "validate_config",
    "GenerationParams",
    "Plot",
    "Regulation",
    "Scenario",
    "GenerationPipeline",
    "PlotWorkspace",
    "PlotRepository",
    "encode_plot",
    "decode_plot",
    "ScenarioOrchestrator",
    "ScenarioState",
]
