"""
Scenario orchestration
Runs the generation pipeline for three named variants and manages the
apply / discard lifecycle of the resulting batch.

States: IDLE -> GENERATING -> AWAITING_SELECTION -> APPLIED | DISCARDED -> IDLE
"""

import hashlib
import random
from enum import Enum
from itertools import combinations
from typing import Iterator, List, Optional, Sequence, Tuple

from loguru import logger

from .config import get_config
from .analysis.geometry_utils import GeometryUtils
from .errors import MissingBoundaryError, ScenarioStateError
from .models import GenerationParams, GreenArea, Plot, Scenario, PROVENANCE_COLLECTIONS
from .persistence import PlotRepository
from .pipeline import GenerationPipeline, authored, generated


class ScenarioState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_SELECTION = "awaiting_selection"
    APPLIED = "applied"
    DISCARDED = "discarded"


def derive_seed(base_seed: int, name: str) -> int:
    """Stable per-variant seed"""
    digest = hashlib.sha256(f"{base_seed}:{name}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def typology_powerset(typologies: Sequence[str], seed: int) -> List[Tuple[str, ...]]:
    """Non-empty typology subsets in a seeded shuffled order"""
    unique = list(dict.fromkeys(typologies))
    subsets = [
        combo
        for size in range(1, len(unique) + 1)
        for combo in combinations(unique, size)
    ]
    random.Random(seed).shuffle(subsets)
    return subsets


class ScenarioOrchestrator:
    """
    Generate, hold and apply scenario batches for plots in a repository

    Usage:
        orchestrator = ScenarioOrchestrator(repository)
        scenarios = orchestrator.generate_scenarios(plot.id, params)
        orchestrator.apply_scenario(0)
    """

    def __init__(self, repository: PlotRepository, pipeline: Optional[GenerationPipeline] = None):
        self.config = get_config()
        self.repository = repository
        self.pipeline = pipeline or GenerationPipeline()

        self.state = ScenarioState.IDLE
        self.transitions: List[Tuple[ScenarioState, ScenarioState]] = []
        self.scenarios: List[Scenario] = []
        self.plot_id: Optional[str] = None
        self._run_token = 0

    def _transition(self, new_state: ScenarioState) -> None:
        logger.debug(f"Scenario state {self.state.value} -> {new_state.value}")
        self.transitions.append((self.state, new_state))
        self.state = new_state

    # ============================================================
    # Variants
    # ============================================================

    def variant_params(self, params: GenerationParams) -> List[Tuple[str, GenerationParams]]:
        """Distinct parameter sets for the three variants"""
        settings = self.config.scenarios
        base_seed = params.seed if params.seed is not None else self.config.default_seed
        spacing = params.spacing if params.spacing is not None else self.config.placement.default_spacing_m
        subsets = typology_powerset(params.typologies, base_seed)

        variants = [
            ("Optimized", {
                "typologies": list(params.typologies),
            }),
            ("Max Density", {
                "typologies": list(subsets[0 % len(subsets)]),
                "spacing": max(settings.min_spacing_m, spacing * settings.max_density_spacing_factor),
                "density": 1.0,
            }),
            ("Alternative", {
                "typologies": list(subsets[1 % len(subsets)]),
                "spacing": spacing * settings.alternative_spacing_factor,
                "orientation": (params.orientation + settings.alternative_orientation_offset) % 360.0,
                "density": 0.5,
            }),
        ]
        return [
            (name, params.model_copy(update={**updates, "seed": derive_seed(base_seed, name)}))
            for name, updates in variants
        ]

    # ============================================================
    # Public API
    # ============================================================

    def iter_scenarios(self, plot_id: str, params: GenerationParams) -> Iterator[Scenario]:
        """
        Start a new batch and yield each variant as it completes

        A pending batch is discarded; an in-flight batch is superseded and
        its remaining output dropped.
        """
        plot = self.repository.get(plot_id)
        if GeometryUtils.to_shapely(plot.geometry) is None:
            raise MissingBoundaryError(plot_id)

        if self.state == ScenarioState.AWAITING_SELECTION:
            logger.info("New request discards the pending scenario batch")
            self._discard()
        elif self.state == ScenarioState.GENERATING:
            logger.info("New request supersedes the in-flight scenario batch")
            self.scenarios = []

        self._run_token += 1
        token = self._run_token
        self.plot_id = plot_id
        self.scenarios = []
        if self.state != ScenarioState.GENERATING:
            self._transition(ScenarioState.GENERATING)

        # Snapshot once; later edits to the live plot do not affect this batch
        snapshot = plot.model_copy(deep=True)
        variants = self.variant_params(params)
        return self._run_batch(token, snapshot, variants)

    def _run_batch(
        self,
        token: int,
        snapshot: Plot,
        variants: List[Tuple[str, GenerationParams]],
    ) -> Iterator[Scenario]:
        for name, variant in variants:
            workspace = self.pipeline.run(snapshot, variant)
            if token != self._run_token:
                logger.info(f"Dropping superseded variant '{name}'")
                return
            scenario = Scenario(
                name=name,
                plot=workspace.plot,
                params=variant,
                metrics=workspace.metrics,
                notices=workspace.notices,
            )
            self.scenarios.append(scenario)
            logger.info(f"Scenario '{name}' ready ({len(self.scenarios)}/{len(variants)})")
            yield scenario

        if token == self._run_token:
            self._transition(ScenarioState.AWAITING_SELECTION)

    def generate_scenarios(self, plot_id: str, params: GenerationParams) -> List[Scenario]:
        return list(self.iter_scenarios(plot_id, params))

    def regenerate_green_areas(self, plot_id: str) -> List[GreenArea]:
        """Recompute a live plot's generated green areas from scratch"""
        plot = self.repository.get(plot_id)
        updated = self.pipeline.regenerate_green_areas(plot)
        self.repository.update(updated)
        return generated(updated.green_areas)

    def apply_scenario(self, index: int) -> Plot:
        """
        Replace the live plot's generated collections with a variant's

        Authored entities on the live plot (roads, entries, hand-drawn
        buildings and zones) are kept.
        """
        if self.state != ScenarioState.AWAITING_SELECTION:
            raise ScenarioStateError(f"No scenarios awaiting selection (state: {self.state.value})")
        if not 0 <= index < len(self.scenarios):
            raise ScenarioStateError(f"Scenario index {index} out of range (0-{len(self.scenarios) - 1})")

        scenario = self.scenarios[index]
        live = self.repository.get(self.plot_id)

        updates = {
            name: authored(getattr(live, name)) + generated(getattr(scenario.plot, name))
            for name in PROVENANCE_COLLECTIONS
        }
        updates["area"] = scenario.plot.area
        applied = self.repository.update(live.model_copy(update=updates))

        logger.info(f"Applied scenario '{scenario.name}' to plot {live.id}")
        self.scenarios = []
        self._transition(ScenarioState.APPLIED)
        self._transition(ScenarioState.IDLE)
        return applied

    def discard_scenarios(self) -> None:
        if self.state != ScenarioState.AWAITING_SELECTION:
            raise ScenarioStateError(f"No scenarios awaiting selection (state: {self.state.value})")
        self._discard()

    def _discard(self) -> None:
        logger.info(f"Discarding {len(self.scenarios)} scenario(s)")
        self.scenarios = []
        self._transition(ScenarioState.DISCARDED)
        self._transition(ScenarioState.IDLE)
