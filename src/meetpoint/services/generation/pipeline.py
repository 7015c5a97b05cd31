"""Multi-phase hypothesis point generation.

The run is an explicit forward-only state machine::

    VALIDATION -> ANCHOR -> COARSE_GRID -> DEDUPLICATION -> MATRIX -> SCORING
        -> LOCAL_REFINEMENT (opt-in) -> SELECTION -> COMPLETE

Generation, deduplication and scoring are synchronous; only matrix
acquisition awaits, and it goes through a per-run ``ConcurrencyController``.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from ...errors import (
    InsufficientLocationsError,
    InvalidConfigurationError,
    InvalidCoordinateError,
    MatrixAcquisitionFailedError,
    MeetpointError,
    NoScorableCandidatesError,
    TooManyLocationsError,
    UnknownGoalError,
)
from ...models.domain import (
    Coordinate,
    DiagnosticPoint,
    GenerationResult,
    HypothesisPoint,
    Location,
    OptimizationGoal,
    PointStatus,
    RankedPoint,
    ScoredPoint,
    TravelMode,
)
from ..concurrency import ConcurrencyController
from ..geospatial import is_valid_coordinate
from ..providers.base import MatrixProvider
from ..scoring import ScoringConfig, score_points
from .anchors import generate_anchor_points
from .deduplication import MAX_DEDUPLICATION_THRESHOLD_M, deduplicate
from .grid import generate_coarse_grid, generate_local_refinement
from .matrix import MatrixAcquisition, acquire_travel_times

logger = logging.getLogger(__name__)

# A 1x1 grid is just the bounding-box centre.
MIN_GRID_SIZE = 2
MIN_DEDUPLICATION_THRESHOLD_M = 100.0


@dataclass(slots=True)
class GenerationConfig:
    travel_mode: TravelMode = TravelMode.DRIVING_CAR
    optimization_goal: OptimizationGoal = OptimizationGoal.MINIMAX
    top_m: int = 3
    grid_size: int = 7
    grid_margin_km: float = 5.0
    deduplication_threshold: float = 1000.0
    enable_local_refinement: bool = False
    refinement_top_k: int = 5
    refinement_radius_km: float = 2.0
    refinement_grid_size: int = 3
    max_destinations_per_request: int = 50
    max_concurrent_requests: int = 6
    max_locations: int = 12

    def validate(self) -> None:
        """Normalise enum fields and reject out-of-range values."""
        try:
            self.travel_mode = TravelMode(self.travel_mode)
        except ValueError as exc:
            raise InvalidConfigurationError(f"Unknown travel mode: {self.travel_mode!r}.") from exc
        try:
            self.optimization_goal = OptimizationGoal(self.optimization_goal)
        except ValueError as exc:
            raise UnknownGoalError(f"Unknown optimization goal: {self.optimization_goal!r}.") from exc

        _check_int("top_m", self.top_m, 1, 50)
        _check_int("grid_size", self.grid_size, MIN_GRID_SIZE, 20)
        _check_number("grid_margin_km", self.grid_margin_km, 0.0, 50.0)
        _check_number(
            "deduplication_threshold",
            self.deduplication_threshold,
            MIN_DEDUPLICATION_THRESHOLD_M,
            MAX_DEDUPLICATION_THRESHOLD_M,
        )
        _check_int("refinement_top_k", self.refinement_top_k, 1, 20)
        _check_number("refinement_radius_km", self.refinement_radius_km, 0.1, 10.0)
        _check_int("refinement_grid_size", self.refinement_grid_size, 2, 10)
        _check_int("max_destinations_per_request", self.max_destinations_per_request, 1, None)
        _check_int("max_concurrent_requests", self.max_concurrent_requests, 1, None)
        _check_int("max_locations", self.max_locations, 2, None)


def _check_int(name: str, value: object, low: int, high: int | None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}.")
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f">= {low}"
        raise InvalidConfigurationError(f"{name} must be {bounds}, got {value}.")


def _check_number(name: str, value: object, low: float, high: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidConfigurationError(f"{name} must be a finite number, got {value!r}.")
    if value < low or value > high:
        raise InvalidConfigurationError(f"{name} must be between {low} and {high}, got {value}.")


def validate_locations(locations: Sequence[Location], max_locations: int) -> None:
    if len(locations) < 2:
        raise InsufficientLocationsError(f"At least 2 locations are required, got {len(locations)}.")
    if len(locations) > max_locations:
        raise TooManyLocationsError(f"At most {max_locations} locations are supported, got {len(locations)}.")
    invalid = [
        location.id
        for location in locations
        if not is_valid_coordinate(location.coordinate.latitude, location.coordinate.longitude)
    ]
    if invalid:
        raise InvalidCoordinateError(
            f"Invalid coordinates for location(s): {', '.join(invalid)}.",
            details={"location_ids": invalid},
        )


class GenerationStage(str, Enum):
    VALIDATION = "VALIDATION"
    ANCHOR = "ANCHOR"
    COARSE_GRID = "COARSE_GRID"
    DEDUPLICATION = "DEDUPLICATION"
    MATRIX = "MATRIX"
    SCORING = "SCORING"
    LOCAL_REFINEMENT = "LOCAL_REFINEMENT"
    SELECTION = "SELECTION"
    COMPLETE = "COMPLETE"


_STAGE_ORDER = {stage: position for position, stage in enumerate(GenerationStage)}


@dataclass(slots=True)
class _RunState:
    stage: GenerationStage = GenerationStage.VALIDATION
    generated: list[HypothesisPoint] = field(default_factory=list)
    kept: list[HypothesisPoint] = field(default_factory=list)
    merged_into: dict[str, str] = field(default_factory=dict)
    scored: dict[str, ScoredPoint] = field(default_factory=dict)
    api_calls: int = 0
    successful_batches: int = 0
    failed_batches: int = 0
    stage_timings_ms: dict[str, float] = field(default_factory=dict)

    @property
    def next_sequence(self) -> int:
        return len(self.generated)

    def advance(self, stage: GenerationStage) -> None:
        if _STAGE_ORDER[stage] <= _STAGE_ORDER[self.stage]:
            raise RuntimeError(f"Cannot move from stage {self.stage.value} back to {stage.value}.")
        logger.debug("Generation stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def record(self, acquisition: MatrixAcquisition) -> None:
        self.api_calls += acquisition.api_calls
        self.successful_batches += acquisition.successful_batches
        self.failed_batches += acquisition.failed_batches


def _selection_key(scored: ScoredPoint) -> tuple[float, int, int]:
    return (scored.score, scored.point.phase.priority, scored.point.sequence)


class HypothesisPointGenerator:
    """Find the fairest meeting points for a set of participants."""

    def __init__(self, provider: MatrixProvider, config: GenerationConfig | None = None) -> None:
        self.provider = provider
        self.config = config or GenerationConfig()
        self.config.validate()

    async def generate(self, locations: Sequence[Location]) -> GenerationResult:
        config = self.config
        validate_locations(locations, config.max_locations)

        state = _RunState()
        controller = ConcurrencyController(config.max_concurrent_requests)
        origins = [location.coordinate for location in locations]
        scoring_config = ScoringConfig(goal=config.optimization_goal)
        started = time.perf_counter()

        state.advance(GenerationStage.ANCHOR)
        anchors = generate_anchor_points(locations, start_sequence=state.next_sequence)
        state.generated.extend(anchors)

        state.advance(GenerationStage.COARSE_GRID)
        grid = generate_coarse_grid(
            locations, config.grid_size, config.grid_margin_km, start_sequence=state.next_sequence
        )
        state.generated.extend(grid)
        logger.info("Generated %d anchor and %d coarse grid point(s)", len(anchors), len(grid))

        state.advance(GenerationStage.DEDUPLICATION)
        dedup = deduplicate(anchors + grid, config.deduplication_threshold)
        state.kept = dedup.kept
        state.merged_into.update(dedup.merged_into)

        state.advance(GenerationStage.MATRIX)
        acquisition = await acquire_travel_times(
            self.provider,
            origins,
            state.kept,
            config.travel_mode,
            controller,
            config.max_destinations_per_request,
        )
        state.record(acquisition)
        if acquisition.successful_batches == 0:
            raise self._acquisition_failed(acquisition)

        state.advance(GenerationStage.SCORING)
        ranked = score_points(state.kept, acquisition.travel_times, scoring_config)
        if not ranked:
            raise NoScorableCandidatesError(
                f"None of the {len(state.kept)} candidate(s) has travel times for every participant."
            )
        state.scored.update((item.id, item) for item in ranked)
        logger.info("Scored %d of %d candidate(s)", len(ranked), len(state.kept))

        if config.enable_local_refinement:
            state.advance(GenerationStage.LOCAL_REFINEMENT)
            await self._refine(state, ranked, origins, controller, scoring_config)

        state.advance(GenerationStage.SELECTION)
        best = sorted(state.scored.values(), key=_selection_key)[: config.top_m]
        optimal_points = [RankedPoint(rank=position, scored=item) for position, item in enumerate(best, start=1)]

        state.advance(GenerationStage.COMPLETE)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(
            "Generation complete: %d point(s), %d scored, %d provider call(s), %.0f ms",
            len(state.generated),
            len(state.scored),
            state.api_calls,
            elapsed_ms,
        )
        return GenerationResult(
            optimal_points=optimal_points,
            debug_points=self._diagnostics(state),
            matrix_api_calls=state.api_calls,
            total_hypothesis_points=len(state.generated),
            metadata={
                "successful_batches": state.successful_batches,
                "failed_batches": state.failed_batches,
                "deduplicated_points": len(state.merged_into),
                "local_refinement": config.enable_local_refinement,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )

    async def _refine(
        self,
        state: _RunState,
        ranked: list[ScoredPoint],
        origins: list[Coordinate],
        controller: ConcurrencyController,
        scoring_config: ScoringConfig,
    ) -> None:
        config = self.config
        refinement = generate_local_refinement(
            ranked,
            config.refinement_top_k,
            config.refinement_radius_km,
            config.refinement_grid_size,
            start_sequence=state.next_sequence,
        )
        state.generated.extend(refinement)

        dedup = deduplicate(refinement, config.deduplication_threshold, existing=state.kept)
        state.merged_into.update(dedup.merged_into)
        state.kept.extend(dedup.kept)
        logger.info(
            "Local refinement: %d point(s) generated, %d new after deduplication",
            len(refinement),
            len(dedup.kept),
        )
        if not dedup.kept:
            return

        acquisition = await acquire_travel_times(
            self.provider,
            origins,
            dedup.kept,
            config.travel_mode,
            controller,
            config.max_destinations_per_request,
        )
        state.record(acquisition)
        if acquisition.successful_batches == 0:
            logger.warning(
                "Local refinement travel times unavailable (%d failed batch(es)); keeping earlier results",
                acquisition.failed_batches,
            )
            return

        refined = score_points(dedup.kept, acquisition.travel_times, scoring_config)
        state.scored.update((item.id, item) for item in refined)
        logger.info("Scored %d of %d refinement candidate(s)", len(refined), len(dedup.kept))

    @staticmethod
    def _acquisition_failed(acquisition: MatrixAcquisition) -> MatrixAcquisitionFailedError:
        first = acquisition.errors[0] if acquisition.errors else None
        user_message = first.user_message if isinstance(first, MeetpointError) else None
        error = MatrixAcquisitionFailedError(
            f"All {acquisition.failed_batches} matrix batch(es) failed.",
            user_message=user_message,
            details={
                "failed_batches": acquisition.failed_batches,
                "errors": [str(exc) for exc in acquisition.errors],
            },
        )
        error.__cause__ = first
        return error

    @staticmethod
    def _diagnostics(state: _RunState) -> list[DiagnosticPoint]:
        debug_points: list[DiagnosticPoint] = []
        for point in sorted(state.generated, key=lambda p: p.sequence):
            if point.id in state.merged_into:
                debug_points.append(
                    DiagnosticPoint(point=point, status=PointStatus.MERGED, merged_into=state.merged_into[point.id])
                )
            elif point.id in state.scored:
                scored = state.scored[point.id]
                debug_points.append(
                    DiagnosticPoint(point=point, status=PointStatus.SCORED, score=scored.score, metrics=scored.metrics)
                )
            else:
                debug_points.append(DiagnosticPoint(point=point, status=PointStatus.UNSCORED))
        return debug_points


async def run_generation(
    locations: Sequence[Location],
    provider: MatrixProvider,
    config: GenerationConfig | None = None,
) -> GenerationResult:
    return await HypothesisPointGenerator(provider, config).generate(locations)
