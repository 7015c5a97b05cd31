import asyncio
import math

import pytest

from meetpoint.errors import (
    InsufficientLocationsError,
    InvalidConfigurationError,
    InvalidCoordinateError,
    MatrixAcquisitionFailedError,
    NoScorableCandidatesError,
    ProviderRateLimitError,
    TooManyLocationsError,
    UnknownGoalError,
)
from meetpoint.models.domain import (
    Coordinate,
    Location,
    OptimizationGoal,
    Phase,
    PointStatus,
    PointType,
    TravelMode,
)
from meetpoint.services.generation import GenerationConfig, HypothesisPointGenerator, run_generation
from meetpoint.services.providers import HaversineMatrixProvider


def _location(index: int, lat: float, lon: float) -> Location:
    return Location(id=f"p{index}", name=f"Person {index}", coordinate=Coordinate(lat, lon))


LOCATIONS = [
    _location(0, 52.52, 13.40),
    _location(1, 52.48, 13.30),
    _location(2, 52.45, 13.46),
]


class CountingProvider:
    """Haversine estimates plus call counting and scripted failures."""

    def __init__(self, fail_from_call: int | None = None, error: Exception | None = None):
        self.inner = HaversineMatrixProvider(detour_factor=1.0)
        self.calls = 0
        self.fail_from_call = fail_from_call
        self.error = error or RuntimeError("provider unavailable")

    async def fetch_travel_times(self, origins, destinations, mode):
        call = self.calls
        self.calls += 1
        if self.fail_from_call is not None and call >= self.fail_from_call:
            raise self.error
        return await self.inner.fetch_travel_times(origins, destinations, mode)


class UnreachableProvider:
    async def fetch_travel_times(self, origins, destinations, mode):
        return [[math.inf for _ in destinations] for _ in origins]


def _run(provider, **config):
    return asyncio.run(run_generation(LOCATIONS, provider, GenerationConfig(**config)))


def test_end_to_end_returns_ranked_points():
    provider = CountingProvider()
    result = _run(provider, grid_size=5, top_m=3)

    anchors = 2 + 3 + 3
    assert result.total_hypothesis_points == anchors + 25
    assert len(result.debug_points) == result.total_hypothesis_points
    assert result.matrix_api_calls == provider.calls == 1

    assert [point.rank for point in result.optimal_points] == [1, 2, 3]
    scores = [point.scored.score for point in result.optimal_points]
    assert scores == sorted(scores)
    assert all(point.phase is Phase.FINAL_OUTPUT for point in result.optimal_points)
    assert len({point.id for point in result.optimal_points}) == 3


def test_debug_points_follow_generation_order_and_statuses():
    result = _run(CountingProvider(), grid_size=3)
    sequences = [item.point.sequence for item in result.debug_points]
    assert sequences == sorted(sequences)
    assert result.debug_points[0].point.id == "anchor_geographic_centroid"

    by_id = {item.point.id: item for item in result.debug_points}
    for item in result.debug_points:
        if item.status is PointStatus.MERGED:
            assert by_id[item.merged_into].status is not PointStatus.MERGED
        if item.status is PointStatus.SCORED:
            assert item.score is not None
    assert all(point.scored.score == by_id[point.id].score for point in result.optimal_points)


def test_minimax_prefers_a_central_point():
    result = _run(CountingProvider(), optimization_goal=OptimizationGoal.MINIMAX)
    best = result.optimal_points[0].scored
    participant_scores = [
        item.score
        for item in result.debug_points
        if item.point.type is PointType.PARTICIPANT_LOCATION and item.score is not None
    ]
    assert best.score <= min(participant_scores)


def test_batches_respect_max_destinations():
    provider = CountingProvider()
    result = _run(provider, grid_size=7, max_destinations_per_request=10, max_concurrent_requests=2)
    kept = sum(1 for item in result.debug_points if item.status is not PointStatus.MERGED)
    assert result.matrix_api_calls == math.ceil(kept / 10)


def test_partial_batch_failure_degrades():
    provider = CountingProvider(fail_from_call=1)
    result = _run(provider, grid_size=7, max_destinations_per_request=10, max_concurrent_requests=1)
    statuses = {item.status for item in result.debug_points}
    assert PointStatus.UNSCORED in statuses
    assert result.optimal_points
    assert result.metadata["failed_batches"] >= 1


def test_total_failure_raises_matrix_acquisition_failed():
    provider = CountingProvider(fail_from_call=0, error=ProviderRateLimitError("429"))
    with pytest.raises(MatrixAcquisitionFailedError) as excinfo:
        _run(provider, max_destinations_per_request=10)
    assert excinfo.value.user_message == ProviderRateLimitError.default_user_message


def test_nothing_reachable_raises_no_scorable_candidates():
    with pytest.raises(NoScorableCandidatesError):
        _run(UnreachableProvider())


def test_local_refinement_adds_scored_points():
    provider = CountingProvider()
    result = _run(
        provider,
        grid_size=3,
        enable_local_refinement=True,
        refinement_top_k=2,
        refinement_radius_km=2.0,
        refinement_grid_size=3,
    )
    refinement = [item for item in result.debug_points if item.point.type is PointType.LOCAL_REFINEMENT_CELL]
    assert len(refinement) == 18
    assert any(item.status is PointStatus.SCORED for item in refinement)
    assert provider.calls == 2
    assert result.total_hypothesis_points == 8 + 9 + 18


def test_refinement_failure_keeps_earlier_results():
    provider = CountingProvider(fail_from_call=1)
    result = _run(provider, grid_size=3, enable_local_refinement=True)
    refinement = [item for item in result.debug_points if item.point.type is PointType.LOCAL_REFINEMENT_CELL]
    assert refinement
    assert all(item.status is not PointStatus.SCORED for item in refinement)
    assert all(point.source_phase is not Phase.LOCAL_REFINEMENT for point in result.optimal_points)


def test_fail_fast_on_bad_locations():
    provider = CountingProvider()
    with pytest.raises(InsufficientLocationsError):
        asyncio.run(run_generation(LOCATIONS[:1], provider))
    many = [_location(i, 50 + i * 0.01, 10.0) for i in range(13)]
    with pytest.raises(TooManyLocationsError):
        asyncio.run(run_generation(many, provider))
    invalid = LOCATIONS[:2] + [Location(id="bad", name="Bad", coordinate=Coordinate(95.0, 10.0))]
    with pytest.raises(InvalidCoordinateError):
        asyncio.run(run_generation(invalid, provider))
    assert provider.calls == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"top_m": 0},
        {"top_m": 51},
        {"grid_size": 1},
        {"grid_size": 21},
        {"grid_margin_km": -1},
        {"deduplication_threshold": 0},
        {"deduplication_threshold": 99.9},
        {"deduplication_threshold": float("inf")},
        {"refinement_top_k": 0},
        {"refinement_radius_km": 0.05},
        {"refinement_grid_size": 1},
        {"travel_mode": "TELEPORT"},
    ],
)
def test_invalid_configuration_is_rejected(overrides):
    with pytest.raises(InvalidConfigurationError):
        HypothesisPointGenerator(CountingProvider(), GenerationConfig(**overrides))


def test_unknown_goal_is_rejected_and_aliases_accepted():
    with pytest.raises(UnknownGoalError):
        HypothesisPointGenerator(CountingProvider(), GenerationConfig(optimization_goal="FASTEST"))
    generator = HypothesisPointGenerator(CountingProvider(), GenerationConfig(optimization_goal="MINIMIZE_VARIANCE"))
    assert generator.config.optimization_goal is OptimizationGoal.MEAN
    assert generator.config.travel_mode is TravelMode.DRIVING_CAR
