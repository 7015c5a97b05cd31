import asyncio

import pytest

from meetpoint.errors import EmptyInputError, InvalidConfigurationError, MatrixShapeError
from meetpoint.models.domain import (
    Coordinate,
    HypothesisPoint,
    Location,
    Phase,
    PointType,
    ScoredPoint,
    TravelMode,
    TravelTimeMetrics,
)
from meetpoint.services.concurrency import ConcurrencyController
from meetpoint.services.generation import (
    acquire_travel_times,
    deduplicate,
    generate_anchor_points,
    generate_coarse_grid,
    generate_local_refinement,
)
from meetpoint.services.geospatial import distance_meters


def _location(index: int, lat: float, lon: float) -> Location:
    return Location(id=f"p{index}", name=f"Person {index}", coordinate=Coordinate(lat, lon))


def _point(point_id: str, lat: float, lon: float, point_type: PointType, sequence: int) -> HypothesisPoint:
    return HypothesisPoint(id=point_id, coordinate=Coordinate(lat, lon), type=point_type, sequence=sequence)


LOCATIONS = [
    _location(0, 52.52, 13.40),
    _location(1, 52.50, 13.30),
    _location(2, 52.45, 13.45),
]


def test_anchor_points_cover_centroid_median_participants_and_pairs():
    anchors = generate_anchor_points(LOCATIONS)
    ids = [point.id for point in anchors]
    assert ids == [
        "anchor_geographic_centroid",
        "anchor_median_coordinate",
        "anchor_participant_0",
        "anchor_participant_1",
        "anchor_participant_2",
        "anchor_pairwise_0_1",
        "anchor_pairwise_0_2",
        "anchor_pairwise_1_2",
    ]
    assert [point.sequence for point in anchors] == list(range(8))
    assert all(point.phase is Phase.ANCHOR for point in anchors)
    assert anchors[2].metadata.participant_id == "p0"
    assert anchors[2].coordinate == LOCATIONS[0].coordinate
    assert anchors[-1].metadata.pair_ids == ("p1", "p2")
    assert anchors[0].coordinate.latitude == pytest.approx((52.52 + 52.50 + 52.45) / 3)
    assert anchors[1].coordinate == Coordinate(52.50, 13.40)


def test_anchor_points_require_locations():
    with pytest.raises(EmptyInputError):
        generate_anchor_points([])


def test_coarse_grid_shape_and_ids():
    grid = generate_coarse_grid(LOCATIONS, grid_size=4, margin_km=5.0, start_sequence=8)
    assert len(grid) == 16
    assert grid[0].id == "coarse_grid_0"
    assert grid[-1].id == "coarse_grid_15"
    assert grid[0].sequence == 8
    assert all(point.type is PointType.COARSE_GRID_CELL for point in grid)
    # row-major from the south-west corner
    assert grid[0].coordinate.latitude < grid[4].coordinate.latitude
    assert grid[0].coordinate.longitude < grid[1].coordinate.longitude
    south = min(location.coordinate.latitude for location in LOCATIONS)
    assert grid[0].coordinate.latitude < south


def test_coarse_grid_rejects_bad_size():
    with pytest.raises(InvalidConfigurationError):
        generate_coarse_grid(LOCATIONS, grid_size=0, margin_km=1.0)


def test_local_refinement_around_top_candidates():
    metrics = TravelTimeMetrics(max_travel_time=1, average_travel_time=1, total_travel_time=2)
    seeds = [
        ScoredPoint(point=_point(f"coarse_grid_{i}", 52.5 + i * 0.1, 13.4, PointType.COARSE_GRID_CELL, i), score=i, metrics=metrics)
        for i in range(4)
    ]
    refined = generate_local_refinement(seeds, top_k=2, radius_km=1.0, grid_size=3, start_sequence=100)
    assert len(refined) == 18
    assert refined[0].id == "local_refinement_0_0"
    assert refined[9].id == "local_refinement_1_0"
    assert refined[-1].sequence == 117
    assert all(point.phase is Phase.LOCAL_REFINEMENT for point in refined)
    # center cell of a 3x3 grid sits on the seed
    assert refined[4].coordinate.latitude == pytest.approx(52.5)
    assert refined[4].coordinate.longitude == pytest.approx(13.4)
    for point in refined[:9]:
        assert distance_meters(point.coordinate, seeds[0].point.coordinate) < 1500


def test_deduplicate_keeps_earliest_phase_then_sequence():
    anchor = _point("anchor_participant_0", 52.5, 13.4, PointType.PARTICIPANT_LOCATION, 5)
    early_grid = _point("coarse_grid_0", 52.5001, 13.4, PointType.COARSE_GRID_CELL, 1)
    late_grid = _point("coarse_grid_1", 52.5002, 13.4, PointType.COARSE_GRID_CELL, 2)
    far = _point("coarse_grid_2", 52.6, 13.4, PointType.COARSE_GRID_CELL, 3)

    result = deduplicate([early_grid, late_grid, far, anchor], threshold_m=100)

    assert [point.id for point in result.kept] == ["coarse_grid_2", "anchor_participant_0"]
    assert result.merged_into == {"coarse_grid_0": "anchor_participant_0", "coarse_grid_1": "anchor_participant_0"}
    # representatives are never moved
    assert result.kept[1].coordinate == Coordinate(52.5, 13.4)


def test_deduplicate_threshold_is_strict():
    a = _point("a", 0.0, 0.0, PointType.COARSE_GRID_CELL, 0)
    b = _point("b", 0.0, 0.001, PointType.COARSE_GRID_CELL, 1)
    gap = distance_meters(a.coordinate, b.coordinate)
    assert len(deduplicate([a, b], threshold_m=gap).kept) == 2
    assert len(deduplicate([a, b], threshold_m=gap + 0.01).kept) == 1
    assert len(deduplicate([a, b], threshold_m=0).kept) == 2


def test_deduplicate_against_existing_points():
    existing = [_point("coarse_grid_0", 10.0, 10.0, PointType.COARSE_GRID_CELL, 0)]
    near = _point("local_refinement_0_0", 10.0, 10.0001, PointType.LOCAL_REFINEMENT_CELL, 1)
    new = _point("local_refinement_0_1", 10.1, 10.0, PointType.LOCAL_REFINEMENT_CELL, 2)
    result = deduplicate([near, new], threshold_m=500, existing=existing)
    assert [point.id for point in result.kept] == ["local_refinement_0_1"]
    assert result.merged_into == {"local_refinement_0_0": "coarse_grid_0"}


@pytest.mark.parametrize("threshold", [-1, 50_001, float("nan"), float("inf")])
def test_deduplicate_rejects_bad_threshold(threshold):
    with pytest.raises(InvalidConfigurationError):
        deduplicate([], threshold_m=threshold)


class RecordingProvider:
    def __init__(self, fail_batches: set[int] | None = None, malformed_batches: set[int] | None = None):
        self.calls: list[int] = []
        self.fail_batches = fail_batches or set()
        self.malformed_batches = malformed_batches or set()

    async def fetch_travel_times(self, origins, destinations, mode):
        batch = len(self.calls)
        self.calls.append(len(destinations))
        await asyncio.sleep(0)
        if batch in self.fail_batches:
            raise RuntimeError(f"batch {batch} failed")
        if batch in self.malformed_batches:
            return [[1.0] * len(destinations)]
        return [[float(batch * 100 + column) for column in range(len(destinations))] for _ in origins]


def _grid_points(count: int) -> list[HypothesisPoint]:
    return [_point(f"coarse_grid_{i}", 50 + i * 0.01, 10.0, PointType.COARSE_GRID_CELL, i) for i in range(count)]


def test_acquire_travel_times_batches_and_aligns():
    provider = RecordingProvider()
    points = _grid_points(5)
    origins = [location.coordinate for location in LOCATIONS]

    result = asyncio.run(
        acquire_travel_times(provider, origins, points, TravelMode.DRIVING_CAR, ConcurrencyController(2), 2)
    )

    assert sorted(provider.calls) == [1, 2, 2]
    assert result.api_calls == 3
    assert result.successful_batches == 3
    assert len(result.travel_times) == 5
    assert all(len(times) == 3 for times in result.travel_times)


def test_failed_and_malformed_batches_only_exclude_their_points():
    provider = RecordingProvider(fail_batches={0}, malformed_batches={2})
    controller = ConcurrencyController(1)
    origins = [location.coordinate for location in LOCATIONS]

    result = asyncio.run(
        acquire_travel_times(provider, origins, _grid_points(5), TravelMode.DRIVING_CAR, controller, 2)
    )

    assert result.successful_batches == 1
    assert result.failed_batches == 2
    assert [len(times) for times in result.travel_times] == [0, 0, 3, 3, 0]
    assert isinstance(result.errors[1], MatrixShapeError)


def test_acquire_with_no_points_makes_no_calls():
    provider = RecordingProvider()
    result = asyncio.run(
        acquire_travel_times(provider, [], [], TravelMode.DRIVING_CAR, ConcurrencyController(), 50)
    )
    assert result.api_calls == 0
    assert provider.calls == []
