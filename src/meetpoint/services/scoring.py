"""Travel-time scoring: per-candidate metrics, goal scores and ranking."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from ..errors import (
    EmptyInputError,
    EmptyMatrixError,
    IndexOutOfBoundsError,
    InvalidMetricsError,
    InvalidTravelTimeError,
    LengthMismatchError,
    MissingVarianceError,
    NegativeIndexError,
    NoDestinationsError,
    UnknownGoalError,
)
from ..models.domain import (
    HypothesisPoint,
    OptimizationGoal,
    PerPersonTravelTime,
    ScoredPoint,
    TravelTimeMetrics,
)

logger = logging.getLogger(__name__)

TravelTimeMatrix = list[list[float]]


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    goal: OptimizationGoal = OptimizationGoal.MINIMAX
    include_variance: bool = False

    @property
    def needs_variance(self) -> bool:
        return self.include_variance or self.goal is OptimizationGoal.MEAN


def _is_valid_time(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )


def calculate_travel_time_metrics(
    travel_times: Sequence[PerPersonTravelTime], include_variance: bool = False
) -> TravelTimeMetrics:
    """Aggregate one candidate's per-participant travel times.

    Variance is the population variance and is only computed on request.
    """
    if not travel_times:
        raise EmptyInputError("Travel times cannot be empty.")

    values: list[float] = []
    for position, entry in enumerate(travel_times):
        if not _is_valid_time(entry.outbound):
            raise InvalidTravelTimeError(
                f"Invalid travel time at position {position}: {entry.outbound!r}."
            )
        values.append(float(entry.outbound))

    total = sum(values)
    average = total / len(values)
    variance = None
    if include_variance:
        variance = sum((value - average) * (value - average) for value in values) / len(values)

    return TravelTimeMetrics(
        max_travel_time=max(values),
        average_travel_time=average,
        total_travel_time=total,
        variance=variance,
    )


def calculate_score(metrics: TravelTimeMetrics, goal: OptimizationGoal) -> float:
    """Reduce metrics to the single comparable number for ``goal``. Lower is better."""
    try:
        goal = OptimizationGoal(goal)
    except ValueError as exc:
        raise UnknownGoalError(f"Unknown optimization goal: {goal!r}.") from exc

    match goal:
        case OptimizationGoal.MINIMAX:
            value = metrics.max_travel_time
            field_name = "max_travel_time"
        case OptimizationGoal.MEAN:
            if metrics.variance is None:
                raise MissingVarianceError("The MEAN goal requires variance in the metrics.")
            value = metrics.variance
            field_name = "variance"
        case OptimizationGoal.MIN:
            value = metrics.total_travel_time
            field_name = "total_travel_time"
        case _:
            raise UnknownGoalError(f"Unknown optimization goal: {goal!r}.")

    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidMetricsError(f"Metric '{field_name}' is not a finite number: {value!r}.")
    return float(value)


def score_points(
    points: Sequence[HypothesisPoint],
    travel_times_by_point: Sequence[Sequence[PerPersonTravelTime]],
    config: ScoringConfig,
) -> list[ScoredPoint]:
    """Score and rank candidates.

    Candidates are skipped when their travel-time list is empty, holds an
    invalid entry, or overflows when aggregated. The result is sorted
    ascending by score; equal scores keep input order.
    """
    if not points:
        raise EmptyInputError("No hypothesis points to score.")
    if len(points) != len(travel_times_by_point):
        raise LengthMismatchError(
            f"Got {len(points)} points but {len(travel_times_by_point)} travel-time lists."
        )

    scored: list[ScoredPoint] = []
    for point, travel_times in zip(points, travel_times_by_point):
        if not travel_times:
            logger.debug("Skipping %s: no travel-time data", point.id)
            continue
        if not all(entry.is_valid for entry in travel_times):
            logger.debug("Skipping %s: invalid travel-time data", point.id)
            continue
        try:
            metrics = calculate_travel_time_metrics(travel_times, include_variance=config.needs_variance)
            score = calculate_score(metrics, config.goal)
        except (InvalidTravelTimeError, InvalidMetricsError) as exc:
            # Finite inputs can still overflow once summed or squared.
            logger.debug("Skipping %s: %s", point.id, exc)
            continue
        scored.append(ScoredPoint(point=point, score=score, metrics=metrics))

    scored.sort(key=lambda item: item.score)
    return scored


def extract_travel_times_for_destination(matrix: Sequence[Sequence[float]], destination_index: int) -> list[float]:
    """Column ``destination_index`` of the matrix, one value per origin."""
    if destination_index < 0:
        raise NegativeIndexError(f"Destination index must be >= 0, got {destination_index}.")

    column: list[float] = []
    for origin_index, row in enumerate(matrix):
        if destination_index >= len(row):
            raise IndexOutOfBoundsError(
                f"Destination index {destination_index} is out of bounds for origin {origin_index} "
                f"(row length {len(row)}).",
                origin_index=origin_index,
                destination_index=destination_index,
            )
        column.append(row[destination_index])
    return column


def convert_travel_time_matrix(matrix: Sequence[Sequence[float]]) -> list[list[PerPersonTravelTime]]:
    """Transpose an ``[origin][destination]`` matrix into per-destination lists."""
    if not matrix:
        raise EmptyMatrixError("Travel time matrix has no origins.")
    destination_count = len(matrix[0])
    if destination_count == 0:
        raise NoDestinationsError("Travel time matrix has no destinations.")

    return [
        [PerPersonTravelTime(outbound=value) for value in extract_travel_times_for_destination(matrix, index)]
        for index in range(destination_count)
    ]
