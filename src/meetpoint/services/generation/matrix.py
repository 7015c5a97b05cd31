"""Batched travel-time matrix acquisition for hypothesis points."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from ...errors import InvalidConfigurationError, MatrixShapeError
from ...models.domain import Coordinate, HypothesisPoint, PerPersonTravelTime, TravelMode
from ..concurrency import ConcurrencyController
from ..providers.base import MatrixProvider
from ..scoring import convert_travel_time_matrix

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MatrixAcquisition:
    """Per-candidate travel times aligned with the requested points.

    A candidate whose batch failed gets an empty list.
    """

    travel_times: list[list[PerPersonTravelTime]]
    api_calls: int = 0
    successful_batches: int = 0
    failed_batches: int = 0
    errors: list[BaseException] = field(default_factory=list)


def _as_minutes(value: object) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return math.inf
    return float(value)


def _validated_matrix(matrix: object, origin_count: int, destination_count: int) -> list[list[float]]:
    if not isinstance(matrix, (list, tuple)) or len(matrix) != origin_count:
        rows = len(matrix) if isinstance(matrix, (list, tuple)) else type(matrix).__name__
        raise MatrixShapeError(f"Expected {origin_count} matrix rows, got {rows}.")
    validated: list[list[float]] = []
    for origin_index, row in enumerate(matrix):
        if not isinstance(row, (list, tuple)) or len(row) != destination_count:
            raise MatrixShapeError(
                f"Matrix row {origin_index} does not have {destination_count} destination(s)."
            )
        validated.append([_as_minutes(value) for value in row])
    return validated


def _batches(points: Sequence[HypothesisPoint], size: int) -> list[list[HypothesisPoint]]:
    return [list(points[start : start + size]) for start in range(0, len(points), size)]


async def acquire_travel_times(
    provider: MatrixProvider,
    origins: Sequence[Coordinate],
    points: Sequence[HypothesisPoint],
    mode: TravelMode,
    controller: ConcurrencyController,
    max_destinations_per_request: int,
) -> MatrixAcquisition:
    """Fetch travel times from every origin to every point.

    Points are split into batches of ``max_destinations_per_request`` and each
    batch is one provider call scheduled through ``controller``. A failing or
    malformed batch only marks its own points as unscorable.
    """
    if max_destinations_per_request < 1:
        raise InvalidConfigurationError(
            f"max_destinations_per_request must be >= 1, got {max_destinations_per_request}."
        )
    if not points:
        return MatrixAcquisition(travel_times=[])

    origin_list = list(origins)
    batches = _batches(points, max_destinations_per_request)

    def make_task(batch: list[HypothesisPoint]):
        destinations = [point.coordinate for point in batch]

        async def run() -> list[list[float]]:
            return await provider.fetch_travel_times(origin_list, destinations, mode)

        return run

    logger.info(
        "Requesting travel times for %d point(s) in %d batch(es) (max %d concurrent)",
        len(points),
        len(batches),
        controller.max_concurrent,
    )
    outcomes = await controller.execute([make_task(batch) for batch in batches])

    result = MatrixAcquisition(travel_times=[], api_calls=len(batches))
    for batch_index, (batch, outcome) in enumerate(zip(batches, outcomes)):
        per_point: list[list[PerPersonTravelTime]] | None = None
        if outcome.ok:
            try:
                matrix = _validated_matrix(outcome.value, len(origin_list), len(batch))
                per_point = convert_travel_time_matrix(matrix)
            except (MatrixShapeError, ValueError) as exc:
                result.errors.append(exc)
                logger.warning("Discarding malformed matrix for batch %d: %s", batch_index, exc)
        else:
            result.errors.append(outcome.reason)
            logger.warning("Matrix batch %d failed: %s", batch_index, outcome.reason)

        if per_point is None:
            result.failed_batches += 1
            result.travel_times.extend([] for _ in batch)
        else:
            result.successful_batches += 1
            result.travel_times.extend(per_point)

    return result
