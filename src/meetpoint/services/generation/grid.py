"""Grid based hypothesis points: the coarse search grid and local refinement."""

from __future__ import annotations

import logging
from typing import Sequence

from ...errors import EmptyInputError, InvalidConfigurationError
from ...models.domain import HypothesisPoint, Location, PointType, ScoredPoint
from ..geospatial import bounding_box, box_around, grid_cell_centers

logger = logging.getLogger(__name__)


def generate_coarse_grid(
    locations: Sequence[Location],
    grid_size: int,
    margin_km: float,
    start_sequence: int = 0,
) -> list[HypothesisPoint]:
    """``grid_size x grid_size`` cell centers over the padded participant bounding box."""
    if not locations:
        raise EmptyInputError("At least one location is required to generate a grid.")
    if grid_size < 1:
        raise InvalidConfigurationError(f"grid_size must be >= 1, got {grid_size}.")

    box = bounding_box([location.coordinate for location in locations], margin_km)
    centers = grid_cell_centers(box, grid_size)
    logger.debug(
        "Coarse grid %dx%d over S%.4f W%.4f N%.4f E%.4f",
        grid_size,
        grid_size,
        box.south,
        box.west,
        box.north,
        box.east,
    )
    return [
        HypothesisPoint(
            id=f"coarse_grid_{index}",
            coordinate=center,
            type=PointType.COARSE_GRID_CELL,
            sequence=start_sequence + index,
        )
        for index, center in enumerate(centers)
    ]


def generate_local_refinement(
    scored: Sequence[ScoredPoint],
    top_k: int,
    radius_km: float,
    grid_size: int,
    start_sequence: int = 0,
) -> list[HypothesisPoint]:
    """Fine grids around the ``top_k`` best candidates of ``scored`` (already ranked)."""
    if top_k < 1:
        raise InvalidConfigurationError(f"top_k must be >= 1, got {top_k}.")
    if grid_size < 1:
        raise InvalidConfigurationError(f"grid_size must be >= 1, got {grid_size}.")
    if radius_km <= 0:
        raise InvalidConfigurationError(f"radius_km must be > 0, got {radius_km}.")

    points: list[HypothesisPoint] = []
    for candidate_index, seed in enumerate(scored[:top_k]):
        centers = grid_cell_centers(box_around(seed.point.coordinate, radius_km), grid_size)
        for grid_index, center in enumerate(centers):
            points.append(
                HypothesisPoint(
                    id=f"local_refinement_{candidate_index}_{grid_index}",
                    coordinate=center,
                    type=PointType.LOCAL_REFINEMENT_CELL,
                    sequence=start_sequence + len(points),
                )
            )
    return points
