"""Anchor hypothesis points derived directly from participant locations."""

from __future__ import annotations

from itertools import combinations
from typing import Sequence

from ...errors import EmptyInputError
from ...models.domain import HypothesisPoint, Location, PointMetadata, PointType
from ..geospatial import geographic_centroid, median_coordinate, midpoint


def generate_anchor_points(locations: Sequence[Location], start_sequence: int = 0) -> list[HypothesisPoint]:
    """Centroid, median, every participant and every pairwise midpoint.

    For ``n`` locations this yields ``2 + n + n*(n-1)/2`` points.
    """
    if not locations:
        raise EmptyInputError("At least one location is required to generate anchors.")

    coordinates = [location.coordinate for location in locations]
    points: list[HypothesisPoint] = []

    def add(point_id: str, coordinate, point_type: PointType, metadata: PointMetadata | None = None) -> None:
        points.append(
            HypothesisPoint(
                id=point_id,
                coordinate=coordinate,
                type=point_type,
                sequence=start_sequence + len(points),
                metadata=metadata,
            )
        )

    add("anchor_geographic_centroid", geographic_centroid(coordinates), PointType.GEOGRAPHIC_CENTROID)
    add("anchor_median_coordinate", median_coordinate(coordinates), PointType.MEDIAN_COORDINATE)

    for index, location in enumerate(locations):
        add(
            f"anchor_participant_{index}",
            location.coordinate,
            PointType.PARTICIPANT_LOCATION,
            PointMetadata(participant_id=location.id),
        )

    for (i, first), (j, second) in combinations(enumerate(locations), 2):
        add(
            f"anchor_pairwise_{i}_{j}",
            midpoint(first.coordinate, second.coordinate),
            PointType.PAIRWISE_MIDPOINT,
            PointMetadata(pair_ids=(first.id, second.id)),
        )

    return points
