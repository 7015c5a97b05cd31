"""Proximity based deduplication of hypothesis points."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from ...errors import InvalidConfigurationError
from ...models.domain import HypothesisPoint
from ..geospatial import distance_meters

MAX_DEDUPLICATION_THRESHOLD_M = 50_000.0

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DeduplicationResult:
    kept: list[HypothesisPoint]
    merged_into: dict[str, str] = field(default_factory=dict)


def _priority(point: HypothesisPoint) -> tuple[int, int]:
    return (point.phase.priority, point.sequence)


def deduplicate(
    candidates: Sequence[HypothesisPoint],
    threshold_m: float,
    existing: Sequence[HypothesisPoint] = (),
) -> DeduplicationResult:
    """Collapse candidates closer than ``threshold_m`` onto a representative.

    Points are visited by (phase priority, sequence); a point strictly closer
    than the threshold to any already kept point is merged into the nearest
    one. Kept points keep their original coordinates. ``existing`` points are
    representatives from earlier phases: they are matched against but never
    returned again.
    """
    if not isinstance(threshold_m, (int, float)) or not math.isfinite(threshold_m):
        raise InvalidConfigurationError(f"Deduplication threshold must be finite, got {threshold_m!r}.")
    if threshold_m < 0 or threshold_m > MAX_DEDUPLICATION_THRESHOLD_M:
        raise InvalidConfigurationError(
            f"Deduplication threshold must be between 0 and {MAX_DEDUPLICATION_THRESHOLD_M:.0f} m, got {threshold_m}."
        )

    representatives: list[HypothesisPoint] = list(existing)
    kept: list[HypothesisPoint] = []
    merged_into: dict[str, str] = {}

    for point in sorted(candidates, key=_priority):
        nearest: HypothesisPoint | None = None
        nearest_distance = math.inf
        for representative in representatives:
            distance = distance_meters(point.coordinate, representative.coordinate)
            if distance < threshold_m and distance < nearest_distance:
                nearest = representative
                nearest_distance = distance
        if nearest is None:
            representatives.append(point)
            kept.append(point)
        else:
            merged_into[point.id] = nearest.id
            logger.debug("Merged %s into %s (%.1f m)", point.id, nearest.id, nearest_distance)

    kept.sort(key=lambda p: p.sequence)
    logger.info(
        "Deduplication: %d candidate(s) -> %d kept, %d merged (threshold %.0f m)",
        len(candidates),
        len(kept),
        len(merged_into),
        threshold_m,
    )
    return DeduplicationResult(kept=kept, merged_into=merged_into)
