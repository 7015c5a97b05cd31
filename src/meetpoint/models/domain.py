"""Domain models for participants, hypothesis points and their scores."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class TravelMode(str, Enum):
    DRIVING_CAR = "DRIVING_CAR"
    CYCLING_REGULAR = "CYCLING_REGULAR"
    FOOT_WALKING = "FOOT_WALKING"

    @property
    def profile(self) -> str:
        """Routing profile name used by OpenRouteService."""
        return self.value.lower().replace("_", "-")


class OptimizationGoal(str, Enum):
    """Metric that becomes the comparable score. Lower is always better."""

    MINIMAX = "MINIMAX"
    MEAN = "MEAN"
    MIN = "MIN"

    @classmethod
    def _missing_(cls, value: object) -> Optional["OptimizationGoal"]:
        if isinstance(value, str):
            normalized = value.strip().upper()
            aliases = {"MINIMIZE_VARIANCE": cls.MEAN, "MINIMIZE_TOTAL": cls.MIN}
            if normalized in aliases:
                return aliases[normalized]
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class PointType(str, Enum):
    GEOGRAPHIC_CENTROID = "GEOGRAPHIC_CENTROID"
    MEDIAN_COORDINATE = "MEDIAN_COORDINATE"
    PARTICIPANT_LOCATION = "PARTICIPANT_LOCATION"
    PAIRWISE_MIDPOINT = "PAIRWISE_MIDPOINT"
    COARSE_GRID_CELL = "COARSE_GRID_CELL"
    LOCAL_REFINEMENT_CELL = "LOCAL_REFINEMENT_CELL"


class Phase(str, Enum):
    ANCHOR = "ANCHOR"
    COARSE_GRID = "COARSE_GRID"
    LOCAL_REFINEMENT = "LOCAL_REFINEMENT"
    FINAL_OUTPUT = "FINAL_OUTPUT"

    @property
    def priority(self) -> int:
        """Earlier phases win deduplication and score ties."""
        match self:
            case Phase.ANCHOR:
                return 0
            case Phase.COARSE_GRID:
                return 1
            case Phase.LOCAL_REFINEMENT:
                return 2
            case Phase.FINAL_OUTPUT:
                return 3


def phase_for_type(point_type: PointType) -> Phase:
    match point_type:
        case (
            PointType.GEOGRAPHIC_CENTROID
            | PointType.MEDIAN_COORDINATE
            | PointType.PARTICIPANT_LOCATION
            | PointType.PAIRWISE_MIDPOINT
        ):
            return Phase.ANCHOR
        case PointType.COARSE_GRID_CELL:
            return Phase.COARSE_GRID
        case PointType.LOCAL_REFINEMENT_CELL:
            return Phase.LOCAL_REFINEMENT
    raise ValueError(f"Unknown point type '{point_type}'.")


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class Location:
    """A participant's home coordinate plus a display name."""

    id: str
    name: str
    coordinate: Coordinate


@dataclass(frozen=True, slots=True)
class PointMetadata:
    participant_id: Optional[str] = None
    pair_ids: Optional[tuple[str, str]] = None


@dataclass(frozen=True, slots=True)
class HypothesisPoint:
    """A candidate meeting point created during one generation phase.

    ``sequence`` is the global generation order inside a run and is used to
    break ties deterministically.
    """

    id: str
    coordinate: Coordinate
    type: PointType
    sequence: int = 0
    metadata: Optional[PointMetadata] = None

    @property
    def phase(self) -> Phase:
        return phase_for_type(self.type)


@dataclass(frozen=True, slots=True)
class PerPersonTravelTime:
    """One participant's travel time to one candidate, in minutes."""

    outbound: float

    @property
    def is_valid(self) -> bool:
        return isinstance(self.outbound, (int, float)) and math.isfinite(self.outbound) and self.outbound >= 0


@dataclass(frozen=True, slots=True)
class TravelTimeMetrics:
    max_travel_time: float
    average_travel_time: float
    total_travel_time: float
    variance: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ScoredPoint:
    point: HypothesisPoint
    score: float
    metrics: TravelTimeMetrics

    @property
    def id(self) -> str:
        return self.point.id


@dataclass(frozen=True, slots=True)
class RankedPoint:
    """A selected point; a view over an earlier scored candidate."""

    rank: int
    scored: ScoredPoint

    @property
    def id(self) -> str:
        return self.scored.point.id

    @property
    def phase(self) -> Phase:
        return Phase.FINAL_OUTPUT

    @property
    def source_phase(self) -> Phase:
        return self.scored.point.phase


class PointStatus(str, Enum):
    SCORED = "scored"
    UNSCORED = "unscored"
    MERGED = "merged"


@dataclass(slots=True)
class DiagnosticPoint:
    point: HypothesisPoint
    status: PointStatus
    score: Optional[float] = None
    metrics: Optional[TravelTimeMetrics] = None
    merged_into: Optional[str] = None


@dataclass(slots=True)
class GenerationResult:
    optimal_points: list[RankedPoint]
    debug_points: list[DiagnosticPoint]
    matrix_api_calls: int
    total_hypothesis_points: int
    metadata: dict = field(default_factory=dict)
