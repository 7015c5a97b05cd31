"""Meeting point request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import OptimizationGoal, Phase, PointStatus, PointType, TravelMode


class LocationInput(BaseModel):
    name: str = Field(..., min_length=1)
    latitude: float
    longitude: float
    id: Optional[str] = Field(default=None, description="Stable participant id. Defaults to participant_{index}.")


class FindOptimalLocationsRequest(BaseModel):
    locations: List[LocationInput]
    travel_mode: TravelMode = TravelMode.DRIVING_CAR
    optimization_goal: OptimizationGoal = OptimizationGoal.MINIMAX
    top_m: Optional[int] = Field(default=None, description="Number of points to return (1-50).")
    grid_size: Optional[int] = Field(default=None, description="Coarse grid cells per side (2-20).")
    grid_margin_km: Optional[float] = Field(default=None, description="Padding around the participants (0-50 km).")
    deduplication_threshold: Optional[float] = Field(
        default=None, description="Points closer than this many meters are merged (100-50000)."
    )
    enable_local_refinement: bool = False
    refinement_top_k: Optional[int] = None
    refinement_radius_km: Optional[float] = None
    refinement_grid_size: Optional[int] = None

    @field_validator("optimization_goal", mode="before")
    @classmethod
    def _accept_goal_aliases(cls, value: Any) -> Any:
        """Accept MINIMIZE_VARIANCE / MINIMIZE_TOTAL and lower-case goal names."""
        if isinstance(value, str):
            return OptimizationGoal(value)
        return value


class CoordinateModel(BaseModel):
    latitude: float
    longitude: float


class TravelTimeMetricsModel(BaseModel):
    max_travel_time: float
    average_travel_time: float
    total_travel_time: float
    variance: Optional[float] = None


class OptimalPointModel(BaseModel):
    id: str
    coordinate: CoordinateModel
    type: PointType
    phase: Phase
    source_phase: Phase
    score: float
    travel_time_metrics: TravelTimeMetricsModel
    rank: int


class DebugPointModel(BaseModel):
    id: str
    coordinate: CoordinateModel
    type: PointType
    phase: Phase
    status: PointStatus
    score: Optional[float] = None
    merged_into: Optional[str] = None


class OptimalLocationsResponse(BaseModel):
    optimal_points: List[OptimalPointModel]
    debug_points: List[DebugPointModel]
    matrix_api_calls: int
    total_hypothesis_points: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ParsedCoordinateResponse(BaseModel):
    valid: bool
    coordinate: Optional[CoordinateModel] = None
    formatted: Optional[str] = None
