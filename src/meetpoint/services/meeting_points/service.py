"""High-level orchestration of meeting point requests."""

from __future__ import annotations

import logging

from ...config import settings
from ...models.domain import Coordinate, DiagnosticPoint, Location, RankedPoint
from ...schemas.meeting_points import (
    CoordinateModel,
    DebugPointModel,
    FindOptimalLocationsRequest,
    OptimalLocationsResponse,
    OptimalPointModel,
    ParsedCoordinateResponse,
    TravelTimeMetricsModel,
)
from ..generation import GenerationConfig, HypothesisPointGenerator
from ..geospatial import format_coordinate, parse_coordinate
from ..providers import build_matrix_provider

logger = logging.getLogger(__name__)


def _pick(value, default):
    return default if value is None else value


def build_generation_config(payload: FindOptimalLocationsRequest) -> GenerationConfig:
    return GenerationConfig(
        travel_mode=payload.travel_mode,
        optimization_goal=payload.optimization_goal,
        top_m=_pick(payload.top_m, settings.default_top_m),
        grid_size=_pick(payload.grid_size, settings.default_grid_size),
        grid_margin_km=_pick(payload.grid_margin_km, settings.default_grid_margin_km),
        deduplication_threshold=_pick(payload.deduplication_threshold, settings.default_deduplication_threshold_m),
        enable_local_refinement=payload.enable_local_refinement,
        refinement_top_k=_pick(payload.refinement_top_k, settings.default_refinement_top_k),
        refinement_radius_km=_pick(payload.refinement_radius_km, settings.default_refinement_radius_km),
        refinement_grid_size=_pick(payload.refinement_grid_size, settings.default_refinement_grid_size),
        max_destinations_per_request=settings.matrix_max_destinations_per_request,
        max_concurrent_requests=settings.matrix_max_concurrent_requests,
        max_locations=settings.max_locations,
    )


def _to_locations(payload: FindOptimalLocationsRequest) -> list[Location]:
    return [
        Location(
            id=item.id or f"participant_{index}",
            name=item.name,
            coordinate=Coordinate(latitude=item.latitude, longitude=item.longitude),
        )
        for index, item in enumerate(payload.locations)
    ]


def _coordinate_model(coordinate: Coordinate) -> CoordinateModel:
    return CoordinateModel(latitude=coordinate.latitude, longitude=coordinate.longitude)


def _optimal_point_model(ranked: RankedPoint) -> OptimalPointModel:
    scored = ranked.scored
    metrics = scored.metrics
    return OptimalPointModel(
        id=ranked.id,
        coordinate=_coordinate_model(scored.point.coordinate),
        type=scored.point.type,
        phase=ranked.phase,
        source_phase=ranked.source_phase,
        score=scored.score,
        travel_time_metrics=TravelTimeMetricsModel(
            max_travel_time=metrics.max_travel_time,
            average_travel_time=metrics.average_travel_time,
            total_travel_time=metrics.total_travel_time,
            variance=metrics.variance,
        ),
        rank=ranked.rank,
    )


def _debug_point_model(diagnostic: DiagnosticPoint) -> DebugPointModel:
    point = diagnostic.point
    return DebugPointModel(
        id=point.id,
        coordinate=_coordinate_model(point.coordinate),
        type=point.type,
        phase=point.phase,
        status=diagnostic.status,
        score=diagnostic.score,
        merged_into=diagnostic.merged_into,
    )


async def find_optimal_locations(payload: FindOptimalLocationsRequest) -> OptimalLocationsResponse:
    config = build_generation_config(payload)
    locations = _to_locations(payload)
    generator = HypothesisPointGenerator(build_matrix_provider(), config)

    logger.info(
        "Finding meeting points for %d location(s): mode=%s goal=%s refinement=%s",
        len(locations),
        config.travel_mode.value,
        config.optimization_goal.value,
        config.enable_local_refinement,
    )
    result = await generator.generate(locations)

    return OptimalLocationsResponse(
        optimal_points=[_optimal_point_model(item) for item in result.optimal_points],
        debug_points=[_debug_point_model(item) for item in result.debug_points],
        matrix_api_calls=result.matrix_api_calls,
        total_hypothesis_points=result.total_hypothesis_points,
        metadata=result.metadata,
    )


def parse_coordinate_text(text: str) -> ParsedCoordinateResponse:
    coordinate = parse_coordinate(text)
    if coordinate is None:
        return ParsedCoordinateResponse(valid=False)
    return ParsedCoordinateResponse(
        valid=True,
        coordinate=_coordinate_model(coordinate),
        formatted=format_coordinate(coordinate),
    )
