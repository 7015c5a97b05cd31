"""API routes for meeting point calculation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status

from ...errors import CalculationFailedError, MeetpointError
from ...schemas.meeting_points import (
    FindOptimalLocationsRequest,
    OptimalLocationsResponse,
    ParsedCoordinateResponse,
)
from ...services.meeting_points import find_optimal_locations, parse_coordinate_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meeting-points", tags=["meeting-points"])


def _error_detail(exc: Exception) -> dict | str:
    if isinstance(exc, MeetpointError):
        return exc.to_dict()
    return str(exc)


@router.post("/optimal", response_model=OptimalLocationsResponse, status_code=status.HTTP_200_OK)
async def find_optimal(payload: FindOptimalLocationsRequest) -> OptimalLocationsResponse:
    """Find the fairest meeting points for the given participants."""
    try:
        return await find_optimal_locations(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc)) from exc
    except CalculationFailedError as exc:
        logger.warning("Meeting point calculation failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=_error_detail(exc)) from exc
    except Exception as exc:
        logger.exception(f"Unexpected error finding meeting points: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to find meeting points: {str(exc)}",
        ) from exc


@router.get("/coordinates/parse", response_model=ParsedCoordinateResponse, status_code=status.HTTP_200_OK)
def parse_coordinates(text: str = Query(..., description='Coordinate text such as "52.52, 13.405".')) -> ParsedCoordinateResponse:
    return parse_coordinate_text(text)
