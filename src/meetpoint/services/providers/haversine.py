"""Straight-line travel time estimates, used offline and without an API key."""

from __future__ import annotations

from typing import Sequence

from ...config import settings
from ...models.domain import Coordinate, TravelMode
from ..geospatial import haversine_km

AVERAGE_SPEED_KMH = {
    TravelMode.DRIVING_CAR: 40.0,
    TravelMode.CYCLING_REGULAR: 15.0,
    TravelMode.FOOT_WALKING: 5.0,
}


class HaversineMatrixProvider:
    """Estimate minutes as great-circle distance x detour factor / average speed."""

    def __init__(self, detour_factor: float | None = None) -> None:
        self.detour_factor = detour_factor if detour_factor is not None else settings.haversine_detour_factor
        if self.detour_factor <= 0:
            raise ValueError("detour_factor must be > 0")

    def estimate_minutes(self, origin: Coordinate, destination: Coordinate, mode: TravelMode) -> float:
        distance_km = haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        return distance_km * self.detour_factor / AVERAGE_SPEED_KMH[mode] * 60.0

    async def fetch_travel_times(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        return [[self.estimate_minutes(origin, destination, mode) for destination in destinations] for origin in origins]
