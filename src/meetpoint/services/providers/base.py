"""Contract for travel-time matrix providers."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from ...models.domain import Coordinate, TravelMode


@runtime_checkable
class MatrixProvider(Protocol):
    """Returns ``[origin][destination]`` travel times in minutes.

    Unreachable pairs are reported as ``math.inf``.
    """

    async def fetch_travel_times(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        ...
