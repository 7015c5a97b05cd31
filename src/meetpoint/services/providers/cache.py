"""In-memory TTL cache wrapped around any matrix provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from ...models.domain import Coordinate, TravelMode
from .base import MatrixProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    entries: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class CachedMatrixProvider:
    """Serve repeated matrix requests from memory.

    Keys round every coordinate to ``precision_decimals`` so requests for
    practically identical points share an entry. Only successful results with
    one row per origin and one column per destination are cached.
    """

    def __init__(
        self,
        provider: MatrixProvider,
        ttl_seconds: float,
        precision_decimals: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.precision_decimals = precision_decimals
        self._clock = clock
        self._entries: dict[tuple, tuple[float, list[list[float]]]] = {}
        self._hits = 0
        self._misses = 0

    def cache_key(
        self, origins: Sequence[Coordinate], destinations: Sequence[Coordinate], mode: TravelMode
    ) -> tuple:
        digits = self.precision_decimals

        def rounded(coordinates: Sequence[Coordinate]) -> tuple:
            return tuple((round(c.latitude, digits), round(c.longitude, digits)) for c in coordinates)

        return (mode.value, rounded(origins), rounded(destinations))

    @property
    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, entries=len(self._entries))

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    async def fetch_travel_times(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        key = self.cache_key(origins, destinations, mode)
        now = self._clock()
        cached = self._entries.get(key)
        if cached is not None:
            expires_at, matrix = cached
            if now < expires_at:
                self._hits += 1
                logger.debug("Matrix cache hit (%d x %d)", len(origins), len(destinations))
                return [list(row) for row in matrix]
            del self._entries[key]

        self._misses += 1
        matrix = await self.provider.fetch_travel_times(origins, destinations, mode)
        if not _has_shape(matrix, len(origins), len(destinations)):
            logger.warning(
                "Not caching malformed matrix for %d origins x %d destinations", len(origins), len(destinations)
            )
            return matrix
        self._entries[key] = (now + self.ttl_seconds, [list(row) for row in matrix])
        return matrix


def _has_shape(matrix: object, rows: int, columns: int) -> bool:
    if not isinstance(matrix, (list, tuple)) or len(matrix) != rows:
        return False
    return all(isinstance(row, (list, tuple)) and len(row) == columns for row in matrix)
