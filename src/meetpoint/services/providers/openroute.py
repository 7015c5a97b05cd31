"""Async HTTP client for the OpenRouteService matrix API."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Sequence

import httpx

from ...config import settings
from ...errors import (
    MatrixProviderError,
    MatrixShapeError,
    ProviderAuthenticationError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from ...models.domain import Coordinate, TravelMode

logger = logging.getLogger(__name__)


class OpenRouteServiceClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.openroute_api_key
        if not self.api_key:
            raise ValueError("OpenRouteService API key is not configured.")
        self.base_url = (base_url or settings.openroute_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.openroute_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.openroute_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.openroute_backoff_seconds
        # Injected for tests (httpx.MockTransport); None uses the default network transport.
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
            headers={
                "Authorization": self.api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    def _build_payload(self, origins: Sequence[Coordinate], destinations: Sequence[Coordinate]) -> dict:
        locations = [[c.longitude, c.latitude] for c in origins] + [[c.longitude, c.latitude] for c in destinations]
        return {
            "locations": locations,
            "sources": list(range(len(origins))),
            "destinations": list(range(len(origins), len(origins) + len(destinations))),
            "metrics": ["duration"],
        }

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        code = response.status_code
        if code < 400:
            return
        text = response.text[:500]
        details = {"status": code, "body": text}
        if code in (401, 403):
            raise ProviderAuthenticationError(f"OpenRouteService rejected the API key ({code}).", details=details)
        if code == 429:
            raise ProviderRateLimitError("OpenRouteService rate limit exceeded.", details=details)
        if code >= 500:
            raise ProviderUnavailableError(f"OpenRouteService server error: {code}.", details=details)
        raise MatrixProviderError(f"OpenRouteService API error: {code} - {text}", details=details)

    @staticmethod
    def _parse_durations(data: object, origin_count: int, destination_count: int) -> list[list[float]]:
        if not isinstance(data, dict) or not isinstance(data.get("durations"), list):
            raise MatrixProviderError("Invalid matrix response: missing durations array.")
        durations = data["durations"]
        if len(durations) != origin_count:
            raise MatrixShapeError(f"Invalid matrix dimensions: expected {origin_count} origin rows.")

        matrix: list[list[float]] = []
        for row in durations:
            if not isinstance(row, list) or len(row) != destination_count:
                raise MatrixShapeError(
                    f"Invalid matrix dimensions: expected {destination_count} destinations per row."
                )
            minutes: list[float] = []
            for seconds in row:
                # null means the pair is not routable
                if seconds is None or not isinstance(seconds, (int, float)) or seconds < 0:
                    minutes.append(math.inf)
                else:
                    minutes.append(seconds / 60.0)
            matrix.append(minutes)
        return matrix

    async def fetch_travel_times(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        """Durations in minutes from every origin to every destination."""
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required.")

        url = f"{self.base_url}/v2/matrix/{mode.profile}"
        payload = self._build_payload(origins, destinations)
        logger.info(
            "Calculating travel time matrix: %d origin(s) to %d destination(s) (%s)",
            len(origins),
            len(destinations),
            mode.profile,
        )

        async with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.post(url, json=payload)
                    self._raise_for_status(response)
                    return self._parse_durations(response.json(), len(origins), len(destinations))
                except ProviderUnavailableError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.warning(
                        "OpenRouteService server error, retrying in %.1fs (attempt %d/%d): %s",
                        wait_time,
                        attempt,
                        self.max_retries,
                        e,
                    )
                    await asyncio.sleep(wait_time)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning("OpenRouteService request timed out after %d attempt(s): %s", attempt, e)
                        raise ProviderUnavailableError(
                            "OpenRouteService matrix request timed out.",
                            details={"timeout_seconds": self.timeout},
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        "OpenRouteService timeout, retrying in %.1fs (attempt %d/%d)", wait_time, attempt, self.max_retries
                    )
                    await asyncio.sleep(wait_time)
                except httpx.TransportError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            f"Failed to connect to OpenRouteService at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        "OpenRouteService network error, retrying in %.1fs (attempt %d/%d): %s",
                        wait_time,
                        attempt,
                        self.max_retries,
                        e,
                    )
                    await asyncio.sleep(wait_time)
                except ValueError as e:
                    # Body was not JSON.
                    raise MatrixProviderError(f"Invalid matrix response: {e}") from e


async def check_health(client: OpenRouteServiceClient) -> bool:
    """Check the matrix endpoint with a tiny two-point request."""
    test_origin = Coordinate(latitude=52.517037, longitude=13.388860)
    test_destination = Coordinate(latitude=52.496891, longitude=13.385983)
    try:
        matrix = await client.fetch_travel_times([test_origin], [test_destination], TravelMode.DRIVING_CAR)
    except (MatrixProviderError, httpx.HTTPError) as e:
        logger.warning("OpenRouteService health check failed: %s", e)
        return False
    return len(matrix) == 1 and len(matrix[0]) == 1
