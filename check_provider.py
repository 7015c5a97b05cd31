#!/usr/bin/env python3
"""Check which travel-time provider is configured and that it answers."""

import asyncio
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from meetpoint.config import settings
from meetpoint.models.domain import Coordinate, TravelMode
from meetpoint.services.providers import (
    HaversineMatrixProvider,
    OpenRouteServiceClient,
    check_health,
    provider_kind,
)


async def _run() -> int:
    print("=" * 60)
    print("Travel-time provider check")
    print("=" * 60)
    print()

    kind = provider_kind()
    print(f"1. Configured provider: {settings.matrix_provider}")
    print(f"   Active provider:     {kind}")
    if settings.matrix_provider == "openroute" and not settings.openroute_api_key:
        print("   [WARN] MEETPOINT_OPENROUTE_API_KEY is not set; falling back to haversine estimates")
    print()

    origins = [Coordinate(52.5200, 13.4050), Coordinate(52.5000, 13.3500)]
    destinations = [Coordinate(52.5100, 13.3800)]

    if kind == "openroute":
        client = OpenRouteServiceClient()
        print(f"2. Probing {client.base_url} ...")
        if not await check_health(client):
            print("   [ERROR] OpenRouteService matrix endpoint is not responding")
            return 1
        print("   [OK] OpenRouteService matrix endpoint is healthy")
        matrix = await client.fetch_travel_times(origins, destinations, TravelMode.DRIVING_CAR)
    else:
        print("2. Estimating with the haversine provider ...")
        matrix = await HaversineMatrixProvider().fetch_travel_times(origins, destinations, TravelMode.DRIVING_CAR)

    print()
    print("3. Sample matrix (minutes):")
    for row in matrix:
        print("   " + ", ".join(f"{value:.1f}" for value in row))
    print()
    print("[OK] Provider check passed")
    return 0


def main() -> int:
    try:
        return asyncio.run(_run())
    except Exception as e:
        print(f"[ERROR] Provider check failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
