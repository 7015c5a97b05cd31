"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_provider_functions():
    """Lazy import to avoid startup failures."""
    from ...services import providers

    return providers


@router.get("/health/provider", status_code=status.HTTP_200_OK)
async def health_provider(probe: bool = False) -> dict:
    """Report which travel-time provider is active; ``probe=true`` also calls it."""
    providers = _get_provider_functions()
    kind = providers.provider_kind()
    payload: dict = {
        "provider": kind,
        "configured_provider": settings.matrix_provider,
        "api_key_configured": bool(settings.openroute_api_key),
        "cache_ttl_seconds": settings.matrix_cache_ttl_seconds,
    }
    if probe and kind == "openroute":
        try:
            payload["healthy"] = await providers.check_health(providers.OpenRouteServiceClient())
        except Exception as e:
            payload["healthy"] = False
            payload["error"] = str(e)
    elif probe:
        payload["healthy"] = True
    return payload
