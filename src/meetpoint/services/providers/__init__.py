"""Travel-time matrix providers and the factory that picks one from settings."""

from __future__ import annotations

import logging

from ...config import settings
from .base import MatrixProvider
from .cache import CachedMatrixProvider, CacheStats
from .haversine import HaversineMatrixProvider
from .openroute import OpenRouteServiceClient, check_health

logger = logging.getLogger(__name__)

__all__ = [
    "MatrixProvider",
    "CachedMatrixProvider",
    "CacheStats",
    "HaversineMatrixProvider",
    "OpenRouteServiceClient",
    "build_matrix_provider",
    "check_health",
    "provider_kind",
]

_shared_cache: CachedMatrixProvider | None = None


def provider_kind() -> str:
    """The provider that ``build_matrix_provider`` will use with current settings."""
    if settings.matrix_provider == "openroute" and settings.openroute_api_key:
        return "openroute"
    return "haversine"


def _build_uncached() -> MatrixProvider:
    if settings.matrix_provider == "openroute":
        if settings.openroute_api_key:
            return OpenRouteServiceClient()
        logger.warning(
            "MEETPOINT_OPENROUTE_API_KEY is not set; estimating travel times from straight-line distance."
        )
    return HaversineMatrixProvider()


def build_matrix_provider() -> MatrixProvider:
    """Provider for one request. Cached matrices are shared across requests."""
    global _shared_cache

    provider = _build_uncached()
    if settings.matrix_cache_ttl_seconds <= 0:
        return provider
    if _shared_cache is None or type(_shared_cache.provider) is not type(provider):
        _shared_cache = CachedMatrixProvider(
            provider,
            ttl_seconds=settings.matrix_cache_ttl_seconds,
            precision_decimals=settings.matrix_cache_precision_decimals,
        )
    return _shared_cache
