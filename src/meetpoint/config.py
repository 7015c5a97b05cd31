"""Application configuration and settings management."""

import json
from typing import Annotated, Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="MEETPOINT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Fair Meeting Point API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app().")
    frontend_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "http://localhost:8910",
            "http://127.0.0.1:8910",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Travel-time matrix provider
    matrix_provider: Literal["openroute", "haversine"] = Field(
        default="openroute",
        description="Matrix source. 'haversine' estimates travel times from straight-line distance.",
    )
    openroute_base_url: str = Field(
        default="https://api.openrouteservice.org",
        description="Base URL for the OpenRouteService API.",
    )
    openroute_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouteService API key. Without it the haversine estimate is used.",
    )
    openroute_timeout_seconds: float = Field(default=45.0, gt=0.0)
    openroute_max_retries: int = Field(default=2, ge=0)
    openroute_backoff_seconds: float = Field(default=1.0, ge=0.0)
    matrix_max_destinations_per_request: int = Field(default=50, ge=1)
    matrix_max_concurrent_requests: int = Field(default=6, ge=1)
    matrix_cache_ttl_seconds: float = Field(
        default=3600.0,
        ge=0.0,
        description="Lifetime of cached matrices. 0 disables the cache.",
    )
    matrix_cache_precision_decimals: int = Field(
        default=4,
        ge=0,
        le=8,
        description="Coordinates are rounded to this many decimals when building cache keys.",
    )
    haversine_detour_factor: float = Field(default=1.3, ge=1.0)

    # Hypothesis point generation defaults
    default_top_m: int = Field(default=3, ge=1, le=50)
    default_grid_size: int = Field(default=7, ge=2, le=20)
    default_grid_margin_km: float = Field(default=5.0, ge=0.0, le=50.0)
    default_deduplication_threshold_m: float = Field(default=1000.0, ge=100.0, le=50000.0)
    default_refinement_top_k: int = Field(default=5, ge=1, le=20)
    default_refinement_radius_km: float = Field(default=2.0, ge=0.1, le=10.0)
    default_refinement_grid_size: int = Field(default=3, ge=2, le=10)
    max_locations: int = Field(default=12, ge=2)

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: Any) -> str:
        return str(value or "INFO").strip().upper()


settings = Settings()
