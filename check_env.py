#!/usr/bin/env python3
"""Helper script to check and create the .env file for the meeting point service."""

from pathlib import Path
import os

TEMPLATE = """# Travel-time provider: openroute or haversine
MEETPOINT_MATRIX_PROVIDER=openroute
# Get a key from: https://openrouteservice.org/dev/#/signup
MEETPOINT_OPENROUTE_API_KEY=your-api-key-here

# API Configuration
MEETPOINT_API_PREFIX=/api
MEETPOINT_LOG_LEVEL=INFO
# MEETPOINT_FRONTEND_ALLOWED_ORIGINS - Leave commented to use defaults
# JSON array: ["http://localhost:5173"] or comma-separated: http://localhost:5173,http://127.0.0.1:5173

# Matrix requests
MEETPOINT_MATRIX_MAX_CONCURRENT_REQUESTS=6
MEETPOINT_MATRIX_CACHE_TTL_SECONDS=3600
"""


def _masked(value: str) -> str:
    if len(value) > 12:
        return value[:6] + "..." + value[-4:]
    return "***"


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Meeting point environment checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        with open(env_file, "w", encoding="utf-8") as f:
            f.write(TEMPLATE)
        print(f"✅ Created template .env file at: {env_file}")
        print("⚠️  Edit it and add your OpenRouteService API key.")
        return

    print(f"✅ Found .env file at: {env_file}")
    print()

    api_key = os.getenv("MEETPOINT_OPENROUTE_API_KEY")
    if api_key:
        print(f"✅ MEETPOINT_OPENROUTE_API_KEY (from environment): {_masked(api_key)}")
    else:
        print("ℹ️  MEETPOINT_OPENROUTE_API_KEY not set in the process environment")

    print()
    print("Testing config loading...")
    try:
        import sys
        sys.path.insert(0, str(project_root / "src"))
        from meetpoint.config import settings

        print(f"   matrix_provider = {settings.matrix_provider}")
        print(f"   openroute_base_url = {settings.openroute_base_url}")
        print(f"   api_key configured = {bool(settings.openroute_api_key)}")
        print(f"   cache ttl = {settings.matrix_cache_ttl_seconds}s")
        print()
        if settings.matrix_provider == "openroute" and not settings.openroute_api_key:
            print("❌ OpenRouteService selected but no API key: haversine estimates will be used")
        else:
            print("✅ Configuration looks good")
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")


if __name__ == "__main__":
    main()
