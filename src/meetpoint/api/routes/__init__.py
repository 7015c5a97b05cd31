"""Route group exports."""

from . import health, meeting_points

__all__ = ["health", "meeting_points"]
