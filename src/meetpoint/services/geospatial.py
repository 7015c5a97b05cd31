"""Geospatial helper functions."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from shapely.geometry import MultiPoint

from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

_NUMBER = r"-?\d+(?:\.\d*)?(?:[eE][+-]?\d+)?"
_COORDINATE_PATTERN = re.compile(rf"^({_NUMBER}),\s*({_NUMBER})$")


@dataclass(frozen=True, slots=True)
class BoundingBox:
    south: float
    west: float
    north: float
    east: float


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Return True if latitude is within [-90, 90] and longitude within [-180, 180]."""

    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def parse_coordinate(text: str) -> Coordinate | None:
    """Parse ``"lat,lng"`` (optional space after the comma, scientific notation allowed).

    Returns None for malformed, non-numeric or out-of-range input; values are
    never clamped.
    """

    if not isinstance(text, str):
        return None
    match = _COORDINATE_PATTERN.match(text.strip())
    if not match:
        return None
    latitude = float(match.group(1))
    longitude = float(match.group(2))
    if math.isnan(latitude) or math.isnan(longitude):
        return None
    if not is_valid_coordinate(latitude, longitude):
        return None
    return Coordinate(latitude=latitude, longitude=longitude)


def format_coordinate(coordinate: Coordinate) -> str:
    return f"{coordinate.latitude:.4f}, {coordinate.longitude:.4f}"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push ``a`` marginally above 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters."""

    if a == b:
        return 0.0
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude) * 1000.0


def geographic_centroid(coordinates: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of the coordinates (planar centroid of the point set)."""

    if not coordinates:
        raise ValueError("At least one coordinate is required for a centroid.")
    centroid = MultiPoint([(c.longitude, c.latitude) for c in coordinates]).centroid
    return Coordinate(latitude=centroid.y, longitude=centroid.x)


def median_coordinate(coordinates: Sequence[Coordinate]) -> Coordinate:
    """Coordinate-wise median (latitude and longitude taken independently)."""

    if not coordinates:
        raise ValueError("At least one coordinate is required for a median.")
    latitudes = np.array([c.latitude for c in coordinates], dtype=float)
    longitudes = np.array([c.longitude for c in coordinates], dtype=float)
    return Coordinate(latitude=float(np.median(latitudes)), longitude=float(np.median(longitudes)))


def midpoint(a: Coordinate, b: Coordinate) -> Coordinate:
    return Coordinate(
        latitude=(a.latitude + b.latitude) / 2.0,
        longitude=(a.longitude + b.longitude) / 2.0,
    )


def _longitude_padding(radius_km: float, latitude: float) -> float:
    cos_lat = math.cos(math.radians(latitude))
    # Near the poles a degree of longitude collapses; cap the padding at the full range.
    if cos_lat < 1e-6:
        return 180.0
    return radius_km / (KM_PER_DEGREE_LAT * cos_lat)


def _clamped_box(south: float, west: float, north: float, east: float) -> BoundingBox:
    return BoundingBox(
        south=max(-90.0, south),
        west=max(-180.0, west),
        north=min(90.0, north),
        east=min(180.0, east),
    )


def bounding_box(coordinates: Sequence[Coordinate], margin_km: float = 0.0) -> BoundingBox:
    """Bounding box of the coordinates expanded by ``margin_km`` on every side."""

    if not coordinates:
        raise ValueError("At least one coordinate is required for a bounding box.")
    if margin_km < 0:
        raise ValueError("margin_km must be >= 0")
    west, south, east, north = MultiPoint([(c.longitude, c.latitude) for c in coordinates]).bounds
    lat_padding = margin_km / KM_PER_DEGREE_LAT
    lng_padding = _longitude_padding(margin_km, (south + north) / 2.0)
    return _clamped_box(south - lat_padding, west - lng_padding, north + lat_padding, east + lng_padding)


def box_around(center: Coordinate, radius_km: float) -> BoundingBox:
    """Square box reaching ``radius_km`` from the center in each cardinal direction."""

    lat_padding = radius_km / KM_PER_DEGREE_LAT
    lng_padding = _longitude_padding(radius_km, center.latitude)
    return _clamped_box(
        center.latitude - lat_padding,
        center.longitude - lng_padding,
        center.latitude + lat_padding,
        center.longitude + lng_padding,
    )


def grid_cell_centers(box: BoundingBox, size: int) -> list[Coordinate]:
    """Centers of an ``size x size`` grid laid over the box, row-major from the south-west."""

    if size < 1:
        raise ValueError("Grid size must be >= 1")
    lat_step = (box.north - box.south) / size
    lng_step = (box.east - box.west) / size
    centers: list[Coordinate] = []
    for row in range(size):
        for col in range(size):
            centers.append(
                Coordinate(
                    latitude=box.south + (row + 0.5) * lat_step,
                    longitude=box.west + (col + 0.5) * lng_step,
                )
            )
    return centers
