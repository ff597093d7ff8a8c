"""
Geographic utility functions.

This module provides the geospatial calculations used to rank beneficiaries
and volunteers. Distances are straight-line (great-circle) estimates, not
road-network distances.
"""

from math import radians, cos, sin, asin, sqrt, isfinite
from typing import Any

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in kilometers using Haversine formula.
    
    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point
    
    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(min(1.0, a)))
    return c * EARTH_RADIUS_KM


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """
    Check that a latitude/longitude pair is numeric and inside Earth ranges.

    Booleans and strings are rejected even though Python can coerce them.
    """
    for value in (lat, lon):
        if value is None or isinstance(value, (bool, str)):
            return False
        try:
            if not isfinite(float(value)):
                return False
        except (TypeError, ValueError):
            return False
    return -90 <= float(lat) <= 90 and -180 <= float(lon) <= 180
