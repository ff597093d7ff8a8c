"""Common utility functions."""

from .geo import distance_km, is_valid_coordinate

__all__ = [
    "distance_km",
    "is_valid_coordinate",
]
