"""Geodetic helpers for placing GPS fixes in the local walk frame.

This module provides:
- Equirectangular projection to and from local East-North metres
- Great-circle (haversine) distance
- Initial great-circle bearing
"""

from walkarea.coords.transforms import (
    EARTH_RADIUS,
    geo_to_local,
    haversine_distance,
    initial_bearing,
    local_to_geo,
)

__all__ = [
    "EARTH_RADIUS",
    "geo_to_local",
    "local_to_geo",
    "haversine_distance",
    "initial_bearing",
]
