"""Transformations between geodetic fixes and the local East-North frame.

Walks measured with a phone span tens to hundreds of metres, so a
spherical Earth and a local equirectangular projection anchored at the
first accepted fix are accurate to well below GPS noise.

Spherical Earth parameters:
- Mean radius (R): 6371000.0 m

Local frame:
- x: East (m), y: North (m), origin at the anchor fix.
- Bearings: degrees, 0 = North, 90 = East, range [0, 360).
"""

import numpy as np
from numpy.typing import NDArray

# Mean Earth radius (m)
EARTH_RADIUS = 6371000.0


def geo_to_local(
    lat: float,
    lon: float,
    origin_lat: float,
    origin_lon: float,
) -> NDArray[np.float64]:
    """Project a geodetic point into local East-North metres.

    Equirectangular projection about the origin:
        x = Δλ · cos(φ0) · R
        y = Δφ · R

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        origin_lat: Origin latitude in degrees.
        origin_lon: Origin longitude in degrees.

    Returns:
        Local position [x, y] in metres.

    Example:
        >>> xy = geo_to_local(22.30001, 114.18, 22.3, 114.18)
        >>> round(float(xy[1]), 3)
        1.112
    """
    d_lat = np.deg2rad(lat - origin_lat)
    d_lon = np.deg2rad(lon - origin_lon)
    x = d_lon * np.cos(np.deg2rad(origin_lat)) * EARTH_RADIUS
    y = d_lat * EARTH_RADIUS
    return np.array([x, y], dtype=np.float64)


def local_to_geo(
    x: float,
    y: float,
    origin_lat: float,
    origin_lon: float,
) -> NDArray[np.float64]:
    """Inverse of geo_to_local.

    Args:
        x: East offset in metres.
        y: North offset in metres.
        origin_lat: Origin latitude in degrees.
        origin_lon: Origin longitude in degrees.

    Returns:
        Geodetic position [lat, lon] in degrees.
    """
    lat = origin_lat + np.rad2deg(y / EARTH_RADIUS)
    lon = origin_lon + np.rad2deg(x / (EARTH_RADIUS * np.cos(np.deg2rad(origin_lat))))
    return np.array([lat, lon], dtype=np.float64)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two geodetic points.

    Args:
        lat1, lon1: First point in degrees.
        lat2, lon2: Second point in degrees.

    Returns:
        Distance in metres.

    Example:
        >>> round(haversine_distance(0.0, 0.0, 0.0, 1.0) / 1000.0, 1)
        111.2
    """
    phi1 = np.deg2rad(lat1)
    phi2 = np.deg2rad(lat2)
    d_phi = phi2 - phi1
    d_lambda = np.deg2rad(lon2 - lon1)

    a = np.sin(d_phi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2.0) ** 2
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return float(EARTH_RADIUS * c)


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from the first point to the second.

    Returns:
        Bearing in degrees, 0 = North, clockwise, range [0, 360).

    Example:
        >>> round(initial_bearing(0.0, 0.0, 0.0, 1.0), 6)
        90.0
    """
    phi1 = np.deg2rad(lat1)
    phi2 = np.deg2rad(lat2)
    d_lambda = np.deg2rad(lon2 - lon1)

    y = np.sin(d_lambda) * np.cos(phi2)
    x = np.cos(phi1) * np.sin(phi2) - np.sin(phi1) * np.cos(phi2) * np.cos(d_lambda)
    bearing = float(np.mod(np.rad2deg(np.arctan2(y, x)), 360.0))
    return 0.0 if bearing >= 360.0 else bearing
