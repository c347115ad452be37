"""
Heading and angle wrapping helpers.

Compass headings are carried in degrees [0, 360) at the API and in radians
internally; residuals are always taken along the shortest arc.

Used by:
- Gyro/magnetometer heading fusion (residuals across North)
- GPS bearing corrections
- Heading innovations in the fusion filter
"""

import numpy as np
from typing import Union


TWO_PI = 2.0 * np.pi


def wrap_angle(angle: float) -> float:
    """
    Map a heading residual in radians onto [-π, π].

    Without wrapping, headings near North cause large incorrect residuals
    (e.g. 359° vs 1° = 358° error instead of 2°).

    Args:
        angle: Unbounded angle in radians.

    Returns:
        Equivalent angle within [-π, π].

    Example:
        >>> round(wrap_angle(np.deg2rad(630.0)), 6)
        -1.570796
    """
    return float(np.arctan2(np.sin(angle), np.cos(angle)))


def angle_diff(angle1: Union[float, np.ndarray],
               angle2: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Compute the shortest signed angular difference angle1 - angle2.

    Args:
        angle1: Target angle in radians (e.g. magnetic or GPS heading)
        angle2: Reference angle in radians (e.g. current gyro heading)

    Returns:
        Shortest signed difference in [-π, π]

    Example:
        >>> round(angle_diff(np.deg2rad(1.0), np.deg2rad(359.0)), 6)
        0.034907
    """
    if isinstance(angle1, np.ndarray) or isinstance(angle2, np.ndarray):
        diff = np.asarray(angle1) - np.asarray(angle2)
        return np.arctan2(np.sin(diff), np.cos(diff))
    return wrap_angle(angle1 - angle2)


def normalize_angle_rad(angle: float) -> float:
    """Normalize angle to [0, 2π)."""
    wrapped = float(np.mod(angle, TWO_PI))
    # np.mod can round a tiny negative input up to exactly 2π
    return 0.0 if wrapped >= TWO_PI else wrapped


def normalize_heading_deg(heading_deg: float) -> float:
    """
    Normalize a compass heading to [0, 360) degrees.

    Example:
        >>> normalize_heading_deg(-90.0)
        270.0
    """
    wrapped = float(np.mod(heading_deg, 360.0))
    return 0.0 if wrapped >= 360.0 else wrapped
