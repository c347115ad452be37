"""
Utility functions for heading and trajectory math.

This module provides angle operations and planar geometry helpers used
across the sensor, fusion and trajectory packages.
"""

from .angles import (
    wrap_angle,
    angle_diff,
    normalize_angle_rad,
    normalize_heading_deg,
)
from .geometry import point_distance, point_segment_distance, polygon_area

__all__ = [
    'wrap_angle',
    'angle_diff',
    'normalize_angle_rad',
    'normalize_heading_deg',
    'point_distance',
    'point_segment_distance',
    'polygon_area',
]
