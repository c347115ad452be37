"""
Planar geometry utilities for local East-North trajectories.

Provides functions for:
- Point and point-to-segment distances (with degenerate segment handling)
- Closed polygon area (shoelace formula)

All coordinates are metres in the local frame (x = East, y = North).
"""

import numpy as np
from typing import Sequence


# Squared segment length below which a segment is treated as a single point
EPSILON_SEGMENT = 1e-18


def point_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Euclidean distance between two 2D points."""
    return float(np.hypot(p[0] - q[0], p[1] - q[1]))


def point_segment_distance(
    point: Sequence[float],
    seg_start: Sequence[float],
    seg_end: Sequence[float],
) -> float:
    """
    Distance from a point to the closed segment [seg_start, seg_end].

    The point is projected onto the segment's supporting line, the projection
    parameter is clamped to [0, 1], and the distance to the clamped foot is
    returned.

    Args:
        point: Query point (x, y).
        seg_start: Segment start (x, y).
        seg_end: Segment end (x, y).

    Returns:
        Distance in metres. A zero-length segment falls back to the
        point-to-point distance instead of dividing by zero.

    Example:
        >>> point_segment_distance((5.0, 3.0), (0.0, 0.0), (10.0, 0.0))
        3.0
        >>> point_segment_distance((3.0, 4.0), (0.0, 0.0), (0.0, 0.0))
        5.0
    """
    x, y = point[0], point[1]
    x1, y1 = seg_start[0], seg_start[1]
    x2, y2 = seg_end[0], seg_end[1]

    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy

    if length_sq <= EPSILON_SEGMENT:
        return point_distance(point, seg_start)

    t = ((x - x1) * dx + (y - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))

    return point_distance(point, (x1 + t * dx, y1 + t * dy))


def polygon_area(xy: np.ndarray) -> float:
    """
    Area of a simple polygon with the shoelace formula.

        A = |Σ (x_i y_{i+1} - x_{i+1} y_i)| / 2,   indices modulo N

    Args:
        xy: Vertices, shape (N, 2). The polygon is implicitly closed, so an
            explicit repeated first vertex at the end does not change the
            result.

    Returns:
        Area in m². Returns 0.0 for fewer than 3 vertices.

    Notes:
        Self-intersecting polygons (a walk that crosses itself) yield the
        net signed area of their lobes, not the union of enclosed regions.

    Example:
        >>> polygon_area(np.array([[0, 0], [10, 0], [10, 10], [0, 10]]))
        100.0
    """
    xy = np.asarray(xy, dtype=float)
    if xy.size == 0:
        return 0.0
    if xy.ndim != 2 or xy.shape[1] != 2:
        raise ValueError(f"xy must have shape (N, 2), got {xy.shape}")
    if len(xy) < 3:
        return 0.0

    x = xy[:, 0]
    y = xy[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    return float(abs(np.sum(x * y_next - x_next * y)) / 2.0)

