"""
Walked trajectory in the local East-North frame.

A Trajectory is the append-only list of fused positions recorded during one
measurement. The first point is the session origin. Once the walk has
a handful of points, positions that barely moved from the previous one are
dropped so standing still does not pile up duplicate vertices.
"""

from dataclasses import dataclass
from typing import Iterator, List, Sequence

import numpy as np

from walkarea.utils.geometry import point_distance


@dataclass(frozen=True)
class LocalPoint:
    """
    Position in the local frame.

    Attributes:
        x: East offset from the origin (m).
        y: North offset from the origin (m).
    """

    x: float
    y: float

    def distance_to(self, other: "LocalPoint") -> float:
        """Euclidean distance to another point in metres."""
        return point_distance((self.x, self.y), (other.x, other.y))


def points_to_array(points: Sequence[LocalPoint]) -> np.ndarray:
    """Stack points into an array of shape (N, 2)."""
    if len(points) == 0:
        return np.zeros((0, 2))
    return np.array([[p.x, p.y] for p in points], dtype=float)


class Trajectory:
    """
    Append-only sequence of LocalPoint with a minimum-spacing filter.

    Args:
        min_spacing_m: Points closer than this to the previous point are
                       dropped once the filter is active.
        filter_after: The spacing filter only applies when the trajectory
                      already holds more than this many points.

    Example:
        >>> track = Trajectory()
        >>> track.append(LocalPoint(0.0, 0.0))
        True
        >>> track.append(LocalPoint(0.0, 0.1))
        True
        >>> len(track)
        2
    """

    def __init__(self, min_spacing_m: float = 0.3, filter_after: int = 10):
        if min_spacing_m < 0:
            raise ValueError(f"min_spacing_m must be non-negative, got {min_spacing_m}")
        self.min_spacing_m = min_spacing_m
        self.filter_after = filter_after
        self._points: List[LocalPoint] = []

    def append(self, point: LocalPoint) -> bool:
        """Add a point; returns False if it was dropped by the spacing filter."""
        if len(self._points) > self.filter_after:
            if point.distance_to(self._points[-1]) < self.min_spacing_m:
                return False
        self._points.append(point)
        return True

    def clear(self) -> None:
        self._points.clear()

    @property
    def points(self) -> List[LocalPoint]:
        """Copy of the recorded points."""
        return list(self._points)

    def as_array(self) -> np.ndarray:
        return points_to_array(self._points)

    def length_m(self) -> float:
        """Path length along the recorded points in metres."""
        xy = self.as_array()
        if len(xy) < 2:
            return 0.0
        return float(np.sum(np.hypot(*np.diff(xy, axis=0).T)))

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[LocalPoint]:
        return iter(list(self._points))
