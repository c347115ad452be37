"""
Trajectory simplification, loop closure and enclosed area.

Raw PDR trajectories carry one vertex per step plus small heading wobble.
Before measuring area the path is:
    1. downsampled to at most ``max_points`` vertices (uniform stride,
       endpoints kept),
    2. simplified with Ramer-Douglas-Peucker at tolerance ``epsilon_m``,
    3. closed by repeating the first vertex when the walk ended near its
       start,
and the area of the resulting polygon is taken with the shoelace formula.
"""

from typing import List, Sequence

from walkarea.trajectory.track import LocalPoint, points_to_array
from walkarea.utils.geometry import point_segment_distance, polygon_area


# RDP tolerance (m)
DEFAULT_EPSILON_M = 0.5
# Vertex budget before RDP
DEFAULT_MAX_POINTS = 1000
# Start/end gap regarded as a closed loop (m)
DEFAULT_CLOSURE_THRESHOLD_M = 2.0


class TrajectoryOptimizer:
    """
    Simplify, close and measure walked trajectories.

    Args:
        epsilon_m: RDP tolerance; vertices within this distance of the
                   simplified path are removed.
        max_points: Vertex budget applied before RDP.

    Example:
        >>> opt = TrajectoryOptimizer()
        >>> line = [LocalPoint(float(i), 0.0) for i in range(10)]
        >>> [(p.x, p.y) for p in opt.simplify(line)]
        [(0.0, 0.0), (9.0, 0.0)]
    """

    def __init__(self, epsilon_m: float = DEFAULT_EPSILON_M, max_points: int = DEFAULT_MAX_POINTS):
        if epsilon_m < 0:
            raise ValueError(f"epsilon_m must be non-negative, got {epsilon_m}")
        if max_points < 3:
            raise ValueError(f"max_points must be at least 3, got {max_points}")
        self.epsilon_m = epsilon_m
        self.max_points = max_points

    def simplify(self, points: Sequence[LocalPoint]) -> List[LocalPoint]:
        """Downsample if needed, then apply Ramer-Douglas-Peucker."""
        if len(points) <= 2:
            return list(points)

        if len(points) > self.max_points:
            points = self.downsample(points, self.max_points)

        keep = [False] * len(points)
        keep[0] = keep[-1] = True

        stack = [(0, len(points) - 1)]
        while stack:
            start, end = stack.pop()
            if end <= start + 1:
                continue

            a = (points[start].x, points[start].y)
            b = (points[end].x, points[end].y)
            max_distance = 0.0
            farthest = start
            for i in range(start + 1, end):
                d = point_segment_distance((points[i].x, points[i].y), a, b)
                if d > max_distance:
                    max_distance = d
                    farthest = i

            if max_distance > self.epsilon_m:
                keep[farthest] = True
                stack.append((farthest, end))
                stack.append((start, farthest))

        return [p for p, k in zip(points, keep) if k]

    @staticmethod
    def downsample(points: Sequence[LocalPoint], target_count: int) -> List[LocalPoint]:
        """
        Uniform-stride downsampling that always keeps both endpoints.

        Interior vertex i (1 <= i <= target_count - 2) is taken from index
        floor(i * step) + 1 with step = (n - 2) / (target_count - 2).
        """
        n = len(points)
        if n <= target_count:
            return list(points)

        step = (n - 2) / float(target_count - 2)
        result = [points[0]]
        for i in range(1, target_count - 1):
            result.append(points[min(int(i * step) + 1, n - 1)])
        result.append(points[-1])
        return result

    @staticmethod
    def is_closed(points: Sequence[LocalPoint], threshold_m: float = DEFAULT_CLOSURE_THRESHOLD_M) -> bool:
        """True if the path has at least 3 points and ends within threshold of its start."""
        if len(points) < 3:
            return False
        return points[0].distance_to(points[-1]) <= threshold_m

    def close_if_needed(
        self,
        points: Sequence[LocalPoint],
        threshold_m: float = DEFAULT_CLOSURE_THRESHOLD_M,
    ) -> List[LocalPoint]:
        """Append a copy of the first point when the path is closed within threshold."""
        result = list(points)
        if self.is_closed(points, threshold_m):
            first = points[0]
            result.append(LocalPoint(first.x, first.y))
        return result

    @staticmethod
    def polygon_area(points: Sequence[LocalPoint]) -> float:
        """Shoelace area of the polygon through the points (m²), 0.0 below 3 points."""
        if len(points) < 3:
            return 0.0
        return polygon_area(points_to_array(points))
