"""
Walked trajectories and enclosed-area measurement.

Modules:
    track: LocalPoint and the spacing-filtered Trajectory container
    optimizer: RDP simplification, downsampling, loop closure, shoelace area
"""

from walkarea.trajectory.track import LocalPoint, Trajectory, points_to_array
from walkarea.trajectory.optimizer import (
    DEFAULT_CLOSURE_THRESHOLD_M,
    DEFAULT_EPSILON_M,
    DEFAULT_MAX_POINTS,
    TrajectoryOptimizer,
)

__all__ = [
    "LocalPoint",
    "Trajectory",
    "points_to_array",
    "TrajectoryOptimizer",
    "DEFAULT_EPSILON_M",
    "DEFAULT_MAX_POINTS",
    "DEFAULT_CLOSURE_THRESHOLD_M",
]
