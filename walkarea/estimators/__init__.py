"""
State estimation building blocks.

Available estimators:
    - StateEstimator: predict/update interface shared by all filters
    - ScalarKalmanFilter: single-state filter for per-axis smoothing
"""

from walkarea.estimators.base import StateEstimator
from walkarea.estimators.kalman_filter import (
    DEFAULT_IMU_Q,
    DEFAULT_IMU_R,
    ScalarKalmanFilter,
)

__all__ = [
    "StateEstimator",
    "ScalarKalmanFilter",
    "DEFAULT_IMU_Q",
    "DEFAULT_IMU_R",
]
