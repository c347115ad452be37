"""
Per-axis Kalman smoothing of raw motion-sensor readings.

Each of the nine sensor axes (accelerometer, gyroscope and magnetometer,
x/y/z) owns an independent ScalarKalmanFilter seeded at state 0 with unit
covariance. There is no cross-axis coupling: the output on one axis depends
only on that axis' history.
"""

from typing import List

from walkarea.estimators.kalman_filter import (
    DEFAULT_IMU_Q,
    DEFAULT_IMU_R,
    ScalarKalmanFilter,
)
from walkarea.sensors.types import SensorSample, Vector3


def _axis_filters(q: float, r: float) -> List[ScalarKalmanFilter]:
    return [ScalarKalmanFilter(0.0, 1.0, q, r) for _ in range(3)]


def _apply(filters: List[ScalarKalmanFilter], v: Vector3) -> Vector3:
    return Vector3(
        filters[0].filter(v.x),
        filters[1].filter(v.y),
        filters[2].filter(v.z),
    )


class SensorFilterBank:
    """
    Three independent 3-axis filter sets for accel, gyro and magnetometer.

    Args:
        q: Process noise variance for every axis filter.
        r: Measurement noise variance for every axis filter.

    Notes:
        - Output too sluggish: increase q or decrease r.
        - Residual noise still visible: decrease q or increase r.
        - Filters start at 0, so the first few outputs lag behind the input
          (about ten samples with the default tuning).
    """

    def __init__(self, q: float = DEFAULT_IMU_Q, r: float = DEFAULT_IMU_R):
        self.q = q
        self.r = r
        self.reset()

    def reset(self) -> None:
        """Re-seed all nine axis filters."""
        self._accel = _axis_filters(self.q, self.r)
        self._gyro = _axis_filters(self.q, self.r)
        self._mag = _axis_filters(self.q, self.r)

    def filter_accel(self, accel: Vector3) -> Vector3:
        return _apply(self._accel, accel)

    def filter_gyro(self, gyro: Vector3) -> Vector3:
        return _apply(self._gyro, gyro)

    def filter_mag(self, mag: Vector3) -> Vector3:
        return _apply(self._mag, mag)

    def filter_sample(self, sample: SensorSample) -> SensorSample:
        """Filter all three readings of a sample, keeping its timestamp."""
        return SensorSample(
            accel=self.filter_accel(sample.accel),
            gyro=self.filter_gyro(sample.gyro),
            mag=self.filter_mag(sample.mag),
            timestamp_ms=sample.timestamp_ms,
        )
