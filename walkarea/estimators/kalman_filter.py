"""
Single-state Kalman filter used for per-axis sensor smoothing.

The filter models a constant scalar observed with additive noise:

    Prediction:  x' = x,            p' = p + q
    Gain:        k  = p' / (p' + r)
    Correction:  x  = x' + k (z - x'),  p = (1 - k) p'

The same class smooths each IMU axis (SensorFilterBank) and the latitude and
longitude of accepted GPS fixes (GpsGate), only the (q, r) tuning differs.
A smaller q relative to r gives heavier smoothing and a slower response.

NaN measurements are not guarded: they propagate into the state, and the
host is expected to validate raw input before it enters the engine.
"""

from typing import Optional

import numpy as np

from walkarea.estimators.base import StateEstimator


# Default per-axis tuning for accelerometer, gyroscope and magnetometer.
DEFAULT_IMU_Q = 0.01
DEFAULT_IMU_R = 0.1


class ScalarKalmanFilter(StateEstimator):
    """
    One-dimensional Kalman filter with a random-walk process model.

    Attributes:
        state: Current estimate x (float).
        covariance: Current estimate variance p (float, non-negative).
        q: Process noise variance added on every prediction.
        r: Measurement noise variance.

    Example:
        >>> kf = ScalarKalmanFilter(0.0, 1.0, 0.01, 0.1)
        >>> for _ in range(50):
        ...     estimate = kf.filter(5.0)
        >>> round(estimate, 3)
        5.0
    """

    def __init__(
        self,
        initial_state: float = 0.0,
        initial_covariance: float = 1.0,
        process_noise_q: float = DEFAULT_IMU_Q,
        measurement_noise_r: float = DEFAULT_IMU_R,
    ):
        super().__init__(state_dim=1)

        if initial_covariance < 0:
            raise ValueError(
                f"initial_covariance must be non-negative, got {initial_covariance}"
            )
        if process_noise_q < 0:
            raise ValueError(f"process_noise_q must be non-negative, got {process_noise_q}")
        if measurement_noise_r < 0:
            raise ValueError(
                f"measurement_noise_r must be non-negative, got {measurement_noise_r}"
            )
        if measurement_noise_r == 0 and initial_covariance == 0 and process_noise_q == 0:
            raise ValueError("Filter with p=q=r=0 has an undefined gain")

        self.state = float(initial_state)
        self.covariance = float(initial_covariance)
        self.q = float(process_noise_q)
        self.r = float(measurement_noise_r)
        self.gain = 0.0

    def predict(self, u: Optional[np.ndarray] = None, dt: float = 0.0) -> None:
        """Time update: the state is held constant and its variance grows by q."""
        self.covariance = self.covariance + self.q

    def update(self, z: float) -> None:
        """Measurement update with scalar measurement z."""
        self.gain = self.covariance / (self.covariance + self.r)
        self.state = self.state + self.gain * (z - self.state)
        self.covariance = (1.0 - self.gain) * self.covariance

    def filter(self, measurement: float) -> float:
        """
        Run one predict/correct cycle and return the new estimate.

        Args:
            measurement: New scalar observation.

        Returns:
            Updated estimate, also retained as ``self.state``.
        """
        self.predict()
        self.update(measurement)
        return self.state
