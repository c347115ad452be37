"""Pedestrian trajectory and walked-area estimation.

This package contains the streaming engine behind walk-around area
measurement with a phone:
- estimators: Scalar Kalman filter and the shared estimator interface
- sensors: Sensor filtering, step detection, step length and heading
- coords: Geodetic helpers for the local East-North frame
- fusion: GPS gating and PDR/GPS position fusion
- trajectory: Trajectory storage, simplification, closure and area
- session: MeasurementSession tying the components together
- sim: Synthetic walks for demos and tests
"""

__version__ = "0.1.0"
