"""
Phone-carried motion sensors and pedestrian dead reckoning.

Modules:
    types: Sensor data structures (Vector3, SensorSample, WalkingState)
    filter_bank: Per-axis Kalman smoothing of accel/gyro/mag readings
    pdr: Step detection, walking state, dynamic step length, step update
    environment: Magnetic azimuth and gyro/magnetometer heading fusion

Design principles:
    - Sensor readings are frozen dataclasses
    - Detectors and estimators are mutable, streaming and resettable
    - Timestamps come from the samples, never from the wall clock

Example:
    >>> from walkarea.sensors import SensorFilterBank, StepDetector, Vector3
    >>> bank = SensorFilterBank()
    >>> detector = StepDetector()
    >>> a = bank.filter_accel(Vector3(0.0, 0.0, 9.81))
    >>> detector.update(a, timestamp_ms=0)
    False
"""

from walkarea.sensors.types import (
    SensorSample,
    Vector3,
    WalkingState,
)
from walkarea.sensors.filter_bank import SensorFilterBank
from walkarea.sensors.pdr import (
    DEFAULT_STEP_LENGTH,
    MAX_STEP_LENGTH,
    MIN_STEP_LENGTH,
    StepDetector,
    StepDetectorConfig,
    StepLengthConfig,
    StepLengthEstimator,
    pdr_step_update,
    threshold_from_mean_difference,
)
from walkarea.sensors.environment import (
    HeadingConfig,
    HeadingEstimator,
    azimuth_from_rotation_matrix,
    magnetic_heading,
    rotation_matrix_from_gravity_mag,
)

__all__ = [
    # Types
    "Vector3",
    "SensorSample",
    "WalkingState",
    # Filtering
    "SensorFilterBank",
    # PDR
    "StepDetector",
    "StepDetectorConfig",
    "StepLengthEstimator",
    "StepLengthConfig",
    "pdr_step_update",
    "threshold_from_mean_difference",
    "DEFAULT_STEP_LENGTH",
    "MIN_STEP_LENGTH",
    "MAX_STEP_LENGTH",
    # Heading
    "HeadingConfig",
    "HeadingEstimator",
    "rotation_matrix_from_gravity_mag",
    "azimuth_from_rotation_matrix",
    "magnetic_heading",
]
