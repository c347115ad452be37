"""
Data structures for phone-carried inertial and magnetic sensors.

This module defines the value types flowing through the sensor half of the
engine:
    - Vector3: one instantaneous 3-axis reading (accelerometer, gyroscope or
      magnetometer), immutable so the same snapshot can be handed to several
      filter stages without aliasing
    - SensorSample: a synchronized accel/gyro/mag triple with its timestamp
    - WalkingState: coarse gait classification derived by the step detector

Time Base Convention:
    All timestamps are integer milliseconds from the host's monotonic clock.

Frame Conventions:
    - Device frame axes follow the phone convention: x to the right of the
      screen, y toward the top of the screen, z out of the screen.
    - Accelerometer readings include gravity (a phone lying flat reads
      roughly [0, 0, +9.81] m/s²).
    - Gyroscope z is the yaw rate in rad/s, positive for a clockwise turn
      seen from above (the compass sense). This is the opposite of the
      right-hand rule about the out-of-screen z axis, so hosts forwarding
      raw platform readings negate z.
    - Magnetometer readings are in µT.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class Vector3:
    """
    Immutable 3-component sensor reading.

    Attributes:
        x: First axis component.
        y: Second axis component.
        z: Third axis component.

    Example:
        >>> v = Vector3(3.0, 4.0, 0.0)
        >>> v.magnitude()
        5.0
    """

    x: float
    y: float
    z: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "Vector3":
        """Build a Vector3 from any length-3 sequence or array."""
        arr = np.asarray(values, dtype=float)
        if arr.shape != (3,):
            raise ValueError(f"Vector3 requires shape (3,), got {arr.shape}")
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    @classmethod
    def zero(cls) -> "Vector3":
        return cls(0.0, 0.0, 0.0)

    def as_array(self) -> np.ndarray:
        """Return the components as a new float array of shape (3,)."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def magnitude(self) -> float:
        """Euclidean norm sqrt(x² + y² + z²)."""
        return float(np.sqrt(self.x * self.x + self.y * self.y + self.z * self.z))

    def abs_diff_sum(self, other: "Vector3") -> float:
        """Sum of absolute per-axis differences |Δx| + |Δy| + |Δz|."""
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)


@dataclass(frozen=True)
class SensorSample:
    """
    One synchronized reading of the three motion sensors.

    Produced by the host's sensor collaborator at device rate (typically
    20-50 Hz) and consumed once by the engine.

    Attributes:
        accel: Accelerometer reading in m/s² (gravity included).
        gyro: Gyroscope reading in rad/s; z is positive clockwise seen from
              above, matching compass headings.
        mag: Magnetometer reading in µT.
        timestamp_ms: Sample time in integer milliseconds.
    """

    accel: Vector3
    gyro: Vector3
    mag: Vector3
    timestamp_ms: int


class WalkingState(Enum):
    """Coarse gait classification reported by the step detector."""

    STILL = "STILL"
    WALKING = "WALKING"
    RUNNING = "RUNNING"

