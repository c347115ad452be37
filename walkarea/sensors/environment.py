"""
Magnetometer heading and gyro/magnetometer heading fusion.

This module implements the heading half of step-and-heading PDR:
    - Tilt-compensated magnetic azimuth from gravity and geomagnetic vectors
      (rotation-matrix / orientation decomposition)
    - Complementary filter fusing gyro yaw-rate integration with the
      magnetic azimuth, with magnetic-disturbance detection
    - Soft heading calibration from GPS bearing

The magnetometer gives a drift-free but noisy and disturbance-prone heading;
the gyroscope gives a smooth heading that drifts without bound. The
complementary filter trusts the gyro at high frequency and pulls it slowly
toward the magnetometer whenever the magnetic field looks clean.

Frame Conventions:
    - Device frame: x right, y up the screen, z out of the screen.
    - World frame of the rotation matrix: x East, y North, z Up.
    - Azimuth: 0 = magnetic North, positive clockwise (π/2 = East).
    - Gyro z is integrated in the same sense as the azimuth (positive
      clockwise seen from above).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from walkarea.sensors.types import Vector3
from walkarea.utils.angles import angle_diff, normalize_heading_deg


# Below this squared accel norm the device is treated as in free fall
FREE_FALL_GRAVITY_SQUARED = 0.01 * 9.81 * 9.81
# Minimum norm of East = mag × gravity; smaller means mag ∥ gravity
MIN_EAST_NORM = 0.1


def rotation_matrix_from_gravity_mag(gravity: Vector3, geomagnetic: Vector3) -> Optional[np.ndarray]:
    """
    Device-to-world rotation matrix from gravity and geomagnetic vectors.

    The world axes are built directly from the two measured vectors:
        East  H = E × A / |E × A|
        Up    A = a / |a|
        North M = A × H

    and stacked as rows, so R @ v_device = v_world.

    Args:
        gravity: Accelerometer reading (m/s²), dominated by gravity.
        geomagnetic: Magnetometer reading (µT).

    Returns:
        Rotation matrix, shape (3, 3), or None when the device is in free
        fall or the magnetic field is (nearly) parallel to gravity, where no
        horizontal reference exists.

    Example:
        >>> R = rotation_matrix_from_gravity_mag(Vector3(0, 0, 9.81), Vector3(0, 30, -40))
        >>> np.allclose(R, np.eye(3))
        True
    """
    a = gravity.as_array()
    e = geomagnetic.as_array()

    if float(a @ a) < FREE_FALL_GRAVITY_SQUARED:
        return None

    h = np.cross(e, a)
    norm_h = float(np.linalg.norm(h))
    if norm_h < MIN_EAST_NORM:
        return None

    h = h / norm_h
    a = a / np.linalg.norm(a)
    m = np.cross(a, h)

    return np.vstack([h, m, a])


def azimuth_from_rotation_matrix(R: np.ndarray) -> float:
    """
    Azimuth (yaw about -z) of the device's y axis.

    Returns:
        Azimuth in radians, range [-π, π], 0 = North, π/2 = East.
    """
    return float(np.arctan2(R[0, 1], R[1, 1]))


def magnetic_heading(gravity: Vector3, geomagnetic: Vector3) -> Optional[float]:
    """
    Tilt-compensated magnetic heading in radians, or None if undefined.

    Example:
        >>> # Phone flat, top edge pointing East
        >>> h = magnetic_heading(Vector3(0, 0, 9.81), Vector3(-30, 0, -40))
        >>> round(float(np.rad2deg(h)), 1)
        90.0
    """
    R = rotation_matrix_from_gravity_mag(gravity, geomagnetic)
    if R is None:
        return None
    return azimuth_from_rotation_matrix(R)


@dataclass(frozen=True)
class HeadingConfig:
    """
    Complementary-filter heading parameters.

    Attributes:
        fusion_alpha: Gyro weight with a clean magnetic field.
        disturbed_alpha: Gyro weight while the magnetic field is disturbed.
        gyro_drift_correction: Fraction of the gyro-to-magnetic residual
                               removed on every clean sample.
        disturbance_threshold: Sum of per-axis magnetometer changes (µT)
                               between samples that flags a disturbance.
        gps_max_correction_deg: GPS bearings further than this from the gyro
                                heading are rejected as implausible.
        gps_correction_gain: Fraction of the GPS residual applied.
    """

    fusion_alpha: float = 0.98
    disturbed_alpha: float = 0.99
    gyro_drift_correction: float = 0.01
    disturbance_threshold: float = 5.0
    gps_max_correction_deg: float = 45.0
    gps_correction_gain: float = 0.3

    def __post_init__(self) -> None:
        for name in ("fusion_alpha", "disturbed_alpha", "gyro_drift_correction", "gps_correction_gain"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")


class HeadingEstimator:
    """
    Gyro/magnetometer complementary filter producing a compass heading.

    Per update:
        1. Flag a magnetic disturbance when Σ|Δmag| > threshold.
        2. Compute the tilt-compensated magnetic azimuth ψ_m.
        3. Integrate gyro: ψ_g += ω_z * dt (no-op on the first call).
        4. If clean: ψ_g += k_drift * wrap(ψ_m - ψ_g).
        5. Fuse: ψ = α ψ_g + (1 - α) ψ_m, with α = 0.99 if disturbed else
           0.98; the blend is taken along the shortest arc so headings on
           either side of North do not average to South.
        6. Return ψ in degrees within [0, 360).

    Args:
        config: Filter parameters (defaults to HeadingConfig()).
    """

    def __init__(self, config: Optional[HeadingConfig] = None):
        self.config = config or HeadingConfig()
        self.heading_deg = 0.0
        self.reset()

    def reset(self) -> None:
        """Clear gyro integration, magnetometer memory and timestamp."""
        self.gyro_integration = 0.0
        self.magnetic_disturbance = False
        self.magnetic_heading_rad = 0.0
        self._last_mag: Optional[Vector3] = None
        self._last_timestamp_ms: Optional[int] = None

    def update(self, accel: Vector3, mag: Vector3, gyro: Vector3, timestamp_ms: int) -> float:
        """
        Fuse one set of filtered sensor readings.

        Args:
            accel: Accelerometer reading (m/s²).
            mag: Magnetometer reading (µT).
            gyro: Gyroscope reading (rad/s); only z is used, positive clockwise.
            timestamp_ms: Sample time in milliseconds.

        Returns:
            Heading in degrees, 0 = North, clockwise, within [0, 360).
        """
        cfg = self.config

        if self._last_mag is not None:
            self.magnetic_disturbance = mag.abs_diff_sum(self._last_mag) > cfg.disturbance_threshold
        self._last_mag = mag

        psi_m = magnetic_heading(accel, mag)
        self.magnetic_heading_rad = 0.0 if psi_m is None else psi_m

        if self._last_timestamp_ms is not None:
            dt = (timestamp_ms - self._last_timestamp_ms) / 1000.0
            self.gyro_integration += gyro.z * dt

            if not self.magnetic_disturbance:
                residual = angle_diff(self.magnetic_heading_rad, self.gyro_integration)
                self.gyro_integration += cfg.gyro_drift_correction * residual
        self._last_timestamp_ms = timestamp_ms

        alpha = cfg.disturbed_alpha if self.magnetic_disturbance else cfg.fusion_alpha
        fused = self.gyro_integration + (1.0 - alpha) * angle_diff(
            self.magnetic_heading_rad, self.gyro_integration
        )

        self.heading_deg = normalize_heading_deg(np.rad2deg(fused))
        return self.heading_deg

    def calibrate_with_gps(self, bearing_deg: float) -> bool:
        """
        Softly pull the gyro heading toward a GPS course-over-ground bearing.

        Args:
            bearing_deg: GPS bearing in degrees (0 = North, clockwise).

        Returns:
            True if the correction was applied, False if the bearing was
            rejected for being too far from the current gyro heading.
        """
        cfg = self.config
        residual = angle_diff(np.deg2rad(bearing_deg), self.gyro_integration)
        if abs(residual) >= np.deg2rad(cfg.gps_max_correction_deg):
            return False
        self.gyro_integration += cfg.gps_correction_gain * residual
        return True
