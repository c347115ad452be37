"""
Generate synthetic phone sensor streams for polygonal walks.

The forward model is deliberately simple, enough to drive the engine end to
end with a known answer:
    - Walking legs: the accelerometer magnitude oscillates once per step,
          |a|(t) = g + A·sin(2π f t)
      so every period holds exactly one peak/valley pair. The phone lies flat
      with its top edge pointing along the walking direction.
    - Turns: the walker stands still (|a| = g) and rotates at a constant rate
      for ``turn_duration_s``.
    - Magnetometer: a horizontal field of ``field_north`` µT toward magnetic
      North and a vertical component of ``-field_down`` µT, expressed in the
      rotated device frame.
    - Gyroscope: z carries the heading rate in the compass sense (positive
      clockwise), the sense in which HeadingEstimator integrates it.

Ground truth (position and heading per sample) is returned alongside, and
GPS fixes can be derived from it with ``generate_gps_fixes``.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from walkarea.coords.transforms import local_to_geo
from walkarea.fusion.types import RawFix
from walkarea.sensors.pdr import pdr_step_update
from walkarea.sensors.types import SensorSample, Vector3
from walkarea.utils.angles import angle_diff
from walkarea.utils.geometry import polygon_area


GRAVITY = 9.81


@dataclass(frozen=True)
class SimulatedWalk:
    """
    Synthetic sensor stream with ground truth.

    Attributes:
        samples: Sensor samples in time order.
        timestamps_ms: Sample times, shape (N,).
        true_xy: True local position per sample (m), shape (N, 2).
        true_heading_deg: True compass heading per sample, shape (N,).
        speed_mps: True ground speed per sample, shape (N,).
        waypoints: Polygon corners walked, shape (M, 2).
        step_count: Number of simulated steps.
    """

    samples: List[SensorSample]
    timestamps_ms: np.ndarray
    true_xy: np.ndarray
    true_heading_deg: np.ndarray
    speed_mps: np.ndarray
    waypoints: np.ndarray
    step_count: int

    @property
    def true_area(self) -> float:
        """Area of the walked polygon (m²)."""
        return polygon_area(self.waypoints)


def rectangle_waypoints(width_m: float, height_m: float) -> np.ndarray:
    """
    Corners of a rectangle walked North, East, South, then West from the origin.

    Example:
        >>> rectangle_waypoints(6.0, 10.0).tolist()
        [[0.0, 0.0], [0.0, 10.0], [6.0, 10.0], [6.0, 0.0], [0.0, 0.0]]
    """
    if width_m <= 0 or height_m <= 0:
        raise ValueError(f"Rectangle sides must be positive, got {width_m} x {height_m}")
    return np.array(
        [[0.0, 0.0], [0.0, height_m], [width_m, height_m], [width_m, 0.0], [0.0, 0.0]]
    )


def magnetometer_for_heading(heading_rad: float, field_north: float = 30.0, field_down: float = 40.0) -> Vector3:
    """
    Magnetometer reading of a flat phone whose top edge points at ``heading_rad``.

    Example:
        >>> magnetometer_for_heading(0.0)
        Vector3(x=-0.0, y=30.0, z=-40.0)
    """
    return Vector3(
        float(-field_north * np.sin(heading_rad)),
        float(field_north * np.cos(heading_rad)),
        float(-field_down),
    )


def generate_polygon_walk(
    waypoints: np.ndarray,
    step_length_m: float = 0.8,
    step_frequency_hz: float = 2.0,
    sample_rate_hz: float = 50.0,
    accel_amplitude: float = 3.0,
    turn_duration_s: float = 1.0,
    accel_noise_std: float = 0.0,
    start_ms: int = 0,
    rng: Optional[np.random.Generator] = None,
) -> SimulatedWalk:
    """
    Simulate walking along a polyline of waypoints.

    Each leg is walked with a whole number of steps (the nearest to the leg
    length), so the simulated leg can be up to half a step shorter or longer
    than the waypoint spacing.

    Args:
        waypoints: Corners in local metres, shape (M, 2), M >= 2.
        step_length_m: True step length.
        step_frequency_hz: Steps per second.
        sample_rate_hz: Sensor sample rate.
        accel_amplitude: Amplitude A of the per-step magnitude oscillation.
        turn_duration_s: Time spent turning at each corner.
        accel_noise_std: Std of white noise added to each accel axis.
        start_ms: Timestamp of the first sample.
        rng: Random generator for the noise.

    Returns:
        The simulated walk with ground truth.
    """
    waypoints = np.asarray(waypoints, dtype=float)
    if waypoints.ndim != 2 or waypoints.shape[1] != 2 or len(waypoints) < 2:
        raise ValueError(f"waypoints must have shape (M, 2) with M >= 2, got {waypoints.shape}")
    if step_length_m <= 0 or step_frequency_hz <= 0 or sample_rate_hz <= 0:
        raise ValueError("step_length_m, step_frequency_hz and sample_rate_hz must be positive")
    if rng is None:
        rng = np.random.default_rng()

    dt = 1.0 / sample_rate_hz
    speed = step_length_m * step_frequency_hz

    t_list: List[float] = []
    xy_list: List[np.ndarray] = []
    heading_list: List[float] = []
    rate_list: List[float] = []
    mag_accel: List[float] = []
    speed_list: List[float] = []

    t = 0.0
    position = waypoints[0].copy()
    heading = None
    total_steps = 0

    for start, end in zip(waypoints[:-1], waypoints[1:]):
        leg = end - start
        leg_heading = float(np.arctan2(leg[0], leg[1]))

        if heading is not None:
            turn = angle_diff(leg_heading, heading)
            n_turn = int(round(turn_duration_s * sample_rate_hz))
            rate = turn / (n_turn * dt) if n_turn > 0 else 0.0
            for _ in range(n_turn):
                heading = heading + rate * dt
                t_list.append(t)
                xy_list.append(position.copy())
                heading_list.append(heading)
                rate_list.append(rate)
                mag_accel.append(GRAVITY)
                speed_list.append(0.0)
                t += dt
        heading = leg_heading

        n_steps = int(round(np.linalg.norm(leg) / step_length_m))
        n_leg = int(round(n_steps / step_frequency_hz * sample_rate_hz))
        direction = np.array([np.sin(leg_heading), np.cos(leg_heading)])
        for k in range(n_leg):
            tau = k * dt
            t_list.append(t)
            xy_list.append(position + direction * speed * tau)
            heading_list.append(heading)
            rate_list.append(0.0)
            mag_accel.append(GRAVITY + accel_amplitude * np.sin(2.0 * np.pi * step_frequency_hz * tau))
            speed_list.append(speed)
            t += dt
        position = pdr_step_update(position, n_steps * step_length_m, np.rad2deg(leg_heading))
        total_steps += n_steps

    samples: List[SensorSample] = []
    timestamps = np.array([start_ms + int(round(ti * 1000.0)) for ti in t_list], dtype=np.int64)
    for ts, h, rate, a in zip(timestamps, heading_list, rate_list, mag_accel):
        accel = np.array([0.0, 0.0, a])
        if accel_noise_std > 0:
            accel = accel + rng.normal(0.0, accel_noise_std, 3)
        samples.append(
            SensorSample(
                accel=Vector3.from_sequence(accel),
                gyro=Vector3(0.0, 0.0, rate),
                mag=magnetometer_for_heading(h),
                timestamp_ms=int(ts),
            )
        )

    return SimulatedWalk(
        samples=samples,
        timestamps_ms=timestamps,
        true_xy=np.array(xy_list),
        true_heading_deg=np.mod(np.rad2deg(heading_list), 360.0),
        speed_mps=np.array(speed_list),
        waypoints=waypoints,
        step_count=total_steps,
    )


def generate_gps_fixes(
    walk: SimulatedWalk,
    origin_lat: float,
    origin_lon: float,
    rate_hz: float = 1.0,
    accuracy_m: float = 5.0,
    noise_std_m: float = 0.0,
    satellites: int = 8,
    rng: Optional[np.random.Generator] = None,
) -> List[RawFix]:
    """
    Sample GPS fixes along a simulated walk.

    Args:
        walk: Simulated walk providing the true trajectory.
        origin_lat: Latitude of the local origin (degrees).
        origin_lon: Longitude of the local origin (degrees).
        rate_hz: Fix rate.
        accuracy_m: Reported accuracy of every fix.
        noise_std_m: Std of the horizontal position noise per axis (m).
        satellites: Reported satellite count.
        rng: Random generator for the noise.

    Returns:
        Fixes in time order, the first one at the first sample.
    """
    if rate_hz <= 0:
        raise ValueError(f"rate_hz must be positive, got {rate_hz}")
    if rng is None:
        rng = np.random.default_rng()

    period_ms = 1000.0 / rate_hz
    fixes: List[RawFix] = []
    next_ms = float(walk.timestamps_ms[0])
    for i, ts in enumerate(walk.timestamps_ms):
        if ts < next_ms:
            continue
        next_ms += period_ms

        xy = walk.true_xy[i]
        if noise_std_m > 0:
            xy = xy + rng.normal(0.0, noise_std_m, 2)
        lat, lon = local_to_geo(xy[0], xy[1], origin_lat, origin_lon)
        fixes.append(
            RawFix(
                lat=float(lat),
                lon=float(lon),
                accuracy_m=accuracy_m,
                speed_mps=float(walk.speed_mps[i]),
                bearing_deg=float(walk.true_heading_deg[i]),
                timestamp_ms=int(ts),
                satellites=satellites,
            )
        )
    return fixes
