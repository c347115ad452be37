"""Loosely coupled PDR/GPS position fusion.

State vector (local East-North frame):
    x = [x, y, vx, vy, ψ]
        x, y:   position (m)
        vx, vy: velocity (m/s)
        ψ:      heading (rad, 0 = North, clockwise, kept in [0, 2π))

Covariance is kept diagonal: every correction is a scalar Kalman update on
one state component, so no matrix inversion is needed.

PDR step (prediction):
    x += vx·dt + L·sin ψ,   y += vy·dt + L·cos ψ
    v  = 0.8 v + 0.2 Δp/dt                         (dt > 0)
    ψ  = ψ_pdr
    P_pos += q + σ_pdr²,  P_vel += 2q,  P_ψ += σ_ψ

GPS fix (correction):
    R = accuracy²  (5.0 when accuracy is unknown)
    per axis: k = P/(P+R); p += k·r; v += 0.1·k·r; P *= (1-k)
    speed > 0.5 m/s: velocity update toward speed·[sin β, cos β] with R·0.1
    speed > 1.0 m/s: heading update toward atan2(vx_gps, vy_gps)

A GPS stream is considered lost once no fix arrived for ``gps_timeout_s``.
"""

import time
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from walkarea.estimators.base import StateEstimator
from walkarea.utils.angles import angle_diff, normalize_angle_rad, normalize_heading_deg


# State indices
X, Y, VX, VY, HEADING = range(5)


@dataclass(frozen=True)
class FusionConfig:
    """Noise parameters of the fusion filter.

    Attributes:
        initial_covariance: Diagonal of P after reset, order [x, y, vx, vy, ψ].
        process_noise: Process noise q added per PDR step.
        pdr_position_noise: Standard deviation of one PDR step position (m).
        heading_noise: Heading variance added per step and heading
                       measurement noise for GPS course updates (rad²).
        gps_position_noise: Position variance used when a fix carries no
                            accuracy (m²).
        velocity_blend: Weight kept on the previous velocity per step.
        residual_velocity_gain: Fraction of each position correction applied
                                to the matching velocity component.
        velocity_noise_scale: GPS velocity noise as a fraction of the
                              position noise.
        min_velocity_speed: GPS speed above which velocity is updated (m/s).
        min_heading_speed: GPS speed above which heading is updated (m/s).
        gps_timeout_s: Seconds without a fix after which GPS is stale.
    """

    initial_covariance: Tuple[float, float, float, float, float] = (10.0, 10.0, 1.0, 1.0, 0.5)
    process_noise: float = 0.01
    pdr_position_noise: float = 0.5
    heading_noise: float = 0.1
    gps_position_noise: float = 5.0
    velocity_blend: float = 0.8
    residual_velocity_gain: float = 0.1
    velocity_noise_scale: float = 0.1
    min_velocity_speed: float = 0.5
    min_heading_speed: float = 1.0
    gps_timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if len(self.initial_covariance) != 5:
            raise ValueError(
                f"initial_covariance needs 5 entries, got {len(self.initial_covariance)}"
            )
        if any(p < 0 for p in self.initial_covariance):
            raise ValueError(f"initial_covariance must be non-negative, got {self.initial_covariance}")
        if not 0.0 <= self.velocity_blend <= 1.0:
            raise ValueError(f"velocity_blend must be in [0, 1], got {self.velocity_blend}")


@dataclass(frozen=True)
class FusionState:
    """Snapshot of the fusion filter.

    Attributes:
        x: East position (m).
        y: North position (m).
        vx: East velocity (m/s).
        vy: North velocity (m/s).
        heading_rad: Heading in [0, 2π).
        covariance: 5×5 covariance copy.
    """

    x: float
    y: float
    vx: float
    vy: float
    heading_rad: float
    covariance: np.ndarray


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class LocationFusionFilter(StateEstimator):
    """Five-state PDR/GPS fusion filter.

    ``predict`` and ``update`` take a PDR step and a GPS fix packed as arrays
    and forward to ``update_with_pdr`` and ``update_with_gps``. Every entry
    point accepts an optional ``timestamp_ms``; without it the host's
    monotonic clock is used to age the GPS fix.

    Args:
        config: Noise parameters (defaults to FusionConfig()).

    Example:
        >>> kf = LocationFusionFilter()
        >>> kf.update_with_pdr(1.0, 90.0, dt=0.0, timestamp_ms=0)
        >>> np.round(kf.position, 6)
        array([1., 0.])
    """

    def __init__(self, config: Optional[FusionConfig] = None):
        super().__init__(state_dim=5)
        self.config = config or FusionConfig()
        self.reset()

    def reset(self) -> None:
        """Zero the state, restore the initial covariance and drop the GPS fix."""
        self.state = np.zeros(5)
        self.covariance = np.diag(np.asarray(self.config.initial_covariance, dtype=float))
        self.has_gps_fix = False
        self._last_gps_ms: Optional[int] = None

    def predict(
        self,
        u: Optional[np.ndarray] = None,
        dt: float = 0.0,
        timestamp_ms: Optional[int] = None,
    ) -> None:
        """Apply one PDR step given as u = [step_length, heading_deg]."""
        if u is None:
            raise ValueError("PDR prediction needs u = [step_length, heading_deg]")
        u = np.asarray(u, dtype=float)
        if u.shape != (2,):
            raise ValueError(f"u must have shape (2,), got {u.shape}")
        self.update_with_pdr(float(u[0]), float(u[1]), dt, timestamp_ms)

    def update(self, z, timestamp_ms: Optional[int] = None) -> None:
        """Apply one GPS fix given as z = [x, y, accuracy, speed, bearing_deg]."""
        z = np.asarray(z, dtype=float)
        if z.shape != (5,):
            raise ValueError(f"z must have shape (5,), got {z.shape}")
        x, y, accuracy, speed, bearing_deg = (float(v) for v in z)
        self.update_with_gps(x, y, accuracy, speed, bearing_deg, timestamp_ms)

    def update_with_pdr(
        self,
        step_length: float,
        heading_deg: float,
        dt: float,
        timestamp_ms: Optional[int] = None,
    ) -> None:
        """Propagate the state with one detected step.

        Args:
            step_length: Step length in metres (non-negative).
            heading_deg: Compass heading of the step in degrees.
            dt: Seconds since the previous step; pass 0 to move by the step
                displacement only.
            timestamp_ms: Step time used to age the GPS fix.
        """
        if step_length < 0:
            raise ValueError(f"step_length must be non-negative, got {step_length}")
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")

        cfg = self.config
        s = self.state
        P = self.covariance

        heading = np.deg2rad(heading_deg)
        dx = step_length * np.sin(heading)
        dy = step_length * np.cos(heading)

        s[X] += s[VX] * dt + dx
        s[Y] += s[VY] * dt + dy

        if dt > 0:
            s[VX] = cfg.velocity_blend * s[VX] + (1.0 - cfg.velocity_blend) * (dx / dt)
            s[VY] = cfg.velocity_blend * s[VY] + (1.0 - cfg.velocity_blend) * (dy / dt)

        s[HEADING] = normalize_angle_rad(heading)

        position_noise = cfg.process_noise + cfg.pdr_position_noise ** 2
        P[X, X] += position_noise
        P[Y, Y] += position_noise
        P[VX, VX] += 2.0 * cfg.process_noise
        P[VY, VY] += 2.0 * cfg.process_noise
        P[HEADING, HEADING] += cfg.heading_noise

        self._check_gps_timeout(_now_ms() if timestamp_ms is None else timestamp_ms)

    def update_with_gps(
        self,
        x: float,
        y: float,
        accuracy: float,
        speed: float,
        bearing_deg: float,
        timestamp_ms: Optional[int] = None,
    ) -> None:
        """Correct the state with one gated GPS fix in local metres.

        Args:
            x: GPS East position (m).
            y: GPS North position (m).
            accuracy: Horizontal accuracy radius (m); <= 0 means unknown.
            speed: Ground speed (m/s).
            bearing_deg: Course over ground in degrees.
            timestamp_ms: Fix time used to age the GPS fix.
        """
        cfg = self.config
        self._last_gps_ms = _now_ms() if timestamp_ms is None else timestamp_ms
        self.has_gps_fix = True

        noise = accuracy * accuracy if accuracy > 0 else cfg.gps_position_noise

        self._update_position(X, VX, x, noise)
        self._update_position(Y, VY, y, noise)

        if speed > cfg.min_velocity_speed:
            self._update_velocity(speed, bearing_deg, noise)

    def _update_position(self, i: int, vi: int, z: float, noise: float) -> None:
        s = self.state
        P = self.covariance
        k = P[i, i] / (P[i, i] + noise)
        correction = k * (z - s[i])
        s[i] += correction
        s[vi] += correction * self.config.residual_velocity_gain
        P[i, i] *= 1.0 - k

    def _update_velocity(self, speed: float, bearing_deg: float, noise: float) -> None:
        cfg = self.config
        s = self.state
        P = self.covariance

        bearing = np.deg2rad(bearing_deg)
        gps_v = (speed * np.sin(bearing), speed * np.cos(bearing))
        velocity_noise = noise * cfg.velocity_noise_scale

        for i, z in zip((VX, VY), gps_v):
            k = P[i, i] / (P[i, i] + velocity_noise)
            s[i] += k * (z - s[i])
            P[i, i] *= 1.0 - k

        if speed > cfg.min_heading_speed:
            course = np.arctan2(gps_v[0], gps_v[1])
            k = P[HEADING, HEADING] / (P[HEADING, HEADING] + cfg.heading_noise)
            s[HEADING] = normalize_angle_rad(s[HEADING] + k * angle_diff(course, s[HEADING]))
            P[HEADING, HEADING] *= 1.0 - k

    def _check_gps_timeout(self, now_ms: int) -> None:
        if not self.has_gps_fix or self._last_gps_ms is None:
            return
        if now_ms - self._last_gps_ms > self.config.gps_timeout_s * 1000.0:
            self.has_gps_fix = False
            warnings.warn(
                f"No GPS fix for more than {self.config.gps_timeout_s:g} s, "
                "continuing with dead reckoning only",
                RuntimeWarning,
                stacklevel=3,
            )

    @property
    def position(self) -> np.ndarray:
        """Fused position [x, y] in metres."""
        return self.state[[X, Y]].copy()

    @property
    def velocity(self) -> np.ndarray:
        """Fused velocity [vx, vy] in m/s."""
        return self.state[[VX, VY]].copy()

    @property
    def heading_deg(self) -> float:
        """Fused heading in degrees within [0, 360)."""
        return normalize_heading_deg(np.rad2deg(self.state[HEADING]))

    @property
    def accuracy(self) -> np.ndarray:
        """Position standard deviations [σx, σy] in metres."""
        return np.sqrt(np.diag(self.covariance)[[X, Y]])

    @property
    def fusion_state(self) -> FusionState:
        """Immutable snapshot of state and covariance."""
        s = self.state
        return FusionState(
            x=float(s[X]),
            y=float(s[Y]),
            vx=float(s[VX]),
            vy=float(s[VY]),
            heading_rad=float(s[HEADING]),
            covariance=self.covariance.copy(),
        )
