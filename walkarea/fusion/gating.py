"""GPS fix validity gating and smoothing.

Phone GPS fixes are dropped before they reach the fusion filter when they are
individually poor (large accuracy radius, implausible ground speed) or
inconsistent with the last accepted fix (a jump of more than 10 m within a
second, or an implied speed above walking/running plausibility). Accepted
fixes are smoothed with one scalar Kalman filter per coordinate and placed in
the local East-North frame anchored at the first accepted fix.

Rejected fixes are never raised as errors: the gate returns None and records
the reason in ``last_rejection`` so the host can report "GPS low quality".
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from walkarea.coords.transforms import geo_to_local, haversine_distance
from walkarea.estimators.kalman_filter import ScalarKalmanFilter
from walkarea.fusion.types import GatedFix, GateDecision, RawFix


@dataclass(frozen=True)
class GateConfig:
    """GPS gate thresholds and coordinate smoothing tuning.

    Attributes:
        max_accuracy_m: Fixes with a larger accuracy radius are rejected.
        max_speed_mps: Fixes reporting or implying a larger speed are rejected.
        min_interval_s: Fixes closer in time than this to the last accepted
                        fix must also be within ``max_jump_m`` of it.
        max_jump_m: Largest displacement allowed within ``min_interval_s``.
        initial_covariance: Initial variance of the coordinate filters.
        process_noise_q: Process noise of the coordinate filters (deg²).
        measurement_noise_r: Measurement noise of the coordinate filters (deg²).

    Notes:
        The default smoothing (q/r = 0.01) settles at a gain near 0.1 and
        trails a walker by roughly ten times the distance covered between
        fixes. ``GateConfig.walking()`` raises q to ten times r, which keeps
        the smoothed fix within a few decimetres of a walker at 1 Hz.
    """

    max_accuracy_m: float = 20.0
    max_speed_mps: float = 10.0
    min_interval_s: float = 1.0
    max_jump_m: float = 10.0
    initial_covariance: float = 1.0
    process_noise_q: float = 1e-5
    measurement_noise_r: float = 1e-3

    def __post_init__(self) -> None:
        if self.max_accuracy_m <= 0:
            raise ValueError(f"max_accuracy_m must be positive, got {self.max_accuracy_m}")
        if self.max_speed_mps <= 0:
            raise ValueError(f"max_speed_mps must be positive, got {self.max_speed_mps}")

    @classmethod
    def walking(cls) -> "GateConfig":
        """Coordinate smoothing that keeps up with walking speed (q = 10 r)."""
        return cls(process_noise_q=1e-2, measurement_noise_r=1e-3)


class GpsGate:
    """Validity gate, smoother and local projector for GPS fixes.

    Args:
        config: Gate thresholds (defaults to GateConfig()).

    Example:
        >>> gate = GpsGate()
        >>> fix = RawFix(lat=22.3, lon=114.18, accuracy_m=5.0, timestamp_ms=0)
        >>> gated = gate.accept(fix)
        >>> (gated.x, gated.y)
        (0.0, 0.0)
        >>> gate.accept(RawFix(lat=22.3, lon=114.18, accuracy_m=50.0, timestamp_ms=1000)) is None
        True
        >>> gate.last_rejection
        <GateDecision.LOW_ACCURACY: 'low_accuracy'>
    """

    def __init__(self, config: Optional[GateConfig] = None):
        self.config = config or GateConfig()
        self.reset()

    def reset(self) -> None:
        """Forget the last accepted fix and the origin, re-create the smoothers."""
        self._lat_filter: Optional[ScalarKalmanFilter] = None
        self._lon_filter: Optional[ScalarKalmanFilter] = None
        self.origin: Optional[Tuple[float, float]] = None
        self.last_valid_fix: Optional[GatedFix] = None
        self._last_raw: Optional[RawFix] = None
        self.last_rejection: Optional[GateDecision] = None
        self.accepted_count = 0
        self.rejected_count = 0

    def check(self, fix: RawFix) -> GateDecision:
        """Classify a fix against the thresholds without changing any state."""
        cfg = self.config

        if fix.accuracy_m > cfg.max_accuracy_m:
            return GateDecision.LOW_ACCURACY
        if fix.speed_mps > cfg.max_speed_mps:
            return GateDecision.EXCESSIVE_SPEED

        # Motion is judged on raw positions; the smoothed ones trail the walker.
        last = self._last_raw
        if last is not None:
            dt = (fix.timestamp_ms - last.timestamp_ms) / 1000.0
            distance = haversine_distance(last.lat, last.lon, fix.lat, fix.lon)

            if dt < cfg.min_interval_s and distance > cfg.max_jump_m:
                return GateDecision.POSITION_JUMP
            if dt > 0 and distance / dt > cfg.max_speed_mps:
                return GateDecision.IMPLAUSIBLE_MOTION

        return GateDecision.ACCEPTED

    def accept(self, fix: RawFix) -> Optional[GatedFix]:
        """Gate one raw fix.

        Args:
            fix: Raw location fix.

        Returns:
            The smoothed fix in the local frame, or None if it was rejected.
        """
        decision = self.check(fix)
        if decision is not GateDecision.ACCEPTED:
            self.last_rejection = decision
            self.rejected_count += 1
            return None

        if self._lat_filter is None or self._lon_filter is None or self.origin is None:
            self._lat_filter = self._coordinate_filter(fix.lat)
            self._lon_filter = self._coordinate_filter(fix.lon)
            self.origin = (fix.lat, fix.lon)

        lat = self._lat_filter.filter(fix.lat)
        lon = self._lon_filter.filter(fix.lon)
        x, y = geo_to_local(lat, lon, self.origin[0], self.origin[1])

        gated = GatedFix(
            lat=lat,
            lon=lon,
            x=float(x),
            y=float(y),
            accuracy_m=fix.accuracy_m,
            speed_mps=fix.speed_mps,
            bearing_deg=fix.bearing_deg,
            timestamp_ms=fix.timestamp_ms,
            altitude=fix.altitude,
            satellites=fix.satellites,
        )
        self.last_valid_fix = gated
        self._last_raw = fix
        self.last_rejection = None
        self.accepted_count += 1
        return gated

    def _coordinate_filter(self, seed: float) -> ScalarKalmanFilter:
        cfg = self.config
        return ScalarKalmanFilter(
            seed, cfg.initial_covariance, cfg.process_noise_q, cfg.measurement_noise_r
        )
