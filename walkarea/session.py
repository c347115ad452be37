"""
Area-measurement session: the engine's single entry point.

A MeasurementSession wires the streaming components together for one walk:

    SensorSample ─► SensorFilterBank ─┬─► HeadingEstimator ─────────┐
                                      └─► StepDetector ─► StepLengthEstimator
                                                                    │
                                         (step_length, heading) ◄───┘
                                                    │
    RawFix ─► GpsGate ─► GatedFix ─► LocationFusionFilter ◄─┘
                                                    │
                               Trajectory ◄─────────┘
                                    │
                     TrajectoryOptimizer ─► MeasurementResult (area)

The host pushes sensor samples and location fixes in time order and pulls
estimates back, either from the return values, from query properties, or
through one optional SessionListener. Sessions are not thread-safe; hosts with
several producer threads must serialize calls.

Locating modes:
    "PDR":    position from dead reckoning only; fixes are still gated and
              recorded as a separate GPS trajectory.
    "Hybrid": accepted fixes also correct the fused position, and fixes at
              walking speed softly calibrate the gyro heading.

The GPS local frame is anchored at the first accepted fix, while the PDR
origin is the point where start() was called; both coincide when the first
fix arrives at the starting point.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from walkarea.estimators.kalman_filter import DEFAULT_IMU_Q, DEFAULT_IMU_R
from walkarea.fusion.gating import GateConfig, GpsGate
from walkarea.fusion.location_fusion import FusionConfig, LocationFusionFilter
from walkarea.fusion.types import GatedFix, RawFix
from walkarea.sensors.environment import HeadingConfig, HeadingEstimator
from walkarea.sensors.filter_bank import SensorFilterBank
from walkarea.sensors.pdr import (
    DEFAULT_STEP_LENGTH,
    StepDetector,
    StepDetectorConfig,
    StepLengthConfig,
    StepLengthEstimator,
)
from walkarea.sensors.types import SensorSample, WalkingState
from walkarea.trajectory.optimizer import (
    DEFAULT_CLOSURE_THRESHOLD_M,
    DEFAULT_EPSILON_M,
    DEFAULT_MAX_POINTS,
    TrajectoryOptimizer,
)
from walkarea.trajectory.track import LocalPoint, Trajectory


LOCATING_MODE_PDR = "PDR"
LOCATING_MODE_HYBRID = "Hybrid"


@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration of one measurement session.

    Attributes:
        user_height: Walker height in metres (clamped to [0.5, 2.5]).
        use_gps: Start in "Hybrid" mode when True, "PDR" otherwise.
        closure_threshold_m: Start/end gap regarded as a closed loop.
        min_point_spacing_m: Trajectory spacing filter distance.
        spacing_filter_after: Points recorded before the spacing filter starts.
        heading_calibration_min_speed: GPS speed above which fixes calibrate
                                       the gyro heading in "Hybrid" mode.
        sensor_q: Process noise of the per-axis sensor filters.
        sensor_r: Measurement noise of the per-axis sensor filters.
        epsilon_m: RDP tolerance for the simplified trajectory.
        max_points: Vertex budget before RDP.
        step_detector: Step detector tuning.
        heading: Heading filter tuning.
        step_length: Step-length model parameters.
        gate: GPS gate thresholds and smoothing (walking-speed smoothing
              by default).
        fusion: Fusion filter noise parameters.
    """

    user_height: float = 1.7
    use_gps: bool = False
    closure_threshold_m: float = DEFAULT_CLOSURE_THRESHOLD_M
    min_point_spacing_m: float = 0.3
    spacing_filter_after: int = 10
    heading_calibration_min_speed: float = 1.0
    sensor_q: float = DEFAULT_IMU_Q
    sensor_r: float = DEFAULT_IMU_R
    epsilon_m: float = DEFAULT_EPSILON_M
    max_points: int = DEFAULT_MAX_POINTS
    step_detector: StepDetectorConfig = field(default_factory=StepDetectorConfig)
    heading: HeadingConfig = field(default_factory=HeadingConfig)
    step_length: StepLengthConfig = field(default_factory=StepLengthConfig)
    gate: GateConfig = field(default_factory=GateConfig.walking)
    fusion: FusionConfig = field(default_factory=FusionConfig)

    def __post_init__(self) -> None:
        if self.closure_threshold_m < 0:
            raise ValueError(
                f"closure_threshold_m must be non-negative, got {self.closure_threshold_m}"
            )


class SessionListener:
    """
    Receiver of session events. Override the methods of interest.

    All methods are called synchronously from the thread feeding the session.
    """

    def on_step(self, step_count: int) -> None:
        pass

    def on_heading(self, heading_deg: float) -> None:
        pass

    def on_step_length(self, step_length: float) -> None:
        pass

    def on_walking_state(self, state: WalkingState) -> None:
        pass

    def on_position(self, point: LocalPoint) -> None:
        pass

    def on_gps_status(self, available: bool, satellites: int) -> None:
        pass


@dataclass(frozen=True)
class SampleUpdate:
    """
    Outcome of processing one sensor sample.

    Attributes:
        timestamp_ms: Sample time.
        heading_deg: Fused heading after this sample.
        step_detected: True if the sample completed a step.
        step_count: Steps recorded in the session so far.
        step_length: Length of the detected step, None without a step.
        walking_state: Current gait classification.
        position: Fused position after the step, None without a step.
    """

    timestamp_ms: int
    heading_deg: float
    step_detected: bool
    step_count: int
    step_length: Optional[float]
    walking_state: WalkingState
    position: Optional[LocalPoint]


@dataclass(frozen=True)
class MeasurementResult:
    """
    Result of a finished measurement.

    Attributes:
        area_m2: Area enclosed by the simplified trajectory.
        closed: True if the walk ended within the closure threshold of
                its start.
        step_count: Steps recorded during the walk.
        trajectory: Recorded (spacing-filtered) trajectory.
        simplified: Simplified and, when closed, explicitly closed polygon.
        distance_m: Path length along the recorded trajectory.
        locating_mode: "PDR" or "Hybrid".
    """

    area_m2: float
    closed: bool
    step_count: int
    trajectory: List[LocalPoint]
    simplified: List[LocalPoint]
    distance_m: float
    locating_mode: str


class MeasurementSession:
    """
    One area measurement from start() to stop().

    Args:
        config: Session configuration (defaults to SessionConfig()).
        listener: Optional event receiver.

    Example:
        >>> session = MeasurementSession()
        >>> session.start()
        >>> for heading in (0.0, 90.0, 180.0, 270.0):
        ...     for _ in range(10):
        ...         _ = session.add_pdr_step(0.5, heading, timestamp_ms=0)
        >>> round(session.stop().area_m2, 1)
        25.0
    """

    def __init__(self, config: Optional[SessionConfig] = None, listener: Optional[SessionListener] = None):
        self.config = config or SessionConfig()
        self.listener = listener
        cfg = self.config

        self.filter_bank = SensorFilterBank(cfg.sensor_q, cfg.sensor_r)
        self.step_detector = StepDetector(cfg.step_detector, on_walking_state=self._walking_state_changed)
        self.step_length_estimator = StepLengthEstimator(cfg.user_height, cfg.step_length)
        self.heading_estimator = HeadingEstimator(cfg.heading)
        self.gps_gate = GpsGate(cfg.gate)
        self.fusion = LocationFusionFilter(cfg.fusion)
        self.optimizer = TrajectoryOptimizer(cfg.epsilon_m, cfg.max_points)
        self.trajectory = Trajectory(cfg.min_point_spacing_m, cfg.spacing_filter_after)
        self.gps_trajectory = Trajectory(cfg.min_point_spacing_m, cfg.spacing_filter_after)

        self.use_gps = cfg.use_gps
        self.is_measuring = False
        self.reset()

    def reset(self) -> None:
        """Return every component to its initial state and stop measuring."""
        self.filter_bank.reset()
        self.step_detector.reset()
        self.step_length_estimator.reset()
        self.heading_estimator.reset()
        self.gps_gate.reset()
        self.fusion.reset()
        self.trajectory.clear()
        self.gps_trajectory.clear()

        self.is_measuring = False
        self.step_count = 0
        self.heading_deg = 0.0
        self.step_length = DEFAULT_STEP_LENGTH
        self.gps_available = False
        self.satellite_count = 0
        self.last_result: Optional[MeasurementResult] = None

    def start(self) -> None:
        """Begin a new measurement at the local origin."""
        self.reset()
        self.trajectory.append(LocalPoint(0.0, 0.0))
        self.is_measuring = True

    def stop(self) -> MeasurementResult:
        """
        Finish the measurement and compute the enclosed area.

        The trajectory is simplified, closed when it ends within
        ``closure_threshold_m`` of its start, and measured with the shoelace
        formula.

        Returns:
            The measurement result, also kept as ``last_result``.
        """
        self._require_measuring()
        self.is_measuring = False

        threshold = self.config.closure_threshold_m
        points = self.trajectory.points
        closed = self.optimizer.is_closed(points, threshold)

        simplified = self.optimizer.simplify(points)
        if closed and simplified[-1] != simplified[0]:
            simplified = self.optimizer.close_if_needed(simplified, threshold)

        result = MeasurementResult(
            area_m2=self.optimizer.polygon_area(simplified),
            closed=closed,
            step_count=self.step_count,
            trajectory=points,
            simplified=simplified,
            distance_m=self.trajectory.length_m(),
            locating_mode=self.locating_mode,
        )
        self.last_result = result
        return result

    def process_sample(self, sample: SensorSample) -> SampleUpdate:
        """
        Consume one raw sensor sample.

        Args:
            sample: Synchronized accel/gyro/mag reading.

        Returns:
            Heading and, when a step completed, its length and the new position.
        """
        self._require_measuring()
        filtered = self.filter_bank.filter_sample(sample)
        ts = sample.timestamp_ms

        self.heading_deg = self.heading_estimator.update(filtered.accel, filtered.mag, filtered.gyro, ts)
        self._notify("on_heading", self.heading_deg)

        step_length = None
        position = None
        step_detected = self.step_detector.update(filtered.accel, ts)
        if step_detected:
            step_length = self.step_length_estimator.estimate(filtered.accel.magnitude(), ts)
            self._notify("on_step_length", step_length)
            position = self.add_pdr_step(step_length, self.heading_deg, ts)

        return SampleUpdate(
            timestamp_ms=ts,
            heading_deg=self.heading_deg,
            step_detected=step_detected,
            step_count=self.step_count,
            step_length=step_length,
            walking_state=self.step_detector.walking_state,
            position=position,
        )

    def add_pdr_step(self, step_length: float, heading_deg: float, timestamp_ms: int) -> LocalPoint:
        """
        Advance the fused position by one step.

        Used internally for detected steps and available to hosts that run
        their own step detection. In "Hybrid" mode a step taken more than
        the GPS timeout after the last accepted fix marks GPS as unavailable.

        Returns:
            The fused position after the step.
        """
        self._require_measuring()
        self.fusion.predict(np.array([step_length, heading_deg]), dt=0.0, timestamp_ms=timestamp_ms)
        if self.use_gps and self.gps_available and not self.fusion.has_gps_fix:
            self.gps_available = False
            self._notify("on_gps_status", False, self.satellite_count)
        self.step_count += 1
        self.step_length = step_length
        self._notify("on_step", self.step_count)
        return self._record_position()

    def process_fix(self, fix: RawFix) -> Optional[GatedFix]:
        """
        Consume one raw location fix.

        Rejected fixes mark GPS as unavailable and are otherwise ignored. In
        "Hybrid" mode accepted fixes correct the fused position.

        Returns:
            The gated fix, or None if it was rejected.
        """
        self._require_measuring()
        gated = self.gps_gate.accept(fix)
        if gated is None:
            self.gps_available = False
            self._notify("on_gps_status", False, fix.satellites)
            return None

        self.gps_available = True
        self.satellite_count = gated.satellites
        self._notify("on_gps_status", True, gated.satellites)
        self.gps_trajectory.append(LocalPoint(gated.x, gated.y))

        if self.use_gps:
            self.fusion.update(
                [gated.x, gated.y, gated.accuracy_m, gated.speed_mps, gated.bearing_deg],
                timestamp_ms=gated.timestamp_ms,
            )
            if gated.speed_mps > self.config.heading_calibration_min_speed:
                self.heading_estimator.calibrate_with_gps(gated.bearing_deg)
            self._record_position()

        return gated

    def set_user_height(self, height: float) -> None:
        """Set the walker height used by the step-length model."""
        self.step_length_estimator.user_height = height

    def set_use_gps(self, enabled: bool) -> None:
        """Switch between "Hybrid" (True) and "PDR" (False) locating."""
        self.use_gps = enabled

    def calibrate_step_length(self, actual_distance: float, step_count: Optional[int] = None) -> None:
        """Calibrate step length against a known walked distance."""
        steps = self.step_count if step_count is None else step_count
        self.step_length_estimator.calibrate(actual_distance, steps)

    def calibrate_heading_with_gps(self, bearing_deg: float) -> bool:
        """Softly correct the gyro heading with a GPS bearing; False if rejected."""
        return self.heading_estimator.calibrate_with_gps(bearing_deg)

    @property
    def locating_mode(self) -> str:
        return LOCATING_MODE_HYBRID if self.use_gps else LOCATING_MODE_PDR

    @property
    def walking_state(self) -> WalkingState:
        return self.step_detector.walking_state

    @property
    def position(self) -> np.ndarray:
        return self.fusion.position

    @property
    def velocity(self) -> np.ndarray:
        return self.fusion.velocity

    @property
    def accuracy(self) -> float:
        """Horizontal position uncertainty (m), the larger of σx and σy."""
        return float(np.max(self.fusion.accuracy))

    @property
    def is_closed(self) -> bool:
        return self.optimizer.is_closed(self.trajectory.points, self.config.closure_threshold_m)

    @property
    def distance_m(self) -> float:
        return self.trajectory.length_m()

    def simplified_trajectory(self) -> List[LocalPoint]:
        return self.optimizer.simplify(self.trajectory.points)

    @property
    def area(self) -> float:
        """Area of the last finished measurement, or of the live trajectory."""
        if self.last_result is not None:
            return self.last_result.area_m2
        return self.optimizer.polygon_area(self.simplified_trajectory())

    def _record_position(self) -> LocalPoint:
        x, y = self.fusion.position
        point = LocalPoint(float(x), float(y))
        if self.trajectory.append(point):
            self._notify("on_position", point)
        return point

    def _walking_state_changed(self, state: WalkingState) -> None:
        self._notify("on_walking_state", state)

    def _notify(self, event: str, *args) -> None:
        if self.listener is not None:
            getattr(self.listener, event)(*args)

    def _require_measuring(self) -> None:
        if not self.is_measuring:
            raise RuntimeError("Measurement session not started; call start() first")
