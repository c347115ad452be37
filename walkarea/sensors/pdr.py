"""
Pedestrian Dead Reckoning (PDR) algorithms.

This module implements the streaming step-and-heading building blocks:
    - Step detection on the acceleration magnitude with an adaptive
      peak-valley threshold (StepDetector)
    - Walking-state classification (STILL / WALKING / RUNNING)
    - Dynamic step length from user height, acceleration and cadence
      (StepLengthEstimator)
    - 2D position update from one step (pdr_step_update)

Heading Convention:
    Headings are compass headings: 0° = North (+y), 90° = East (+x),
    increasing clockwise. A step of length L at heading ψ moves the walker by
    L * [sin(ψ), cos(ψ)] in local East-North metres.

All detectors consume sample timestamps (integer milliseconds) supplied by
the host, so replaying a recorded session yields the same steps as the live
run.
"""

import warnings
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

import numpy as np

from walkarea.sensors.types import Vector3, WalkingState


# Step-length model constants
DEFAULT_STEP_LENGTH = 0.7  # m, output before the first estimate
MIN_STEP_LENGTH = 0.4  # m
MAX_STEP_LENGTH = 1.0  # m
MIN_USER_HEIGHT = 0.5  # m
MAX_USER_HEIGHT = 2.5  # m


@dataclass(frozen=True)
class StepDetectorConfig:
    """
    Tuning of the peak/valley step detector.

    Attributes:
        peak_min: Lowest magnitude accepted as a step peak (m/s², inclusive).
        peak_max: Magnitude upper bound for a step peak (m/s², exclusive).
        min_step_interval_ms: Shortest accepted time between steps.
        max_step_interval_ms: Longest accepted time between steps.
        threshold_base: Minimum peak-valley difference that may feed the
                        adaptive threshold buffer (m/s²).
        initial_threshold: Peak-valley threshold before adaptation (m/s²).
        diff_buffer_size: Number of recent differences averaged per update.
        min_rising_streak: Rising samples required before a peak.
        state_window: Magnitude samples kept for walking-state analysis.
        state_min_samples: Samples required before classifying.
        state_update_interval_ms: Minimum time between classifications.
        still_std: Magnitude stddev below which the user is STILL.
        running_std: Magnitude stddev above which the user is RUNNING.
        running_frequency_hz: Step frequency above which the user is RUNNING.

    Notes:
        The peak band is a device calibration parameter. Two tunings are
        known to work on phones: [9.5, 20.0) (default) and [11.0, 19.6),
        available through ``StepDetectorConfig.narrow_band()``.
    """

    peak_min: float = 9.5
    peak_max: float = 20.0
    min_step_interval_ms: int = 200
    max_step_interval_ms: int = 2000
    threshold_base: float = 1.7
    initial_threshold: float = 2.0
    diff_buffer_size: int = 5
    min_rising_streak: int = 2
    state_window: int = 50
    state_min_samples: int = 10
    state_update_interval_ms: int = 1000
    still_std: float = 0.5
    running_std: float = 5.0
    running_frequency_hz: float = 2.5

    def __post_init__(self) -> None:
        if self.peak_min >= self.peak_max:
            raise ValueError(
                f"peak_min ({self.peak_min}) must be below peak_max ({self.peak_max})"
            )
        if not 0 < self.min_step_interval_ms <= self.max_step_interval_ms:
            raise ValueError(
                "step intervals must satisfy 0 < min <= max, got "
                f"[{self.min_step_interval_ms}, {self.max_step_interval_ms}]"
            )
        if self.diff_buffer_size < 1:
            raise ValueError(f"diff_buffer_size must be >= 1, got {self.diff_buffer_size}")

    @classmethod
    def narrow_band(cls) -> "StepDetectorConfig":
        """Alternative calibration with peak band [11.0, 19.6)."""
        return cls(peak_min=11.0, peak_max=19.6)


def threshold_from_mean_difference(mean_diff: float) -> float:
    """
    Map the mean of recent peak-valley differences to a step threshold.

    Vigorous gait (large swings) raises the threshold so that small bumps
    between steps are ignored; gentle gait lowers it.

    Args:
        mean_diff: Mean peak-valley difference in m/s².

    Returns:
        New peak-valley threshold in m/s².
    """
    if mean_diff >= 8:
        return 4.3
    elif mean_diff >= 7:
        return 3.3
    elif mean_diff >= 4:
        return 2.3
    elif mean_diff >= 3:
        return 2.0
    return 1.7


class StepDetector:
    """
    Streaming step detector over the acceleration magnitude.

    Two tracks run on every identified peak:
        - acceptance: the peak is a step if the time since the previous
          accepted peak lies in [min, max] step interval and its peak-valley
          difference reaches the current adaptive threshold;
        - adaptation: if the difference reaches ``threshold_base`` and the
          minimum interval holds, the difference feeds a FIFO buffer whose
          mean selects the threshold used for the following peaks.

    Args:
        config: Detector tuning (defaults to StepDetectorConfig()).
        on_step: Optional callable receiving the new step count.
        on_walking_state: Optional callable receiving a WalkingState on change.

    Example:
        >>> detector = StepDetector()
        >>> detector.update(Vector3(0.0, 0.0, 9.81), timestamp_ms=0)
        False
    """

    def __init__(
        self,
        config: Optional[StepDetectorConfig] = None,
        on_step: Optional[Callable[[int], None]] = None,
        on_walking_state: Optional[Callable[[WalkingState], None]] = None,
    ):
        self.config = config or StepDetectorConfig()
        self.on_step = on_step
        self.on_walking_state = on_walking_state
        self.reset()

    def reset(self) -> None:
        """Zero all counters and buffers and restore the default threshold."""
        cfg = self.config
        self.step_count = 0
        self.active_threshold = cfg.initial_threshold
        self._diff_buffer: List[float] = []

        self._is_rising = False
        self._was_rising = False
        self._rising_streak = 0
        self._last_rising_streak = 0
        self._current_peak = 0.0
        self._current_valley = 0.0
        self._previous_value = 0.0

        self._time_of_current_peak: Optional[int] = None
        self._time_of_last_peak: Optional[int] = None

        self._recent_magnitudes: Deque[float] = deque(maxlen=cfg.state_window)
        self.last_acceleration: Optional[Vector3] = None
        self.walking_state = WalkingState.STILL
        self._last_state_update_ms: Optional[int] = None

    def update(self, accel: Vector3, timestamp_ms: int) -> bool:
        """
        Feed one (filtered) accelerometer reading.

        Args:
            accel: Accelerometer reading in m/s².
            timestamp_ms: Sample time in milliseconds.

        Returns:
            True if this sample completed an accepted step.
        """
        self.last_acceleration = accel
        magnitude = accel.magnitude()
        self._recent_magnitudes.append(magnitude)
        self._analyze_walking_state(timestamp_ms)
        return self._analyze_step(magnitude, timestamp_ms)

    def _analyze_step(self, magnitude: float, now_ms: int) -> bool:
        cfg = self.config
        accepted = False

        if self._identify_peak(magnitude, self._previous_value):
            self._time_of_last_peak = self._time_of_current_peak
            if self._time_of_last_peak is None:
                interval = None
            else:
                interval = now_ms - self._time_of_last_peak
            difference = self._current_peak - self._current_valley

            if (
                interval is not None
                and cfg.min_step_interval_ms <= interval <= cfg.max_step_interval_ms
                and difference >= self.active_threshold
            ):
                self._time_of_current_peak = now_ms
                self.step_count += 1
                accepted = True
                if self.on_step is not None:
                    self.on_step(self.step_count)

            # First peak of a session has no predecessor: it may seed the
            # threshold buffer but never counts as a step.
            if (
                interval is None or interval >= cfg.min_step_interval_ms
            ) and difference >= cfg.threshold_base:
                self._time_of_current_peak = now_ms
                self.active_threshold = self._update_active_threshold(difference)

        self._previous_value = magnitude
        return accepted

    def _identify_peak(self, new_value: float, old_value: float) -> bool:
        cfg = self.config
        self._was_rising = self._is_rising
        if new_value >= old_value:
            self._is_rising = True
            self._rising_streak += 1
        else:
            self._last_rising_streak = self._rising_streak
            self._rising_streak = 0
            self._is_rising = False

        if (
            not self._is_rising
            and self._was_rising
            and self._last_rising_streak >= cfg.min_rising_streak
            and cfg.peak_min <= old_value < cfg.peak_max
        ):
            self._current_peak = old_value
            return True
        if not self._was_rising and self._is_rising:
            self._current_valley = old_value
        return False

    def _update_active_threshold(self, difference: float) -> float:
        size = self.config.diff_buffer_size
        threshold = self.active_threshold
        if len(self._diff_buffer) < size:
            self._diff_buffer.append(difference)
        else:
            threshold = threshold_from_mean_difference(float(np.mean(self._diff_buffer)))
            self._diff_buffer.pop(0)
            self._diff_buffer.append(difference)
        return threshold

    def step_frequency(self) -> float:
        """Instantaneous step frequency (Hz) from the last two peaks, 0 if unknown."""
        if self._time_of_current_peak is None or self._time_of_last_peak is None:
            return 0.0
        interval = self._time_of_current_peak - self._time_of_last_peak
        if interval <= 0:
            return 0.0
        return 1000.0 / interval

    def _analyze_walking_state(self, now_ms: int) -> None:
        cfg = self.config
        if len(self._recent_magnitudes) < cfg.state_min_samples:
            return
        if (
            self._last_state_update_ms is not None
            and now_ms - self._last_state_update_ms < cfg.state_update_interval_ms
        ):
            return

        std = float(np.std(np.fromiter(self._recent_magnitudes, dtype=float)))
        frequency = self.step_frequency()

        if std < cfg.still_std:
            new_state = WalkingState.STILL
        elif frequency > cfg.running_frequency_hz or std > cfg.running_std:
            new_state = WalkingState.RUNNING
        else:
            new_state = WalkingState.WALKING

        if new_state != self.walking_state:
            self.walking_state = new_state
            if self.on_walking_state is not None:
                self.on_walking_state(new_state)

        self._last_state_update_ms = now_ms


@dataclass(frozen=True)
class StepLengthConfig:
    """
    Parameters of the dynamic step-length model.

    Attributes:
        stride_ratio: Static step length as a fraction of user height.
        normal_accel: Acceleration magnitude of normal walking (m/s²).
        accel_factor_range: Clamp range of the acceleration factor.
        normal_frequency_hz: Nominal walking cadence (steps/s).
        step_window: Number of recent step times used for cadence.
        max_change_ratio: Largest relative change between two outputs.
        calibration_range: Clamp range of the distance calibration factor.
    """

    stride_ratio: float = 0.41
    normal_accel: float = 10.0
    accel_factor_range: tuple = (0.8, 1.2)
    normal_frequency_hz: float = 2.0
    step_window: int = 5
    max_change_ratio: float = 0.15
    calibration_range: tuple = (0.7, 1.3)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class StepLengthEstimator:
    """
    Dynamic per-step length estimator.

    Model:
        base        = height * stride_ratio
        accel       = clamp(|a| / 10, 0.8, 1.2)
        cadence     = piecewise factor of the recent step frequency f:
                        f < 2 Hz        : 0.85 + 0.15 * f / 2
                        2 Hz <= f < 3 Hz: 1.0  + 0.2  * (f - 2) / 2
                        f >= 3 Hz       : 1.2  - 0.1  * (f - 3) / 2
        raw         = base * accel * cadence
        smoothed    = raw limited to +/-15% of the previous output
        calibrated  = smoothed * calibration_factor
        output      = clamp(calibrated, 0.4 m, 1.0 m)

    Args:
        user_height: Walker height in metres (clamped to [0.5, 2.5]).
        config: Model parameters.
    """

    def __init__(self, user_height: float = 1.7, config: Optional[StepLengthConfig] = None):
        self.config = config or StepLengthConfig()
        self._user_height = 1.7
        self.user_height = user_height
        self.calibration_factor = 1.0
        self.is_calibrated = False
        self.reset()

    @property
    def user_height(self) -> float:
        return self._user_height

    @user_height.setter
    def user_height(self, height: float) -> None:
        clamped = _clamp(height, MIN_USER_HEIGHT, MAX_USER_HEIGHT)
        if clamped != height:
            warnings.warn(
                f"User height {height} m outside [{MIN_USER_HEIGHT}, {MAX_USER_HEIGHT}] m, "
                f"using {clamped} m",
                UserWarning,
                stacklevel=2,
            )
        self._user_height = clamped

    def reset(self) -> None:
        """Forget cadence history and smoothing memory; calibration is kept."""
        self._step_times: Deque[int] = deque(maxlen=self.config.step_window)
        self.last_step_length = DEFAULT_STEP_LENGTH

    def step_frequency(self) -> float:
        """Cadence in steps/s over the recorded step times, 0 if unknown."""
        if len(self._step_times) < 2:
            return 0.0
        span_ms = self._step_times[-1] - self._step_times[0]
        if span_ms <= 0:
            return 0.0
        return (len(self._step_times) - 1) * 1000.0 / span_ms

    def frequency_factor(self, frequency_hz: float) -> float:
        """Cadence factor of the step-length model."""
        if frequency_hz <= 0:
            return 1.0
        nominal = self.config.normal_frequency_hz
        if frequency_hz < nominal:
            return 0.85 + 0.15 * (frequency_hz / nominal)
        elif frequency_hz < nominal * 1.5:
            return 1.0 + 0.2 * ((frequency_hz - nominal) / nominal)
        # Running: strides shorten as cadence keeps rising
        return 1.2 - 0.1 * ((frequency_hz - nominal * 1.5) / nominal)

    def accel_factor(self, accel_magnitude: float) -> float:
        low, high = self.config.accel_factor_range
        return _clamp(accel_magnitude / self.config.normal_accel, low, high)

    def estimate(self, accel_magnitude: float, timestamp_ms: int) -> float:
        """
        Estimate the length of the step that just completed.

        Args:
            accel_magnitude: Acceleration magnitude at detection (m/s²).
            timestamp_ms: Time of the detected step in milliseconds.

        Returns:
            Step length in metres, within [0.4, 1.0].
        """
        self._step_times.append(timestamp_ms)

        base = self._user_height * self.config.stride_ratio
        raw = (
            base
            * self.accel_factor(accel_magnitude)
            * self.frequency_factor(self.step_frequency())
        )

        max_change = self.last_step_length * self.config.max_change_ratio
        delta = raw - self.last_step_length
        if abs(delta) > max_change:
            raw = self.last_step_length + (max_change if delta > 0 else -max_change)

        if self.is_calibrated:
            raw *= self.calibration_factor

        self.last_step_length = _clamp(raw, MIN_STEP_LENGTH, MAX_STEP_LENGTH)
        return self.last_step_length

    def calibrate(self, actual_distance: float, step_count: int) -> None:
        """
        Calibrate against a walk of known length.

        Args:
            actual_distance: Distance actually walked (m).
            step_count: Steps detected over that distance.
        """
        if step_count <= 0:
            warnings.warn(
                f"Calibration ignored: step_count must be positive, got {step_count}",
                UserWarning,
                stacklevel=2,
            )
            return
        measured = actual_distance / step_count
        low, high = self.config.calibration_range
        self.calibration_factor = _clamp(measured / self.last_step_length, low, high)
        self.is_calibrated = True


def pdr_step_update(p_prev_xy: np.ndarray, step_len: float, heading_deg: float) -> np.ndarray:
    """
    Update a local East-North position with one step.

        p_k = p_{k-1} + L * [sin(ψ), cos(ψ)]

    Args:
        p_prev_xy: Previous position [x=East, y=North] in metres, shape (2,).
        step_len: Step length in metres (non-negative).
        heading_deg: Compass heading in degrees (0 = North, 90 = East).

    Returns:
        New position, shape (2,).

    Example:
        >>> pdr_step_update(np.zeros(2), 0.7, 90.0).round(6)
        array([0.7, 0. ])
    """
    p_prev_xy = np.asarray(p_prev_xy, dtype=float)
    if p_prev_xy.shape != (2,):
        raise ValueError(f"p_prev_xy must have shape (2,), got {p_prev_xy.shape}")
    if step_len < 0:
        raise ValueError(f"step_len must be non-negative, got {step_len}")

    psi = np.deg2rad(heading_deg)
    return p_prev_xy + step_len * np.array([np.sin(psi), np.cos(psi)])
