"""
Unit tests for the StepDetector in walkarea/sensors/pdr.py.

Tests cover:
    - Step counting on a synthetic 2 Hz walking signal
    - Accepted step intervals
    - Interval and threshold rules on hand-placed peaks
    - Adaptive threshold table and adaptation
    - Walking-state classification (STILL / WALKING / RUNNING)
    - Reset and configuration validation

Run with: pytest tests/walkarea/sensors/test_step_detector.py -v
"""

import unittest
from typing import List, Tuple

import numpy as np
import pytest

from walkarea.sensors import (
    StepDetector,
    StepDetectorConfig,
    Vector3,
    WalkingState,
    threshold_from_mean_difference,
)


def walking_signal(
    amplitude: float = 3.0,
    frequency_hz: float = 2.0,
    duration_s: float = 10.0,
    sample_rate_hz: float = 50.0,
    mean: float = 9.8,
) -> List[Tuple[int, float]]:
    """(timestamp_ms, |a|) pairs of a sinusoidal walking magnitude."""
    n = int(round(duration_s * sample_rate_hz))
    dt_ms = 1000.0 / sample_rate_hz
    return [
        (int(round(k * dt_ms)), mean + amplitude * np.sin(2.0 * np.pi * frequency_hz * k * dt_ms / 1000.0))
        for k in range(n)
    ]


def pulse_signal(
    peaks: List[Tuple[int, float]],
    end_ms: int,
    base: float = 7.0,
) -> List[Tuple[int, float]]:
    """
    (timestamp_ms, |a|) pairs at 50 Hz: a flat baseline with one sharp peak
    per (peak_ms, value). The detector sees each peak one sample (20 ms)
    after it. Peak times must be multiples of 20 ms from 60 ms on.
    """
    values = {}
    for peak_ms, value in peaks:
        values[peak_ms - 20] = (base + value) / 2.0
        values[peak_ms] = value
    # A short dip first, so the baseline registers as a valley
    signal = [(0, base + 1.0)]
    signal.extend((ts, values.get(ts, base)) for ts in range(20, end_ms, 20))
    return signal


def run_detector(detector: StepDetector, signal: List[Tuple[int, float]]) -> List[int]:
    """Feed a magnitude signal along z and return the step timestamps."""
    step_times = []
    for ts, magnitude in signal:
        if detector.update(Vector3(0.0, 0.0, magnitude), ts):
            step_times.append(ts)
    return step_times


class TestStepCounting(unittest.TestCase):
    """Test steps on a 2 Hz sinusoid."""

    def test_two_hz_for_ten_seconds(self) -> None:
        """Twenty periods give 20 ± 1 steps (the first peak only seeds)."""
        detector = StepDetector()
        step_times = run_detector(detector, walking_signal())

        assert 19 <= detector.step_count <= 21
        assert len(step_times) == detector.step_count

    def test_step_intervals_within_bounds(self) -> None:
        detector = StepDetector()
        step_times = run_detector(detector, walking_signal())

        intervals = np.diff(step_times)
        assert np.all(intervals >= 200)
        assert np.all(intervals <= 2000)
        np.testing.assert_allclose(intervals, 500, atol=20)

    def test_on_step_callback(self) -> None:
        counts = []
        detector = StepDetector(on_step=counts.append)
        run_detector(detector, walking_signal(duration_s=3.0))

        assert counts == list(range(1, detector.step_count + 1))
        assert detector.step_count > 0

    def test_constant_signal_no_steps(self) -> None:
        detector = StepDetector()
        signal = [(k * 20, 9.81) for k in range(500)]
        assert run_detector(detector, signal) == []
        assert detector.step_count == 0

    def test_peaks_outside_band_ignored(self) -> None:
        """Peaks above the band never register."""
        detector = StepDetector()
        run_detector(detector, walking_signal(mean=20.0))
        assert detector.step_count == 0

    def test_narrow_band_rejects_low_peaks(self) -> None:
        """Peaks near 10.8 m/s² count with the default band only."""
        signal = walking_signal(mean=8.8, amplitude=2.0)

        default = StepDetector()
        run_detector(default, signal)
        narrow = StepDetector(StepDetectorConfig.narrow_band())
        run_detector(narrow, signal)

        assert default.step_count >= 18
        assert narrow.step_count == 0

    def test_last_acceleration_recorded(self) -> None:
        detector = StepDetector()
        detector.update(Vector3(0.1, 0.2, 9.8), 0)
        assert detector.last_acceleration == Vector3(0.1, 0.2, 9.8)


class TestStepAcceptance(unittest.TestCase):
    """Test the interval and threshold rules on hand-placed peaks."""

    def test_peak_too_soon_after_step_rejected(self) -> None:
        signal = pulse_signal([(100, 12.0), (600, 12.0), (700, 12.0), (1200, 12.0)], 1400)
        step_times = run_detector(StepDetector(), signal)

        # 720 ms comes 100 ms after the step at 620 ms
        assert step_times == [620, 1220]

    def test_long_pause_rejected_then_recovers(self) -> None:
        signal = pulse_signal([(100, 12.0), (600, 12.0), (3100, 12.0), (3600, 12.0)], 3800)
        detector = StepDetector()
        step_times = run_detector(detector, signal)

        # 3120 ms is 2500 ms after the last step; it is not counted but
        # restarts the interval for the peak at 3620 ms.
        assert step_times == [620, 3620]
        assert detector.step_count == 2

    def test_weak_peak_feeds_threshold_track_only(self) -> None:
        strong = [(100, 12.0), (600, 12.0), (1260, 12.0)]
        weak = (1100, 9.8)

        # Peak-valley 1.8 m/s²: above the 1.7 base, below the 2.0 threshold
        detector = StepDetector()
        step_times = run_detector(detector, pulse_signal(sorted(strong + [weak]), 1400, base=8.0))
        assert step_times == [620]
        assert detector._diff_buffer[-1] == pytest.approx(1.8)
        assert detector.active_threshold == 2.0

        # Without the weak peak the last one is 660 ms after the step
        step_times = run_detector(StepDetector(), pulse_signal(strong, 1400, base=8.0))
        assert step_times == [620, 1280]


class TestAdaptiveThreshold(unittest.TestCase):
    """Test the peak-valley threshold."""

    def test_threshold_table(self) -> None:
        assert threshold_from_mean_difference(9.0) == 4.3
        assert threshold_from_mean_difference(8.0) == 4.3
        assert threshold_from_mean_difference(7.5) == 3.3
        assert threshold_from_mean_difference(5.0) == 2.3
        assert threshold_from_mean_difference(3.5) == 2.0
        assert threshold_from_mean_difference(1.0) == 1.7

    def test_initial_threshold(self) -> None:
        assert StepDetector().active_threshold == 2.0

    def test_threshold_adapts_to_step_strength(self) -> None:
        """A peak-valley difference near 6 settles the threshold at 2.3."""
        detector = StepDetector()
        run_detector(detector, walking_signal())
        assert detector.active_threshold == 2.3


class TestWalkingState(unittest.TestCase):
    """Test walking-state classification."""

    def test_walking(self) -> None:
        states = []
        detector = StepDetector(on_walking_state=states.append)
        run_detector(detector, walking_signal())

        assert detector.walking_state is WalkingState.WALKING
        assert states[-1] is WalkingState.WALKING
        assert detector.step_frequency() == pytest.approx(2.0)

    def test_still(self) -> None:
        states = []
        detector = StepDetector(on_walking_state=states.append)
        rng = np.random.default_rng(1)
        signal = [(k * 20, 9.81 + rng.normal(0.0, 0.05)) for k in range(200)]
        run_detector(detector, signal)

        assert detector.walking_state is WalkingState.STILL
        assert states == []

    def test_running_by_variance(self) -> None:
        detector = StepDetector()
        run_detector(detector, walking_signal(amplitude=8.0))
        assert detector.walking_state is WalkingState.RUNNING

    def test_running_by_step_frequency(self) -> None:
        """Moderate swings at 3.3 steps/s are RUNNING, at 2 steps/s WALKING."""
        fast = StepDetector()
        run_detector(fast, pulse_signal([(t, 12.0) for t in range(100, 3000, 300)], 3100))
        assert fast.step_frequency() == pytest.approx(1000.0 / 300.0)
        assert fast.walking_state is WalkingState.RUNNING
        assert fast.step_count == 9

        slow = StepDetector()
        run_detector(slow, pulse_signal([(t, 12.0) for t in range(100, 3000, 500)], 3100))
        assert slow.step_frequency() == pytest.approx(2.0)
        assert slow.walking_state is WalkingState.WALKING

    def test_needs_minimum_samples(self) -> None:
        detector = StepDetector()
        run_detector(detector, walking_signal(duration_s=0.1))
        assert detector.walking_state is WalkingState.STILL


class TestStepDetectorReset(unittest.TestCase):
    """Test reset and configuration."""

    def test_reset(self) -> None:
        detector = StepDetector()
        run_detector(detector, walking_signal())
        detector.reset()

        assert detector.step_count == 0
        assert detector.active_threshold == 2.0
        assert detector.walking_state is WalkingState.STILL
        assert detector.step_frequency() == 0.0
        assert detector.last_acceleration is None

    def test_reset_replays_identically(self) -> None:
        detector = StepDetector()
        first = run_detector(detector, walking_signal())
        detector.reset()
        second = run_detector(detector, walking_signal())
        assert first == second

    def test_invalid_band(self) -> None:
        with pytest.raises(ValueError, match="peak_min"):
            StepDetectorConfig(peak_min=20.0, peak_max=10.0)

    def test_invalid_intervals(self) -> None:
        with pytest.raises(ValueError, match="step intervals"):
            StepDetectorConfig(min_step_interval_ms=3000, max_step_interval_ms=2000)


if __name__ == "__main__":
    unittest.main()
