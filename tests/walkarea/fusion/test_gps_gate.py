"""
Unit tests for the GPS gate (walkarea/fusion/gating.py).

Run with: pytest tests/walkarea/fusion/test_gps_gate.py -v
"""

import unittest

import pytest

from walkarea.fusion import GateConfig, GateDecision, GpsGate, RawFix


LAT0 = 22.3045
LON0 = 114.1799
# Roughly one metre of latitude in degrees
METRE_LAT = 1.0 / 111195.0


def fix_at(north_m: float = 0.0, timestamp_ms: int = 0, **kwargs) -> RawFix:
    kwargs.setdefault("accuracy_m", 5.0)
    return RawFix(lat=LAT0 + north_m * METRE_LAT, lon=LON0, timestamp_ms=timestamp_ms, **kwargs)


class TestSingleFixChecks(unittest.TestCase):
    """Test thresholds that need no history."""

    def test_first_fix_is_origin(self) -> None:
        gate = GpsGate()
        gated = gate.accept(fix_at(speed_mps=1.2, bearing_deg=45.0, satellites=9))

        assert gated is not None
        assert gated.x == 0.0
        assert gated.y == 0.0
        assert gated.speed_mps == 1.2
        assert gated.bearing_deg == 45.0
        assert gated.satellites == 9
        assert gate.origin == (LAT0, LON0)
        assert gate.last_valid_fix == gated

    def test_low_accuracy_rejected(self) -> None:
        gate = GpsGate()
        assert gate.accept(fix_at(accuracy_m=25.0)) is None
        assert gate.last_rejection is GateDecision.LOW_ACCURACY
        assert gate.origin is None

    def test_accuracy_at_limit_accepted(self) -> None:
        gate = GpsGate()
        assert gate.accept(fix_at(accuracy_m=20.0)) is not None
        assert gate.last_rejection is None

    def test_excessive_speed_rejected(self) -> None:
        gate = GpsGate()
        assert gate.accept(fix_at(speed_mps=12.0)) is None
        assert gate.last_rejection is GateDecision.EXCESSIVE_SPEED

    def test_check_does_not_change_state(self) -> None:
        gate = GpsGate()
        assert gate.check(fix_at()) is GateDecision.ACCEPTED
        assert gate.check(fix_at(accuracy_m=50.0)) is GateDecision.LOW_ACCURACY
        assert gate.origin is None
        assert gate.accepted_count == 0
        assert gate.rejected_count == 0


class TestConsistencyChecks(unittest.TestCase):
    """Test checks against the last accepted fix."""

    def setUp(self) -> None:
        self.gate = GpsGate()
        self.gate.accept(fix_at(0.0, 0))

    def test_jump_within_a_second_rejected(self) -> None:
        assert self.gate.accept(fix_at(22.0, 500)) is None
        assert self.gate.last_rejection is GateDecision.POSITION_JUMP

    def test_implausible_motion_rejected(self) -> None:
        # 33 m in 2 s
        assert self.gate.accept(fix_at(33.0, 2000)) is None
        assert self.gate.last_rejection is GateDecision.IMPLAUSIBLE_MOTION

    def test_walking_fix_accepted_and_projected(self) -> None:
        gated = self.gate.accept(fix_at(5.0, 1000))

        # Seeding leaves the coordinate variance near r, so the second fix
        # moves the estimate about half way.
        p = 1.0 + 1e-5
        p *= 1.0 - p / (p + 1e-3)
        p += 1e-5
        gain = p / (p + 1e-3)

        assert gated is not None
        assert gated.x == pytest.approx(0.0, abs=1e-6)
        assert gated.y == pytest.approx(5.0 * gain, rel=1e-3)
        assert gated.y == pytest.approx(2.51, abs=0.01)
        assert self.gate.accepted_count == 2

    def test_rejection_keeps_last_valid_fix(self) -> None:
        last = self.gate.last_valid_fix
        self.gate.accept(fix_at(40.0, 1000))
        assert self.gate.last_valid_fix is last
        assert self.gate.rejected_count == 1

    def test_acceptance_clears_last_rejection(self) -> None:
        self.gate.accept(fix_at(accuracy_m=30.0, timestamp_ms=500))
        assert self.gate.last_rejection is GateDecision.LOW_ACCURACY
        self.gate.accept(fix_at(1.0, 1000))
        assert self.gate.last_rejection is None


class TestSteadyWalk(unittest.TestCase):
    """Test a walker crossing the gate at 1 Hz."""

    def walk(self, gate: GpsGate, speed_mps: float = 1.5, count: int = 40):
        return [gate.accept(fix_at(speed_mps * k, k * 1000, accuracy_m=3.0)) for k in range(count)]

    def test_every_walking_fix_accepted(self) -> None:
        gate = GpsGate()
        gated = self.walk(gate)

        assert all(g is not None for g in gated)
        assert gate.accepted_count == 40
        assert gate.rejected_count == 0

    def test_default_smoothing_trails_walker(self) -> None:
        gated = self.walk(GpsGate())
        # Steady-state gain near 0.1 leaves the estimate well behind
        assert 1.5 * 39 - gated[-1].y > 5.0

    def test_walking_smoothing_keeps_up(self) -> None:
        gated = self.walk(GpsGate(GateConfig.walking()))
        assert gated[-1].y == pytest.approx(1.5 * 39, abs=0.5)

    def test_raw_jump_from_raw_position(self) -> None:
        gate = GpsGate()
        self.walk(gate, count=20)
        # 12 m beyond the last raw fix half a second later
        assert gate.accept(fix_at(1.5 * 19 + 12.0, 19500)) is None
        assert gate.last_rejection is GateDecision.POSITION_JUMP


class TestSmoothingAndReset(unittest.TestCase):
    """Test coordinate smoothing and reset."""

    def test_smoothing_lags_raw_fix(self) -> None:
        gate = GpsGate(GateConfig(measurement_noise_r=1.0, initial_covariance=1e-3))
        gate.accept(fix_at(0.0, 0))
        gated = gate.accept(fix_at(8.0, 1000))

        assert 0.0 < gated.y < 8.0

    def test_reset(self) -> None:
        gate = GpsGate()
        gate.accept(fix_at(0.0, 0))
        gate.accept(fix_at(accuracy_m=40.0, timestamp_ms=1000))
        gate.reset()

        assert gate.origin is None
        assert gate.last_valid_fix is None
        assert gate.last_rejection is None
        assert gate.accepted_count == 0
        assert gate.rejected_count == 0

        # A far-away fix right after reset becomes the new origin
        gated = gate.accept(fix_at(500.0, 1100))
        assert (gated.x, gated.y) == (0.0, 0.0)

    def test_invalid_latitude(self) -> None:
        with pytest.raises(ValueError, match="Latitude"):
            RawFix(lat=95.0, lon=0.0, accuracy_m=5.0)

    def test_invalid_config(self) -> None:
        with pytest.raises(ValueError, match="max_accuracy_m"):
            GateConfig(max_accuracy_m=0.0)

    def test_walking_preset_keeps_thresholds(self) -> None:
        walking = GateConfig.walking()
        assert walking.process_noise_q == pytest.approx(10.0 * walking.measurement_noise_r)
        assert walking.max_accuracy_m == GateConfig().max_accuracy_m
        assert walking.max_speed_mps == GateConfig().max_speed_mps


if __name__ == "__main__":
    unittest.main()
