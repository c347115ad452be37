"""
Unit tests for LocationFusionFilter (walkarea/fusion/location_fusion.py).

Tests cover:
    - PDR step propagation and covariance growth
    - GPS position, velocity and heading corrections
    - GPS staleness
    - predict/update entry points

Run with: pytest tests/walkarea/fusion/test_location_fusion.py -v
"""

import unittest
import warnings

import numpy as np
import pytest

from walkarea.fusion import FusionConfig, LocationFusionFilter
from walkarea.fusion.location_fusion import HEADING, VX, VY, X, Y


class TestPdrPropagation(unittest.TestCase):
    """Test the PDR step."""

    def test_step_east(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(1.0, 90.0, dt=0.0, timestamp_ms=0)

        np.testing.assert_allclose(kf.position, [1.0, 0.0], atol=1e-12)
        np.testing.assert_array_equal(kf.velocity, [0.0, 0.0])
        assert kf.heading_deg == pytest.approx(90.0)

    def test_covariance_growth(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(0.7, 0.0, dt=0.0, timestamp_ms=0)

        P = np.diag(kf.covariance)
        np.testing.assert_allclose(P, [10.26, 10.26, 1.02, 1.02, 0.6])

    def test_velocity_blend(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(1.0, 0.0, dt=0.5, timestamp_ms=0)

        # 80 % of zero plus 20 % of 2 m/s
        assert kf.state[VY] == pytest.approx(0.4)
        assert kf.state[VX] == pytest.approx(0.0, abs=1e-12)
        assert kf.state[Y] == pytest.approx(1.0)

    def test_velocity_carries_position(self) -> None:
        kf = LocationFusionFilter()
        kf.state[VX] = 1.0
        kf.update_with_pdr(0.0, 0.0, dt=2.0, timestamp_ms=0)
        assert kf.state[X] == pytest.approx(2.0)

    def test_square_walk_returns_home(self) -> None:
        kf = LocationFusionFilter()
        for heading in (0.0, 90.0, 180.0, 270.0):
            for _ in range(10):
                kf.update_with_pdr(0.5, heading, dt=0.0, timestamp_ms=0)
        np.testing.assert_allclose(kf.position, [0.0, 0.0], atol=1e-9)

    def test_invalid_step(self) -> None:
        kf = LocationFusionFilter()
        with pytest.raises(ValueError, match="step_length"):
            kf.update_with_pdr(-0.1, 0.0, dt=0.0)
        with pytest.raises(ValueError, match="dt"):
            kf.update_with_pdr(0.5, 0.0, dt=-1.0)


class TestGpsCorrection(unittest.TestCase):
    """Test the GPS update."""

    def test_position_update(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(10.0, 0.0, accuracy=2.0, speed=0.0, bearing_deg=0.0, timestamp_ms=0)

        k = 10.0 / 14.0
        assert kf.state[X] == pytest.approx(10.0 * k)
        assert kf.state[VX] == pytest.approx(0.1 * 10.0 * k)
        assert kf.state[Y] == 0.0
        assert kf.covariance[X, X] == pytest.approx(10.0 * (1.0 - k))
        assert kf.has_gps_fix

    def test_unknown_accuracy_uses_default_noise(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 15.0, accuracy=0.0, speed=0.0, bearing_deg=0.0, timestamp_ms=0)
        assert kf.state[Y] == pytest.approx(15.0 * 10.0 / 15.0)

    def test_accuracy_shrinks(self) -> None:
        kf = LocationFusionFilter()
        before = kf.accuracy
        for k in range(5):
            kf.update_with_gps(0.0, 0.0, accuracy=3.0, speed=0.0, bearing_deg=0.0, timestamp_ms=k * 1000)
        assert np.all(kf.accuracy < before)

    def test_velocity_and_heading_update(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 0.0, accuracy=1.0, speed=2.0, bearing_deg=90.0, timestamp_ms=0)

        assert kf.state[VX] == pytest.approx(2.0 / 1.1)
        assert kf.state[VY] == pytest.approx(0.0, abs=1e-9)
        assert kf.covariance[VX, VX] == pytest.approx(0.1 / 1.1)
        # Heading gain 0.5 / (0.5 + 0.1) toward 90°
        assert kf.heading_deg == pytest.approx(75.0)

    def test_slow_fix_updates_velocity_only(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 0.0, accuracy=1.0, speed=0.8, bearing_deg=0.0, timestamp_ms=0)

        assert kf.state[VY] == pytest.approx(0.8 / 1.1)
        assert kf.state[HEADING] == 0.0

    def test_stationary_fix_skips_velocity(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 0.0, accuracy=1.0, speed=0.3, bearing_deg=0.0, timestamp_ms=0)
        np.testing.assert_array_equal(kf.velocity, [0.0, 0.0])

    def test_heading_update_across_north(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(0.0, 350.0, dt=0.0, timestamp_ms=0)
        kf.update_with_gps(0.0, 0.0, accuracy=1.0, speed=2.0, bearing_deg=10.0, timestamp_ms=0)

        # Gain 0.6 / 0.7 on a +20° residual
        assert kf.heading_deg == pytest.approx(350.0 + 20.0 * 6.0 / 7.0 - 360.0)


class TestGpsStaleness(unittest.TestCase):
    """Test GPS timeout handling."""

    def test_fresh_fix_no_warning(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 0.0, 5.0, 0.0, 0.0, timestamp_ms=0)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            kf.update_with_pdr(0.7, 0.0, dt=0.0, timestamp_ms=5000)
        assert kf.has_gps_fix

    def test_stale_fix_warns(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_gps(0.0, 0.0, 5.0, 0.0, 0.0, timestamp_ms=0)
        with pytest.warns(RuntimeWarning, match="No GPS fix"):
            kf.update_with_pdr(0.7, 0.0, dt=0.0, timestamp_ms=10001)
        assert not kf.has_gps_fix

    def test_custom_timeout(self) -> None:
        kf = LocationFusionFilter(FusionConfig(gps_timeout_s=2.0))
        kf.update_with_gps(0.0, 0.0, 5.0, 0.0, 0.0, timestamp_ms=0)
        with pytest.warns(RuntimeWarning):
            kf.update_with_pdr(0.7, 0.0, dt=0.0, timestamp_ms=2500)


class TestFilterInterface(unittest.TestCase):
    """Test predict/update, reset and snapshots."""

    def test_predict_delegates_to_pdr(self) -> None:
        a = LocationFusionFilter()
        b = LocationFusionFilter()
        a.predict(np.array([0.8, 45.0]), dt=0.5)
        b.update_with_pdr(0.8, 45.0, dt=0.5)
        np.testing.assert_allclose(a.state, b.state)
        np.testing.assert_allclose(a.covariance, b.covariance)

    def test_update_delegates_to_gps(self) -> None:
        a = LocationFusionFilter()
        b = LocationFusionFilter()
        a.update([3.0, 4.0, 2.0, 1.5, 30.0])
        b.update_with_gps(3.0, 4.0, 2.0, 1.5, 30.0)
        np.testing.assert_allclose(a.state, b.state)

    def test_entry_points_forward_timestamps(self) -> None:
        kf = LocationFusionFilter()
        kf.update([0.0, 0.0, 5.0, 0.0, 0.0], timestamp_ms=0)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            kf.predict(np.array([0.7, 0.0]), timestamp_ms=9000)
        assert kf.has_gps_fix

        with pytest.warns(RuntimeWarning, match="No GPS fix"):
            kf.predict(np.array([0.7, 0.0]), timestamp_ms=10500)
        assert not kf.has_gps_fix

    def test_bad_shapes(self) -> None:
        kf = LocationFusionFilter()
        with pytest.raises(ValueError, match="u"):
            kf.predict()
        with pytest.raises(ValueError, match="shape"):
            kf.predict(np.zeros(3))
        with pytest.raises(ValueError, match="shape"):
            kf.update([1.0, 2.0])

    def test_reset(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(1.0, 45.0, dt=0.5, timestamp_ms=0)
        kf.update_with_gps(1.0, 1.0, 3.0, 1.5, 45.0, timestamp_ms=0)
        kf.reset()

        np.testing.assert_array_equal(kf.state, np.zeros(5))
        np.testing.assert_array_equal(np.diag(kf.covariance), [10.0, 10.0, 1.0, 1.0, 0.5])
        assert not kf.has_gps_fix

    def test_snapshot_is_a_copy(self) -> None:
        kf = LocationFusionFilter()
        kf.update_with_pdr(1.0, 0.0, dt=0.0, timestamp_ms=0)
        snapshot = kf.fusion_state
        kf.update_with_pdr(1.0, 0.0, dt=0.0, timestamp_ms=0)

        assert snapshot.y == pytest.approx(1.0)
        assert snapshot.covariance[Y, Y] == pytest.approx(10.26)
        assert kf.fusion_state.y == pytest.approx(2.0)

    def test_get_state_returns_copies(self) -> None:
        kf = LocationFusionFilter()
        state, covariance = kf.get_state()
        state[X] = 100.0
        covariance[X, X] = 0.0

        assert kf.state[X] == 0.0
        assert kf.covariance[X, X] == 10.0

    def test_invalid_config(self) -> None:
        with pytest.raises(ValueError, match="initial_covariance"):
            FusionConfig(initial_covariance=(1.0, 1.0, 1.0))


if __name__ == "__main__":
    unittest.main()
