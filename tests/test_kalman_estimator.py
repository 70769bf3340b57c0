"""
Unit tests for the constant-velocity Kalman estimator.

Tests cover:
- Initialization on the first fix
- Static and moving convergence
- Covariance symmetry and non-negative diagonal
- Accuracy clamping and default accuracy
- Reinitialization on time discontinuities
- Singular innovation covariance handling
"""

import math

import numpy as np
import pytest

from anchor_core.proto import RawFix
from anchor_core.localization.kalman_estimator import KalmanEstimator, KalmanConfig


# =============================================================================
# Test Initialization
# =============================================================================


class TestInitialization:
    """Tests for filter start-up."""

    def test_uninitialized_state(self):
        """Test new estimator has no state."""
        estimator = KalmanEstimator()

        assert not estimator.is_initialized()
        assert estimator.state is None
        assert estimator.origin is None
        assert estimator.predicted_accuracy() == math.inf
        assert estimator.estimated_speed() == 0.0

    def test_first_fix_passthrough(self, fix_factory):
        """Test first fix is returned at its own position with zero speed."""
        estimator = KalmanEstimator()
        fix = fix_factory(north_m=3.0, east_m=-2.0, t_ms=1000, accuracy_m=6.0)

        out = estimator.filter(fix, fix.accuracy_m)

        assert out.latitude == fix.latitude
        assert out.longitude == fix.longitude
        assert out.accuracy_m == pytest.approx(6.0)
        assert out.speed_mps == 0.0
        assert out.timestamp_ms == 1000
        assert estimator.is_initialized()
        assert estimator.update_count == 0

    def test_first_fix_sets_origin(self, fix_factory):
        """Test tangent plane origin is the first fix."""
        estimator = KalmanEstimator()
        fix = fix_factory(north_m=10.0, t_ms=0)

        estimator.filter(fix)

        lat, lon = estimator.origin
        assert lat == pytest.approx(fix.latitude)
        assert lon == pytest.approx(fix.longitude)

    def test_initial_covariance(self, fix_factory):
        """Test P = diag(acc², acc², 25, 25) after the first fix."""
        estimator = KalmanEstimator()
        estimator.filter(fix_factory(accuracy_m=4.0))

        expected = np.diag([16.0, 16.0, 25.0, 25.0])
        np.testing.assert_allclose(estimator.covariance, expected)
        np.testing.assert_allclose(estimator.state, np.zeros(4))

    def test_altitude_carried_through(self, fix_factory):
        """Test altitude of the fix appears on the output."""
        estimator = KalmanEstimator()
        estimator.filter(fix_factory(t_ms=0, altitude_m=3.0))

        out = estimator.filter(fix_factory(t_ms=1000, altitude_m=3.5))

        assert out.altitude_m == 3.5


# =============================================================================
# Test Convergence
# =============================================================================


class TestConvergence:
    """Tests for filter behaviour over several fixes."""

    def test_stationary_pair(self):
        """Test two identical fixes 2 s apart give accuracy <= 5 m and zero speed."""
        estimator = KalmanEstimator()
        first = RawFix(latitude=52.0, longitude=8.0, timestamp_ms=0, accuracy_m=5.0)
        second = RawFix(latitude=52.0, longitude=8.0, timestamp_ms=2000, accuracy_m=5.0)

        estimator.filter(first, first.accuracy_m)
        out = estimator.filter(second, second.accuracy_m)

        assert out.accuracy_m <= 5.0
        assert out.speed_mps == pytest.approx(0.0, abs=1e-9)
        assert out.latitude == pytest.approx(52.0, abs=1e-9)
        assert out.longitude == pytest.approx(8.0, abs=1e-9)
        assert estimator.update_count == 1

    def test_repeated_static_fix(self, fix_factory):
        """Test five stationary updates 1 s apart settle at rest."""
        estimator = KalmanEstimator()

        for i in range(6):
            out = estimator.filter(fix_factory(t_ms=i * 1000, accuracy_m=5.0))

        assert estimator.update_count == 5
        assert out.speed_mps < 0.5
        assert estimator.predicted_accuracy() <= 5.0

    def test_static_jitter_converges(self, fix_factory):
        """Test a stationary receiver with jitter settles below 0.5 m/s."""
        estimator = KalmanEstimator()

        for i in range(60):
            sign = 1.0 if i % 2 == 0 else -1.0
            fix = fix_factory(north_m=0.5 * sign, east_m=-0.3 * sign, t_ms=i * 1000, accuracy_m=5.0)
            out = estimator.filter(fix, fix.accuracy_m)

        assert out.speed_mps < 0.5
        assert out.accuracy_m < 5.0

    def test_moving_target_speed(self, fix_factory):
        """Test speed estimate converges to a constant 2 m/s track."""
        estimator = KalmanEstimator()

        for i in range(60):
            fix = fix_factory(north_m=2.0 * i, t_ms=i * 1000, accuracy_m=5.0)
            out = estimator.filter(fix, fix.accuracy_m)

        assert out.speed_mps == pytest.approx(2.0, abs=0.3)
        assert estimator.get_statistics().estimated_speed_mps == pytest.approx(2.0, abs=0.3)

    def test_covariance_symmetric_non_negative(self, fix_factory):
        """Test P stays symmetric with non-negative diagonal."""
        estimator = KalmanEstimator()
        rng = np.random.RandomState(7)

        for i in range(100):
            fix = fix_factory(
                north_m=float(rng.normal(0.0, 3.0)),
                east_m=float(rng.normal(0.0, 3.0)),
                t_ms=i * 1000 + int(rng.randint(0, 500)),
                accuracy_m=float(rng.uniform(0.5, 40.0)),
            )
            estimator.filter(fix, fix.accuracy_m)

            P = estimator.covariance
            np.testing.assert_allclose(P, P.T, atol=1e-9)
            assert np.all(np.diag(P) >= 0.0)

    def test_accuracy_improvement_tracked(self, fix_factory):
        """Test average accuracy improvement is positive after updates."""
        estimator = KalmanEstimator()

        for i in range(5):
            estimator.filter(fix_factory(t_ms=i * 1000, accuracy_m=10.0))

        stats = estimator.get_statistics()
        assert stats.update_count == 4
        assert stats.average_accuracy_improvement_m > 0.0
        assert stats.current_accuracy_m < 10.0


# =============================================================================
# Test Accuracy Handling
# =============================================================================


class TestAccuracyHandling:
    """Tests for accuracy clamping and defaults."""

    def test_clamp_low(self, fix_factory):
        """Test accuracy below 1 m is clamped to 1 m."""
        estimator = KalmanEstimator()

        out = estimator.filter(fix_factory(accuracy_m=0.2), 0.2)

        assert out.accuracy_m == 1.0

    def test_clamp_high(self, fix_factory):
        """Test accuracy above 100 m is clamped to 100 m."""
        estimator = KalmanEstimator()

        out = estimator.filter(fix_factory(accuracy_m=500.0), 500.0)

        assert out.accuracy_m == 100.0

    def test_missing_accuracy_uses_default(self, fix_factory):
        """Test fix without accuracy is treated as 10 m."""
        estimator = KalmanEstimator()

        out = estimator.filter(fix_factory(accuracy_m=None))

        assert out.accuracy_m == 10.0

    def test_config_clamp(self):
        """Test config clamp helper."""
        config = KalmanConfig(min_accuracy_m=2.0, max_accuracy_m=20.0)

        assert config.clamp_accuracy(1.0) == 2.0
        assert config.clamp_accuracy(7.0) == 7.0
        assert config.clamp_accuracy(30.0) == 20.0

    def test_invalid_config(self):
        """Test inverted clamp is rejected."""
        with pytest.raises(ValueError):
            KalmanConfig(min_accuracy_m=10.0, max_accuracy_m=1.0)


# =============================================================================
# Test Discontinuities
# =============================================================================


class TestDiscontinuities:
    """Tests for reinitialization and reset."""

    def test_long_gap_reinitializes(self, fix_factory, metrics):
        """Test 40 s gap resets update count and moves the origin."""
        estimator = KalmanEstimator(metrics=metrics)
        estimator.filter(fix_factory(t_ms=0))
        estimator.filter(fix_factory(north_m=1.0, t_ms=1000))
        assert estimator.update_count == 1

        later = fix_factory(north_m=20.0, east_m=5.0, t_ms=41000)
        out = estimator.filter(later, later.accuracy_m)

        assert estimator.update_count == 0
        lat, lon = estimator.origin
        assert lat == pytest.approx(later.latitude)
        assert lon == pytest.approx(later.longitude)
        assert out.latitude == later.latitude
        assert out.speed_mps == 0.0
        assert estimator.get_statistics().reinitializations == 1
        assert metrics.get_counter('kalman_reinitializations') == 1

    @pytest.mark.parametrize("next_t_ms", [1000, 500])
    def test_non_increasing_time_reinitializes(self, fix_factory, next_t_ms):
        """Test duplicate or backwards timestamps reinitialize."""
        estimator = KalmanEstimator()
        estimator.filter(fix_factory(t_ms=0))
        estimator.filter(fix_factory(t_ms=1000))

        estimator.filter(fix_factory(north_m=2.0, t_ms=next_t_ms))

        assert estimator.update_count == 0
        assert estimator.get_statistics().reinitializations == 1

    def test_gap_at_limit_is_filtered(self, fix_factory):
        """Test a gap of exactly 30 s still runs predict/update."""
        estimator = KalmanEstimator()
        estimator.filter(fix_factory(t_ms=0))

        estimator.filter(fix_factory(t_ms=30000))

        assert estimator.update_count == 1

    def test_reset(self, fix_factory):
        """Test reset returns to the uninitialized state."""
        estimator = KalmanEstimator()
        estimator.filter(fix_factory(t_ms=0))
        estimator.filter(fix_factory(t_ms=1000))

        estimator.reset()

        assert not estimator.is_initialized()
        assert estimator.origin is None
        assert estimator.update_count == 0

    def test_singular_update_skipped(self, fix_factory, metrics):
        """Test update is skipped when det(S) is below threshold."""
        config = KalmanConfig(singular_det_threshold=1e12)
        estimator = KalmanEstimator(config, metrics)
        estimator.filter(fix_factory(t_ms=0))

        out = estimator.filter(fix_factory(north_m=4.0, t_ms=1000))

        # Prediction only: state stays at rest at the origin
        assert out.latitude == pytest.approx(estimator.origin[0], abs=1e-12)
        assert estimator.get_statistics().skipped_updates == 1
        assert metrics.get_counter('kalman_singular_updates') == 1
