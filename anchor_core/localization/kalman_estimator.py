"""
Kalman Estimator (Constant-Velocity, Local Tangent Plane).

4-state constant-velocity Kalman filter smoothing raw GNSS fixes in a
local (north, east) frame anchored at the first fix after construction or
reset.

State: [N, E, vN, vE] (meters, m/s)
Measurement: [N, E] projected from the fix's latitude / longitude
"""

from typing import Optional, Tuple
from dataclasses import dataclass
import math
import logging

import numpy as np

from anchor_core.proto.location_fix import RawFix, FilteredLocation, passthrough_location
from anchor_core.localization.tangent_plane import LocalTangentPlane
from anchor_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)

# State vector indices
N, E, VN, VE = 0, 1, 2, 3


@dataclass
class KalmanConfig:
    """
    Configuration for the Kalman estimator.

    Attributes:
        accel_noise_density: Acceleration noise spectral density q (m²/s³)
        initial_vel_variance: Initial velocity variance (m²/s², 25 = ±5 m/s)
        min_accuracy_m: Lower clamp for measurement accuracy (m)
        max_accuracy_m: Upper clamp for measurement accuracy (m)
        max_time_gap_s: Gap beyond which the filter reinitializes (s)
        singular_det_threshold: |det(S)| below this skips the update
        default_accuracy_m: Accuracy assumed when a fix reports none (m)
    """

    accel_noise_density: float = 1.0
    initial_vel_variance: float = 25.0
    min_accuracy_m: float = 1.0
    max_accuracy_m: float = 100.0
    max_time_gap_s: float = 30.0
    singular_det_threshold: float = 1e-12
    default_accuracy_m: float = 10.0

    def __post_init__(self):
        """Validate configuration."""
        if self.accel_noise_density < 0:
            raise ValueError("Acceleration noise density cannot be negative")
        if self.initial_vel_variance <= 0:
            raise ValueError("Initial velocity variance must be positive")
        if not 0 < self.min_accuracy_m <= self.max_accuracy_m:
            raise ValueError("Accuracy clamp must satisfy 0 < min <= max")
        if self.max_time_gap_s <= 0:
            raise ValueError("Max time gap must be positive")
        if self.default_accuracy_m <= 0:
            raise ValueError("Default accuracy must be positive")

    def clamp_accuracy(self, accuracy_m: float) -> float:
        """Clamp accuracy into [min_accuracy_m, max_accuracy_m]."""
        return max(self.min_accuracy_m, min(accuracy_m, self.max_accuracy_m))


@dataclass
class FilterStatistics:
    """Diagnostics snapshot for the Kalman estimator."""

    is_initialized: bool
    update_count: int
    average_accuracy_improvement_m: float
    current_accuracy_m: float
    estimated_speed_mps: float
    skipped_updates: int
    reinitializations: int

    def to_dict(self) -> dict:
        return {
            'is_initialized': self.is_initialized,
            'update_count': self.update_count,
            'average_accuracy_improvement_m': self.average_accuracy_improvement_m,
            'current_accuracy_m': self.current_accuracy_m,
            'estimated_speed_mps': self.estimated_speed_mps,
            'skipped_updates': self.skipped_updates,
            'reinitializations': self.reinitializations,
        }


class KalmanEstimator:
    """
    Constant-velocity Kalman filter over GNSS fixes.

    Usage:
        estimator = KalmanEstimator(config)

        filtered = estimator.filter(fix, fix.accuracy_m)
        print(filtered.latitude, filtered.longitude, filtered.accuracy_m)

        estimator.predicted_accuracy()   # m
        estimator.estimated_speed()      # m/s

    Features:
    - Local tangent plane keeps the model linear
    - Closed-form covariance propagation (no generic 4x4 products)
    - Closed-form 2x2 innovation inverse, singular S skipped
    - Covariance re-symmetrized after every predict/update
    - Reinitializes on time discontinuities
    """

    def __init__(
        self,
        config: Optional[KalmanConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize estimator (uninitialized until the first fix).

        Args:
            config: Filter configuration (uses defaults if None)
            metrics: Collector for counters (private collector if None)
        """
        self.config = config or KalmanConfig()
        self.metrics = metrics or MetricsCollector()

        self._plane = LocalTangentPlane()

        # State: [N, E, vN, vE]
        self._state: Optional[np.ndarray] = None

        # Covariance: 4x4
        self._covariance: Optional[np.ndarray] = None

        self._last_update_ms: Optional[int] = None

        self.update_count = 0
        self._total_accuracy_improvement = 0.0
        self._skipped_updates = 0
        self._reinitializations = 0

    def is_initialized(self) -> bool:
        """Check if filter has been initialized."""
        return self._state is not None

    @property
    def origin(self) -> Optional[Tuple[float, float]]:
        """Tangent plane origin (lat, lon) in degrees, or None."""
        return self._plane.origin

    @property
    def state(self) -> Optional[np.ndarray]:
        """Copy of the state vector [N, E, vN, vE]."""
        return None if self._state is None else self._state.copy()

    @property
    def covariance(self) -> Optional[np.ndarray]:
        """Copy of the 4x4 covariance matrix."""
        return None if self._covariance is None else self._covariance.copy()

    def filter(self, fix: RawFix, accuracy_m: Optional[float] = None) -> FilteredLocation:
        """
        Run one predict/update cycle for a fix.

        Args:
            fix: Accepted raw fix
            accuracy_m: Measurement accuracy (m); the fix's own accuracy,
                then config.default_accuracy_m, is used when None

        Returns:
            FilteredLocation with smoothed position, accuracy and speed

        Notes:
            - First fix (or first after reset / time gap) is returned at
              its own position with clamped accuracy and zero speed
        """
        if accuracy_m is None:
            accuracy_m = fix.accuracy_m if fix.has_accuracy else self.config.default_accuracy_m

        accuracy = self.config.clamp_accuracy(accuracy_m)

        if not self.is_initialized():
            self._initialize(fix, accuracy)
            return passthrough_location(fix, accuracy)

        dt = (fix.timestamp_ms - self._last_update_ms) / 1000.0

        if dt <= 0 or dt > self.config.max_time_gap_s:
            logger.warning(f"Time discontinuity (dt={dt:.1f}s), reinitializing filter")
            self._reinitializations += 1
            self.metrics.increment('kalman_reinitializations')
            self._initialize(fix, accuracy)
            return passthrough_location(fix, accuracy)

        self._predict(dt)
        self._update(fix, accuracy)

        self._last_update_ms = fix.timestamp_ms
        self.update_count += 1
        self.metrics.increment('kalman_updates')

        filtered_accuracy = self.predicted_accuracy()
        if accuracy > filtered_accuracy:
            self._total_accuracy_improvement += accuracy - filtered_accuracy

        lat, lon = self._plane.to_lat_lon(float(self._state[N]), float(self._state[E]))

        return FilteredLocation(
            latitude=lat,
            longitude=lon,
            accuracy_m=filtered_accuracy,
            speed_mps=self.estimated_speed(),
            timestamp_ms=fix.timestamp_ms,
            altitude_m=fix.altitude_m,
        )

    def predicted_accuracy(self) -> float:
        """Position uncertainty (m): sqrt of the larger position variance."""
        if not self.is_initialized():
            return math.inf

        return math.sqrt(max(self._covariance[N, N], self._covariance[E, E], 0.0))

    def estimated_speed(self) -> float:
        """Speed over ground (m/s) from the velocity state."""
        if not self.is_initialized():
            return 0.0

        return math.hypot(float(self._state[VN]), float(self._state[VE]))

    def reset(self):
        """Reset filter to uninitialized state."""
        self._plane.reset()
        self._state = None
        self._covariance = None
        self._last_update_ms = None
        self.update_count = 0
        self._total_accuracy_improvement = 0.0
        self.metrics.increment('kalman_resets')
        logger.debug("Kalman estimator reset")

    def _initialize(self, fix: RawFix, accuracy: float):
        """Anchor the tangent plane at fix and start from rest."""
        self._plane.set_origin(fix.latitude, fix.longitude)

        self._state = np.zeros(4)

        pos_var = accuracy ** 2
        vel_var = self.config.initial_vel_variance
        self._covariance = np.diag([pos_var, pos_var, vel_var, vel_var])

        self._last_update_ms = fix.timestamp_ms
        self.update_count = 0
        self._total_accuracy_improvement = 0.0

        logger.info(f"Kalman estimator initialized at {fix.latitude:.6f}, {fix.longitude:.6f} "
                    f"with accuracy {accuracy:.1f}m")

    def _predict(self, dt: float):
        """
        Advance state and covariance by dt seconds.

        With F = [[I, dt·I], [0, I]] and P = [[Ppp, Ppv], [Pvp, Pvv]]:
            Ppp' = Ppp + dt·(Ppv + Pvp) + dt²·Pvv + q·dt⁴/4·I
            Ppv' = Ppv + dt·Pvv + q·dt³/2·I
            Pvv' = Pvv + q·dt²·I
        """
        x = self._state
        P = self._covariance
        q = self.config.accel_noise_density

        x[N] += x[VN] * dt
        x[E] += x[VE] * dt

        Ppp = P[0:2, 0:2]
        Ppv = P[0:2, 2:4]
        Pvp = P[2:4, 0:2]
        Pvv = P[2:4, 2:4]

        q_pp = q * dt ** 4 / 4.0
        q_pv = q * dt ** 3 / 2.0
        q_vv = q * dt ** 2

        new_pp = Ppp + dt * (Ppv + Pvp) + dt * dt * Pvv
        new_pv = Ppv + dt * Pvv
        new_vv = Pvv.copy()

        new_pp[0, 0] += q_pp
        new_pp[1, 1] += q_pp
        new_pv[0, 0] += q_pv
        new_pv[1, 1] += q_pv
        new_vv[0, 0] += q_vv
        new_vv[1, 1] += q_vv

        P_pred = np.empty((4, 4))
        P_pred[0:2, 0:2] = new_pp
        P_pred[0:2, 2:4] = new_pv
        P_pred[2:4, 0:2] = new_pv.T
        P_pred[2:4, 2:4] = new_vv

        self._covariance = self._symmetrize(P_pred)

    def _update(self, fix: RawFix, accuracy: float):
        """Correct the prediction with a fix (position-only measurement)."""
        z = np.array(self._plane.to_local_ne(fix.latitude, fix.longitude))
        P = self._covariance
        r = accuracy ** 2

        y = z - self._state[0:2]  # Innovation

        s00 = P[0, 0] + r
        s01 = P[0, 1]
        s10 = P[1, 0]
        s11 = P[1, 1] + r
        det = s00 * s11 - s01 * s10

        if abs(det) < self.config.singular_det_threshold:
            logger.warning(f"Innovation covariance singular (det={det:.3e}), skipping update")
            self._skipped_updates += 1
            self.metrics.increment('kalman_singular_updates')
            return

        S_inv = np.array([
            [s11 / det, -s01 / det],
            [-s10 / det, s00 / det],
        ])

        # H selects position, so P·Hᵀ is the first two columns of P and H·P the first two rows
        K = P[:, 0:2] @ S_inv

        self._state = self._state + K @ y
        self._covariance = self._symmetrize(P - K @ P[0:2, :])

        innovation_m = float(np.hypot(y[0], y[1]))
        self.metrics.record_histogram('kalman_innovation_m', innovation_m)
        logger.debug(f"Kalman update: innovation={innovation_m:.2f}m, "
                     f"accuracy={self.predicted_accuracy():.2f}m")

    @staticmethod
    def _symmetrize(P: np.ndarray) -> np.ndarray:
        return 0.5 * (P + P.T)

    def get_statistics(self) -> FilterStatistics:
        """Get filter statistics."""
        average_improvement = (
            self._total_accuracy_improvement / self.update_count if self.update_count > 0 else 0.0
        )
        return FilterStatistics(
            is_initialized=self.is_initialized(),
            update_count=self.update_count,
            average_accuracy_improvement_m=average_improvement,
            current_accuracy_m=self.predicted_accuracy(),
            estimated_speed_mps=self.estimated_speed(),
            skipped_updates=self._skipped_updates,
            reinitializations=self._reinitializations,
        )
