"""
Outlier Gate for raw GNSS fixes.

Validates a raw fix against the previously accepted fix before it reaches
the Kalman estimator. Phone and chartplotter receivers occasionally report
jumps of hundreds of meters; at anchor those jumps would trip the drift
alarm, so physically implausible fixes are dropped here.

Checks (fixed order, first failure decides the reason):
1. Null / non-finite fix
2. Elapsed time window
3. Accuracy ceiling and poor-accuracy streak
4. Implied speed (hard ceiling, and high speed with poor accuracy)
5. Implied acceleration vs the previous fix-to-fix speed
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum
import logging

from anchor_core.proto.location_fix import RawFix
from anchor_core.localization.tangent_plane import distance_m
from anchor_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)

KNOTS_TO_MPS = 0.514444


class OutlierReason(Enum):
    """Why the last fix was rejected (NONE if accepted)."""

    NONE = "No outlier detected"
    NULL_LOCATION = "Location is null"
    INVALID_TIME_DELTA = "Invalid time delta"
    POOR_ACCURACY = "GPS accuracy too poor"
    EXCESSIVE_SPEED = "Speed exceeds maximum threshold"
    GEOMETRIC_INCONSISTENCY = "Position geometrically inconsistent"

    @property
    def description(self) -> str:
        return self.value

    @property
    def drop_code(self) -> str:
        """Reason code used in metrics drop counters."""
        return self.name.lower()


@dataclass
class OutlierGateConfig:
    """
    Configuration for the outlier gate.

    Attributes:
        min_time_delta_s: Shortest accepted spacing between fixes (s)
        max_time_delta_s: Longest accepted spacing between fixes (s)
        max_accuracy_m: Hard accuracy ceiling, worse is always rejected (m)
        preferred_accuracy_m: Soft accuracy threshold (m)
        max_poor_accuracy_streak: Consecutive soft-poor fixes tolerated
        max_speed_knots: Hard speed ceiling (knots)
        reasonable_speed_mps: Above this, both fixes must be precise (m/s)
        max_acceleration_mps2: Implied acceleration ceiling (m/s²)

    Notes:
        - max_poor_accuracy_streak and max_acceleration_mps2 are tuning
          values, not physical constants
    """

    min_time_delta_s: float = 0.5
    max_time_delta_s: float = 300.0       # 5 minutes
    max_accuracy_m: float = 50.0
    preferred_accuracy_m: float = 10.0
    max_poor_accuracy_streak: int = 3
    max_speed_knots: float = 50.0
    reasonable_speed_mps: float = 10.0    # ~19 knots
    max_acceleration_mps2: float = 5.0    # ~0.5g

    def __post_init__(self):
        """Validate configuration."""
        if not 0 <= self.min_time_delta_s < self.max_time_delta_s:
            raise ValueError("Time window must satisfy 0 <= min < max")
        if not 0 < self.preferred_accuracy_m <= self.max_accuracy_m:
            raise ValueError("Accuracy thresholds must satisfy 0 < preferred <= max")
        if self.max_poor_accuracy_streak < 0:
            raise ValueError("Poor accuracy streak limit cannot be negative")
        if self.max_speed_knots <= 0 or self.reasonable_speed_mps <= 0:
            raise ValueError("Speed thresholds must be positive")
        if self.max_acceleration_mps2 <= 0:
            raise ValueError("Acceleration ceiling must be positive")

    @property
    def max_speed_mps(self) -> float:
        """Hard speed ceiling in m/s."""
        return self.max_speed_knots * KNOTS_TO_MPS


@dataclass
class OutlierBaseline:
    """
    Reference state the gate validates against.

    Attributes:
        last_accepted: Most recently accepted fix
        prior_accepted: Fix accepted before last_accepted
        last_accepted_timestamp_ms: Timestamp of last_accepted
        consecutive_poor_accuracy: Current run of accepted soft-poor fixes
    """

    last_accepted: Optional[RawFix] = None
    prior_accepted: Optional[RawFix] = None
    last_accepted_timestamp_ms: Optional[int] = None
    consecutive_poor_accuracy: int = 0

    def advance(self, fix: RawFix):
        """Make fix the new reference."""
        self.prior_accepted = self.last_accepted
        self.last_accepted = fix
        self.last_accepted_timestamp_ms = fix.timestamp_ms


class OutlierGate:
    """
    Reject physically implausible GNSS fixes.

    Usage:
        gate = OutlierGate(config)

        if gate.is_outlier(fix, previous_fix, fix.timestamp_ms - previous_fix.timestamp_ms):
            logger.debug(f"Dropped: {gate.reason.description}")
        else:
            filtered = estimator.filter(fix, fix.accuracy_m)

        # Or let the gate track the previous fix itself
        if not gate.check(fix):
            ...

    Notes:
        - The first fix after construction or reset is always accepted
          (it establishes the baseline), unless it is null / non-finite
        - A rejected fix never becomes the baseline
    """

    def __init__(
        self,
        config: Optional[OutlierGateConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize outlier gate.

        Args:
            config: Gate configuration (uses defaults if None)
            metrics: Collector for counters (private collector if None)
        """
        self.config = config or OutlierGateConfig()
        self.metrics = metrics or MetricsCollector()

        self.baseline = OutlierBaseline()
        self._reason = OutlierReason.NONE

    @property
    def reason(self) -> OutlierReason:
        """Reason for the most recent decision (NONE if accepted)."""
        return self._reason

    def reset(self):
        """Forget the baseline (new anchor, or after a long gap)."""
        self.baseline = OutlierBaseline()
        self._reason = OutlierReason.NONE
        self.metrics.increment('outlier_gate_resets')
        logger.debug("Outlier gate reset")

    def check(self, current: Optional[RawFix]) -> bool:
        """
        Validate a fix against the gate's own baseline.

        Args:
            current: Fix to validate

        Returns:
            True if accepted, False if rejected (see reason)
        """
        previous = self.baseline.last_accepted
        elapsed_ms = 0
        if current is not None and previous is not None:
            elapsed_ms = current.timestamp_ms - previous.timestamp_ms

        return not self.is_outlier(current, previous, elapsed_ms)

    def is_outlier(
        self,
        current: Optional[RawFix],
        previous: Optional[RawFix],
        elapsed_ms: float
    ) -> bool:
        """
        Decide whether current is an outlier relative to previous.

        Args:
            current: Fix to validate (None counts as a null location)
            previous: Previously accepted fix (None = no baseline yet)
            elapsed_ms: Time between previous and current (ms)

        Returns:
            True if current must be dropped

        Side Effects:
            - Updates reason and metrics counters
            - Advances the baseline when current is accepted
        """
        self.metrics.increment('outlier_checks')

        if current is None or not current.is_finite:
            return self._reject(OutlierReason.NULL_LOCATION)

        if previous is None:
            return self._accept(current, self.baseline.consecutive_poor_accuracy)

        elapsed_s = elapsed_ms / 1000.0

        if not self._is_valid_time_delta(elapsed_s):
            return self._reject(OutlierReason.INVALID_TIME_DELTA)

        streak = self._next_poor_accuracy_streak(current)
        if not self._is_accuracy_acceptable(current, streak):
            return self._reject(OutlierReason.POOR_ACCURACY)

        speed = distance_m(previous.latitude, previous.longitude,
                           current.latitude, current.longitude) / elapsed_s

        if not self._is_speed_reasonable(current, previous, speed):
            self.metrics.record_histogram('outlier_rejected_speed_m_s', speed)
            return self._reject(OutlierReason.EXCESSIVE_SPEED)

        if not self._is_geometrically_consistent(previous, speed, elapsed_s):
            return self._reject(OutlierReason.GEOMETRIC_INCONSISTENCY)

        self.metrics.record_histogram('outlier_implied_speed_m_s', speed)
        return self._accept(current, streak)

    def _is_valid_time_delta(self, elapsed_s: float) -> bool:
        """Elapsed time within [min, max]."""
        return self.config.min_time_delta_s <= elapsed_s <= self.config.max_time_delta_s

    def _next_poor_accuracy_streak(self, fix: RawFix) -> int:
        """Streak the baseline would carry if fix were accepted."""
        if not fix.has_accuracy:
            return self.baseline.consecutive_poor_accuracy
        if fix.accuracy_m <= self.config.preferred_accuracy_m:
            return 0
        return self.baseline.consecutive_poor_accuracy + 1

    def _is_accuracy_acceptable(self, fix: RawFix, streak: int) -> bool:
        """
        Check accuracy ceiling and poor-accuracy streak.

        Notes:
            - Fixes without an accuracy estimate pass
            - streak is the candidate value; only _accept stores it
        """
        if not fix.has_accuracy:
            logger.warning("Fix has no accuracy information, accepting")
            return True

        accuracy = fix.accuracy_m

        if accuracy > self.config.max_accuracy_m:
            logger.debug(f"Rejecting fix with poor accuracy: {accuracy:.1f}m > "
                         f"{self.config.max_accuracy_m:.1f}m")
            return False

        if streak > self.config.max_poor_accuracy_streak:
            logger.debug(f"Rejecting fix after {streak} consecutive poor fixes "
                         f"(accuracy {accuracy:.1f}m)")
            return False

        return True

    def _is_speed_reasonable(self, current: RawFix, previous: RawFix, speed: float) -> bool:
        """Speed ceiling, and stricter accuracy demand at high speed."""
        if speed > self.config.max_speed_mps:
            logger.debug(f"Rejecting fix due to excessive speed: {speed:.1f} m/s "
                         f"({speed / KNOTS_TO_MPS:.1f} knots)")
            return False

        if speed > self.config.reasonable_speed_mps:
            combined_accuracy = max(
                current.accuracy_m if current.has_accuracy else float('inf'),
                previous.accuracy_m if previous.has_accuracy else float('inf'),
            )

            if combined_accuracy > self.config.preferred_accuracy_m:
                logger.debug(f"Rejecting high speed fix with poor accuracy: {speed:.1f} m/s, "
                             f"accuracy {combined_accuracy:.1f}m")
                return False

        return True

    def _is_geometrically_consistent(self, previous: RawFix, speed: float, elapsed_s: float) -> bool:
        """
        Check implied acceleration against the fix accepted before previous.

        Skipped when there is no such fix or its spacing to previous is
        not strictly inside the time window.
        """
        before = self._fix_before(previous)
        if before is None:
            return True

        previous_dt = (previous.timestamp_ms - before.timestamp_ms) / 1000.0
        if not self.config.min_time_delta_s < previous_dt < self.config.max_time_delta_s:
            return True

        previous_speed = distance_m(before.latitude, before.longitude,
                                    previous.latitude, previous.longitude) / previous_dt
        acceleration = abs(speed - previous_speed) / elapsed_s

        if acceleration > self.config.max_acceleration_mps2:
            logger.debug(f"Rejecting fix due to excessive acceleration: {acceleration:.2f} m/s²")
            self.metrics.record_histogram('outlier_rejected_accel_m_s2', acceleration)
            return False

        return True

    def _fix_before(self, previous: RawFix) -> Optional[RawFix]:
        """Accepted fix that preceded previous, if the baseline knows it."""
        if self.baseline.last_accepted == previous:
            return self.baseline.prior_accepted
        return self.baseline.last_accepted

    def _accept(self, fix: RawFix, streak: int) -> bool:
        self._reason = OutlierReason.NONE
        self.baseline.advance(fix)
        self.baseline.consecutive_poor_accuracy = streak
        self.metrics.increment('outlier_accepted')
        return False

    def _reject(self, reason: OutlierReason) -> bool:
        self._reason = reason
        self.metrics.increment('outlier_rejections')
        self.metrics.increment_drop(reason.drop_code)
        return True

    def get_statistics(self) -> dict:
        """Get gate statistics for diagnostics."""
        return {
            'total_checks': self.metrics.get_counter('outlier_checks'),
            'total_accepted': self.metrics.get_counter('outlier_accepted'),
            'total_rejections': self.metrics.get_counter('outlier_rejections'),
            'rejection_reasons': {
                reason.name: self.metrics.get_drop_count(reason.drop_code)
                for reason in OutlierReason
                if reason != OutlierReason.NONE
            },
            'poor_accuracy_streak': self.baseline.consecutive_poor_accuracy,
        }


def create_default_outlier_gate() -> OutlierGate:
    """
    Create outlier gate with default configuration for a vessel at anchor.

    Returns:
        Configured OutlierGate instance
    """
    config = OutlierGateConfig(
        min_time_delta_s=0.5,
        max_time_delta_s=300.0,
        max_accuracy_m=50.0,
        preferred_accuracy_m=10.0,
        max_poor_accuracy_streak=3,
        max_speed_knots=50.0,
        reasonable_speed_mps=10.0,
        max_acceleration_mps2=5.0,
    )

    return OutlierGate(config)
