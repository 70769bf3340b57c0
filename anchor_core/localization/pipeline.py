"""
Anchor Watch Pipeline.

Bundles the outlier gate, Kalman estimator, weighted smoother and drift
alarm monitor for one monitoring session. The host owns the pipeline and
calls process() once per fix from its own event loop.

Usage:
    pipeline = AnchorWatchPipeline(config)
    pipeline.set_anchor(52.0, 8.0, radius_m=40.0)

    result = pipeline.process(fix, signal_quality=72)
    if result.location is not None:
        draw(result.location)
    if result.transition is not None and result.transition.is_alarm:
        start_alarm()
"""

from typing import Callable, List, Optional
from dataclasses import dataclass, field
import logging
import threading

from anchor_core.localization.outlier_gate import OutlierGate, OutlierGateConfig, OutlierReason
from anchor_core.localization.kalman_estimator import KalmanEstimator, KalmanConfig
from anchor_core.localization.weighted_smoother import WeightedSmoother, SmootherConfig
from anchor_core.domain.drift_monitor import DriftAlarmMonitor
from anchor_core.proto import (
    RawFix,
    FilteredLocation,
    AlarmState,
    AlarmTransition,
    AnchorPoint,
)
from anchor_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """
    Configuration for the anchor watch pipeline.

    Attributes:
        gate_config: OutlierGate configuration
        kalman_config: KalmanEstimator configuration
        smoother_config: WeightedSmoother configuration
    """

    gate_config: OutlierGateConfig = field(default_factory=OutlierGateConfig)
    kalman_config: KalmanConfig = field(default_factory=KalmanConfig)
    smoother_config: SmootherConfig = field(default_factory=SmootherConfig)


@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of processing one fix.

    Attributes:
        location: Smoothed location (None if the fix was rejected)
        transition: Alarm transition triggered by this fix, if any
        rejection_reason: Outlier gate reason (NONE if accepted)
    """

    location: Optional[FilteredLocation] = None
    transition: Optional[AlarmTransition] = None
    rejection_reason: OutlierReason = OutlierReason.NONE

    @property
    def accepted(self) -> bool:
        return self.location is not None


ResultListener = Callable[[PipelineResult], None]


class AnchorWatchPipeline:
    """
    Per-session filtering and drift decision pipeline.

    Pipeline stages:
    1. Outlier gate (drop implausible fixes)
    2. Kalman estimator (tangent plane, constant velocity)
    3. Weighted smoother (signal-quality weighted window)
    4. Drift alarm monitor (only while an anchor is set)

    Notes:
        - One lock covers a whole fix, anchor changes and provider signals,
          so fixes from several providers never interleave mid-pipeline
        - Setting or clearing the anchor resets gate, estimator and
          smoother together
        - Listeners are called after the lock is released
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize pipeline without an anchor.

        Args:
            config: Pipeline configuration (uses defaults if None)
        """
        self.config = config or PipelineConfig()
        self.metrics = MetricsCollector()

        self.gate = OutlierGate(self.config.gate_config, self.metrics)
        self.estimator = KalmanEstimator(self.config.kalman_config, self.metrics)
        self.smoother = WeightedSmoother(self.config.smoother_config, self.metrics)
        self.monitor: Optional[DriftAlarmMonitor] = None

        self._lock = threading.Lock()
        self._listeners: List[ResultListener] = []
        self._last_location: Optional[FilteredLocation] = None
        self._provider_available = True
        self._provider_lost_timestamp_ms = 0

    @property
    def anchor(self) -> Optional[AnchorPoint]:
        return self.monitor.anchor if self.monitor is not None else None

    @property
    def alarm_state(self) -> Optional[AlarmState]:
        """Current alarm state, None when no anchor is set."""
        return self.monitor.state if self.monitor is not None else None

    @property
    def last_location(self) -> Optional[FilteredLocation]:
        return self._last_location

    @property
    def last_accepted_timestamp_ms(self) -> Optional[int]:
        """Timestamp of the last fix that passed the gate."""
        return self.gate.baseline.last_accepted_timestamp_ms

    def set_anchor(self, latitude: float, longitude: float, radius_m: float) -> AnchorPoint:
        """
        Start a monitoring session around an anchor point.

        Args:
            latitude: Anchor latitude (degrees)
            longitude: Anchor longitude (degrees)
            radius_m: Permitted radius (m)

        Returns:
            The AnchorPoint now being watched
        """
        anchor = AnchorPoint(latitude, longitude, radius_m)

        with self._lock:
            self._reset_filters()
            self.monitor = DriftAlarmMonitor(anchor, self.metrics)
            transition = None
            if not self._provider_available:
                # Session starts without positioning: alarm immediately
                transition = self.monitor.provider_status_changed(
                    False, self._provider_lost_timestamp_ms)

        self.metrics.increment('anchor_sets')
        if transition is not None:
            self._notify(PipelineResult(transition=transition))
        return anchor

    def set_anchor_at_current(self, radius_m: float) -> AnchorPoint:
        """
        Drop the anchor at the latest filtered position.

        Raises:
            ValueError: If no fix has been accepted yet
        """
        location = self._last_location
        if location is None:
            raise ValueError("No filtered position available to anchor at")

        return self.set_anchor(location.latitude, location.longitude, radius_m)

    def clear_anchor(self):
        """End the monitoring session."""
        with self._lock:
            self._reset_filters()
            self.monitor = None

        logger.info("Anchor cleared")

    def process(self, fix: Optional[RawFix], signal_quality: Optional[int] = None) -> PipelineResult:
        """
        Run one fix through the pipeline.

        Args:
            fix: Raw fix from the provider (None is counted as a null location)
            signal_quality: Overall signal quality 0-100 (None = neutral)

        Returns:
            PipelineResult (location is None when the fix was rejected)
        """
        with self._lock:
            result = self._process_locked(fix, signal_quality)

        self._notify(result)
        return result

    def _process_locked(self, fix: Optional[RawFix], signal_quality: Optional[int]) -> PipelineResult:
        self.metrics.increment('fixes_in')

        previous = self.gate.baseline.last_accepted
        elapsed_ms = 0
        if fix is not None and previous is not None:
            elapsed_ms = fix.timestamp_ms - previous.timestamp_ms

        if self.gate.is_outlier(fix, previous, elapsed_ms):
            reason = self.gate.reason
            logger.debug(f"Outlier rejected: {reason.description}")
            return PipelineResult(rejection_reason=reason)

        self.metrics.increment('fixes_accepted')

        accuracy = fix.accuracy_m if fix.has_accuracy else self.config.kalman_config.default_accuracy_m
        filtered = self.estimator.filter(fix, accuracy)
        smoothed = self.smoother.smooth(filtered, signal_quality)
        self._last_location = smoothed

        logger.debug(f"Filtered lat={smoothed.latitude:.7f} lon={smoothed.longitude:.7f} "
                     f"acc={smoothed.accuracy_m:.1f}m")

        transition = None
        if self.monitor is not None:
            transition = self.monitor.evaluate(smoothed)

        return PipelineResult(location=smoothed, transition=transition)

    def provider_status_changed(self, available: bool, timestamp_ms: int) -> Optional[AlarmTransition]:
        """
        Forward a provider availability signal to the alarm monitor.

        Args:
            available: True if the provider is delivering fixes
            timestamp_ms: Time of the signal

        Returns:
            AlarmTransition if positioning loss raised the alarm
        """
        with self._lock:
            self._provider_available = available
            if not available:
                self._provider_lost_timestamp_ms = timestamp_ms
            if self.monitor is None:
                logger.info(f"Provider {'enabled' if available else 'disabled'} (no anchor set)")
                return None
            transition = self.monitor.provider_status_changed(available, timestamp_ms)

        if transition is not None:
            self._notify(PipelineResult(transition=transition))

        return transition

    def add_listener(self, listener: ResultListener):
        """Register a callback receiving every PipelineResult."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: ResultListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, result: PipelineResult):
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(result)
            except Exception:
                logger.exception(f"Listener error in {getattr(listener, '__name__', listener)!r}")

    def _reset_filters(self):
        """Reset gate, estimator and smoother as one unit (lock held)."""
        self.gate.reset()
        self.estimator.reset()
        self.smoother.reset()
        self._last_location = None
        self.metrics.increment('pipeline_resets')
        logger.info("Pipeline filters reset")

    def reset(self):
        """Reset filters without touching the anchor session."""
        with self._lock:
            self._reset_filters()

    def get_statistics(self) -> dict:
        """Get pipeline statistics."""
        with self._lock:
            return {
                'fixes_in': self.metrics.get_counter('fixes_in'),
                'fixes_accepted': self.metrics.get_counter('fixes_accepted'),
                'outlier_gate': self.gate.get_statistics(),
                'kalman': self.estimator.get_statistics().to_dict(),
                'smoother': self.smoother.get_statistics().to_dict(),
                'alarm_state': self.alarm_state.name if self.alarm_state is not None else None,
                'alarm_transitions': self.metrics.get_counter('alarm_transitions'),
                'last_accepted_timestamp_ms': self.last_accepted_timestamp_ms,
            }


def create_default_pipeline() -> AnchorWatchPipeline:
    """
    Create anchor watch pipeline with default configuration.

    Returns:
        Configured AnchorWatchPipeline
    """
    config = PipelineConfig(
        gate_config=OutlierGateConfig(),
        kalman_config=KalmanConfig(),
        smoother_config=SmootherConfig(window_size=5),
    )

    return AnchorWatchPipeline(config)
