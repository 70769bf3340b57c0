"""
Drift Alarm State Machine.

Compares the smoothed position against the anchor point and radius and
latches QUIET / ALARMED, changing state only when the distance crosses the
radius. Loss of the positioning provider forces ALARMED.
"""

from typing import Optional
import logging

from anchor_core.proto import (
    AlarmState,
    AlarmCause,
    AlarmTransition,
    AnchorPoint,
    FilteredLocation,
)
from anchor_core.localization.tangent_plane import distance_m
from anchor_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class DriftAlarmMonitor:
    """
    Anchor drift detector with radius-crossing hysteresis.

    Usage:
        monitor = DriftAlarmMonitor(AnchorPoint(10.0, 10.0, radius_m=30.0))

        transition = monitor.evaluate(smoothed_location)
        if transition is not None and transition.is_alarm:
            start_alarm(transition.distance_m)

        transition = monitor.provider_status_changed(False, t_ms)

    Transitions:
    - QUIET -> ALARMED: distance > radius (DRIFT)
    - ALARMED -> QUIET: distance <= radius (RETURNED)
    - any -> ALARMED: provider unavailable (PROVIDER_LOST); distance is
      not evaluated again until the provider is back
    """

    def __init__(self, anchor: AnchorPoint, metrics: Optional[MetricsCollector] = None):
        """
        Initialize monitor in QUIET state.

        Args:
            anchor: Anchor point and radius for this session
            metrics: Collector for counters (private collector if None)
        """
        self.anchor = anchor
        self.metrics = metrics or MetricsCollector()

        self._state = AlarmState.QUIET
        self._provider_available = True
        self._last_distance_m: Optional[float] = None

        logger.info(f"Anchor watch started at {anchor.latitude:.6f}, {anchor.longitude:.6f} "
                    f"radius {anchor.radius_m:.1f}m")

    @property
    def state(self) -> AlarmState:
        return self._state

    @property
    def is_alarmed(self) -> bool:
        return self._state == AlarmState.ALARMED

    @property
    def is_provider_available(self) -> bool:
        return self._provider_available

    @property
    def last_distance_m(self) -> Optional[float]:
        """Distance to anchor at the last evaluated fix."""
        return self._last_distance_m

    def distance_to_anchor(self, location: FilteredLocation) -> float:
        """Great-circle distance from location to the anchor (m)."""
        return distance_m(location.latitude, location.longitude,
                          self.anchor.latitude, self.anchor.longitude)

    def evaluate(self, location: FilteredLocation) -> Optional[AlarmTransition]:
        """
        Evaluate a smoothed location against the radius.

        Args:
            location: Smoothed filtered location

        Returns:
            AlarmTransition if the state changed, else None

        Notes:
            - Ignored while the provider is unavailable
        """
        if not self._provider_available:
            logger.debug("Provider unavailable, distance evaluation suspended")
            return None

        distance = self.distance_to_anchor(location)
        self._last_distance_m = distance
        self.metrics.record_histogram('anchor_distance_m', distance)

        if distance > self.anchor.radius_m:
            if self._state == AlarmState.QUIET:
                logger.warning(f"Drift detected: {distance:.1f}m > {self.anchor.radius_m:.1f}m")
                return self._transition(AlarmState.ALARMED, AlarmCause.DRIFT,
                                        distance, location.timestamp_ms)
        elif self._state == AlarmState.ALARMED:
            logger.info(f"Back within radius: {distance:.1f}m <= {self.anchor.radius_m:.1f}m")
            return self._transition(AlarmState.QUIET, AlarmCause.RETURNED,
                                    distance, location.timestamp_ms)

        return None

    def provider_status_changed(self, available: bool, timestamp_ms: int) -> Optional[AlarmTransition]:
        """
        Handle positioning provider availability.

        Args:
            available: True if the provider is delivering fixes
            timestamp_ms: Time of the signal

        Returns:
            AlarmTransition when loss forces ALARMED from QUIET, else None
        """
        if available:
            if not self._provider_available:
                logger.info("Positioning provider available again, resuming distance checks")
            self._provider_available = True
            return None

        was_available = self._provider_available
        self._provider_available = False

        if was_available:
            self.metrics.increment('provider_lost')

        if self._state == AlarmState.ALARMED:
            return None

        logger.warning("Positioning provider unavailable, triggering alarm")
        return self._transition(AlarmState.ALARMED, AlarmCause.PROVIDER_LOST,
                                self._last_distance_m, timestamp_ms)

    def _transition(
        self,
        new_state: AlarmState,
        cause: AlarmCause,
        distance: Optional[float],
        timestamp_ms: int
    ) -> AlarmTransition:
        transition = AlarmTransition(
            previous=self._state,
            current=new_state,
            cause=cause,
            distance_m=distance,
            timestamp_ms=timestamp_ms,
        )
        self._state = new_state
        self.metrics.increment('alarm_transitions')
        self.metrics.increment(f'alarm_cause_{cause.name.lower()}')
        return transition
