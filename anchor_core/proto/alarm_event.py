"""
Alarm Event Schemas.

Defines the anchor point being watched and the alarm transitions emitted
when the vessel crosses the permitted radius or positioning is lost.
"""

from dataclasses import dataclass
from typing import Optional
from enum import IntEnum


class AlarmState(IntEnum):
    """Drift alarm state for one monitoring session."""

    QUIET = 0       # Inside radius (or no evaluation yet)
    ALARMED = 1     # Outside radius, or positioning lost


class AlarmCause(IntEnum):
    """What triggered an alarm transition."""

    DRIFT = 0           # Distance to anchor exceeded radius
    RETURNED = 1        # Distance back at or within radius
    PROVIDER_LOST = 2   # Positioning provider became unavailable


@dataclass(frozen=True)
class AnchorPoint:
    """
    Anchor position and permitted swing radius.

    Attributes:
        latitude: Anchor latitude (degrees)
        longitude: Anchor longitude (degrees)
        radius_m: Permitted radius around the anchor (m)
    """

    latitude: float
    longitude: float
    radius_m: float

    def __post_init__(self):
        """Validate anchor point."""
        if not self.radius_m > 0:
            raise ValueError(f"Radius must be positive: {self.radius_m}")

        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'radius_m': self.radius_m,
        }


@dataclass(frozen=True)
class AlarmTransition:
    """
    One alarm state change.

    Attributes:
        previous: State before the transition
        current: State after the transition
        cause: What triggered it
        distance_m: Distance to anchor that triggered it (None when
            positioning was lost before any fix had been evaluated)
        timestamp_ms: Time of the triggering fix or provider signal
    """

    previous: AlarmState
    current: AlarmState
    cause: AlarmCause
    distance_m: Optional[float]
    timestamp_ms: int

    @property
    def is_alarm(self) -> bool:
        """True if this transition starts alarm actuation."""
        return self.current == AlarmState.ALARMED

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'previous': self.previous.name,
            'current': self.current.name,
            'cause': self.cause.name,
            'distance_m': self.distance_m,
            'timestamp_ms': self.timestamp_ms,
        }
