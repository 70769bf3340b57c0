"""
Location Fix Schemas.

Defines the raw GNSS fix consumed by the pipeline and the filtered
location it emits once per accepted fix.
"""

from dataclasses import dataclass
from typing import Optional
import math

# Neutral weighting input when no constellation data accompanies a fix
NEUTRAL_SIGNAL_QUALITY = 50


@dataclass(frozen=True)
class RawFix:
    """
    One position sample as reported by the positioning provider.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        timestamp_ms: Monotonic fix time in milliseconds
        accuracy_m: Horizontal accuracy radius in meters (None = not reported)
        speed_mps: Speed reported by the receiver (None = not reported)
        altitude_m: Altitude in meters (None = not reported)
        provider: Name of the positioning provider

    Notes:
        - accuracy_m=None and accuracy_m=0.0 are different things: the
          former means the receiver gave no estimate at all
        - Non-finite fields are allowed here so that the outlier gate can
          reject them with a reason instead of failing the caller
    """

    latitude: float
    longitude: float
    timestamp_ms: int
    accuracy_m: Optional[float] = None
    speed_mps: Optional[float] = None
    altitude_m: Optional[float] = None
    provider: str = "gps"

    def __post_init__(self):
        """Validate fix."""
        if self.accuracy_m is not None and self.accuracy_m < 0:
            raise ValueError(f"Accuracy cannot be negative: {self.accuracy_m}")

    @property
    def has_accuracy(self) -> bool:
        """True if the receiver reported an accuracy estimate."""
        return self.accuracy_m is not None

    @property
    def has_altitude(self) -> bool:
        return self.altitude_m is not None

    @property
    def is_finite(self) -> bool:
        """True if every reported numeric field is a finite number."""
        required = (self.latitude, self.longitude, self.timestamp_ms)
        optional = (self.accuracy_m, self.speed_mps, self.altitude_m)

        if not all(math.isfinite(v) for v in required):
            return False

        return all(math.isfinite(v) for v in optional if v is not None)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'timestamp_ms': self.timestamp_ms,
            'accuracy_m': self.accuracy_m,
            'speed_mps': self.speed_mps,
            'altitude_m': self.altitude_m,
            'provider': self.provider,
        }


@dataclass(frozen=True)
class FilteredLocation:
    """
    Filtered position emitted for an accepted fix.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        accuracy_m: Estimated horizontal accuracy (m)
        speed_mps: Estimated speed over ground (m/s)
        timestamp_ms: Time of the fix this location was derived from
        altitude_m: Altitude (m), carried through when the fix had one
    """

    latitude: float
    longitude: float
    accuracy_m: float
    speed_mps: float
    timestamp_ms: int
    altitude_m: Optional[float] = None

    def __post_init__(self):
        """Validate filtered location."""
        if self.accuracy_m < 0:
            raise ValueError(f"Accuracy cannot be negative: {self.accuracy_m}")

        if self.speed_mps < 0:
            raise ValueError(f"Speed cannot be negative: {self.speed_mps}")

    @property
    def has_altitude(self) -> bool:
        return self.altitude_m is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy_m': self.accuracy_m,
            'speed_mps': self.speed_mps,
            'timestamp_ms': self.timestamp_ms,
            'altitude_m': self.altitude_m,
        }


def passthrough_location(fix: RawFix, accuracy_m: float, speed_mps: float = 0.0) -> FilteredLocation:
    """
    Wrap a raw fix as a filtered location without changing its position.

    Args:
        fix: Raw fix
        accuracy_m: Accuracy to report (already clamped by the caller)
        speed_mps: Speed to report

    Returns:
        FilteredLocation at the raw fix position
    """
    return FilteredLocation(
        latitude=fix.latitude,
        longitude=fix.longitude,
        accuracy_m=accuracy_m,
        speed_mps=speed_mps,
        timestamp_ms=fix.timestamp_ms,
        altitude_m=fix.altitude_m,
    )
