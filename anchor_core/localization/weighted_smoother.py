"""
Weighted Averaging Smoother.

Short-window weighted moving average over recent Kalman outputs. Weights
come from reported accuracy and signal quality and decay exponentially with
sample age. Removes residual jitter without re-introducing the lag of a
slower Kalman tuning.
"""

from collections import deque
from typing import Deque, Optional
from dataclasses import dataclass
import math
import logging

from anchor_core.proto.location_fix import FilteredLocation, NEUTRAL_SIGNAL_QUALITY
from anchor_core.metrics import MetricsCollector
from anchor_core.localization.tangent_plane import wrap_longitude_deg

logger = logging.getLogger(__name__)

MIN_WINDOW_SIZE = 1
MAX_WINDOW_SIZE = 20


@dataclass
class SmootherConfig:
    """
    Configuration for the weighted smoother.

    Attributes:
        window_size: Ring buffer capacity (samples)
        warmup_samples: Samples needed before averaging starts (capped at window_size)
        time_decay_s: Exponential age decay constant (s)
        min_weight: Lower clamp for a sample weight
        max_weight: Upper clamp for a sample weight
        min_quality_factor: Lower clamp for the signal quality factor
        min_total_weight: Below this decayed total, fall back to the raw input
    """

    window_size: int = 5
    warmup_samples: int = 3
    time_decay_s: float = 5.0
    min_weight: float = 0.1
    max_weight: float = 10.0
    min_quality_factor: float = 0.1
    min_total_weight: float = 1e-3

    def __post_init__(self):
        """Validate configuration."""
        if not MIN_WINDOW_SIZE <= self.window_size <= MAX_WINDOW_SIZE:
            raise ValueError(f"Window size must be in [{MIN_WINDOW_SIZE}, {MAX_WINDOW_SIZE}]: "
                             f"{self.window_size}")
        if self.warmup_samples < 1:
            raise ValueError("Warm-up needs at least one sample")
        if self.time_decay_s <= 0:
            raise ValueError("Time decay constant must be positive")
        if not 0 < self.min_weight <= self.max_weight:
            raise ValueError("Weight clamp must satisfy 0 < min <= max")


@dataclass(frozen=True)
class WeightedSample:
    """Buffered Kalman output with its weight."""

    location: FilteredLocation
    weight: float
    timestamp_ms: int


@dataclass
class SmootherStatistics:
    """Diagnostics snapshot for the smoother."""

    initialized: bool
    buffer_fill: int
    capacity: int
    total_updates: int
    last_weight: float

    def to_dict(self) -> dict:
        return {
            'initialized': self.initialized,
            'buffer_fill': self.buffer_fill,
            'capacity': self.capacity,
            'total_updates': self.total_updates,
            'last_weight': self.last_weight,
        }


class WeightedSmoother:
    """
    Signal-quality weighted moving average over Kalman outputs.

    Usage:
        smoother = WeightedSmoother(config)

        filtered = estimator.filter(fix, fix.accuracy_m)
        smoothed = smoother.smooth(filtered, signal_quality=72)

    Notes:
        - Passes input through until the warm-up count is reached
        - Ages are measured against the newest sample, so replayed tracks
          smooth exactly like live ones
        - Output accuracy / speed are the newest sample's, not re-derived
    """

    def __init__(
        self,
        config: Optional[SmootherConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize smoother.

        Args:
            config: Smoother configuration (uses defaults if None)
            metrics: Collector for counters (private collector if None)
        """
        self.config = config or SmootherConfig()
        self.metrics = metrics or MetricsCollector()

        self._buffer: Deque[WeightedSample] = deque(maxlen=self.config.window_size)
        self._initialized = False
        self._total_updates = 0

    @property
    def capacity(self) -> int:
        return self.config.window_size

    @property
    def buffer_fill(self) -> int:
        """Number of samples currently buffered."""
        return len(self._buffer)

    @property
    def warmup_threshold(self) -> int:
        return min(self.config.warmup_samples, self.config.window_size)

    def smooth(
        self,
        kalman_output: FilteredLocation,
        signal_quality: Optional[int] = None
    ) -> FilteredLocation:
        """
        Add a Kalman output to the window and return the smoothed location.

        Args:
            kalman_output: Location from the Kalman estimator
            signal_quality: Overall signal quality 0-100 (None = neutral 50)

        Returns:
            Smoothed FilteredLocation (or kalman_output during warm-up)
        """
        weight = self.calculate_weight(kalman_output, signal_quality)

        self._buffer.append(WeightedSample(kalman_output, weight, kalman_output.timestamp_ms))
        self._total_updates += 1
        self.metrics.increment('smoother_samples')

        if not self._initialized and len(self._buffer) >= self.warmup_threshold:
            self._initialized = True
            logger.debug(f"Smoother initialized with {len(self._buffer)} samples")

        if not self._initialized:
            return kalman_output

        return self._weighted_average(kalman_output)

    def calculate_weight(self, location: FilteredLocation, signal_quality: Optional[int]) -> float:
        """
        Weight for one sample.

        weight = (1 / max(accuracy, 1)) · clamp(quality / 100, 0.1, 1.0),
        clamped to [min_weight, max_weight]
        """
        if signal_quality is None:
            signal_quality = NEUTRAL_SIGNAL_QUALITY

        accuracy_weight = 1.0 / max(location.accuracy_m, 1.0)
        quality_factor = max(self.config.min_quality_factor, min(1.0, signal_quality / 100.0))

        weight = accuracy_weight * quality_factor
        return max(self.config.min_weight, min(self.config.max_weight, weight))

    def _weighted_average(self, fallback: FilteredLocation) -> FilteredLocation:
        """Time-decayed weighted mean of the buffered positions."""
        now_ms = self._buffer[-1].timestamp_ms
        # Longitudes averaged as offsets from the newest sample (antimeridian)
        reference_lon = self._buffer[-1].location.longitude

        total_weight = 0.0
        weighted_lat = 0.0
        weighted_lon = 0.0
        alt_weight = 0.0
        weighted_alt = 0.0

        for sample in self._buffer:
            age_s = (now_ms - sample.timestamp_ms) / 1000.0
            effective_weight = sample.weight * math.exp(-age_s / self.config.time_decay_s)

            total_weight += effective_weight
            weighted_lat += sample.location.latitude * effective_weight
            lon_offset = wrap_longitude_deg(sample.location.longitude - reference_lon)
            weighted_lon += lon_offset * effective_weight

            if sample.location.has_altitude:
                alt_weight += effective_weight
                weighted_alt += sample.location.altitude_m * effective_weight

        if total_weight < self.config.min_total_weight:
            logger.warning(f"Total weight too small ({total_weight:.2e}), returning unsmoothed location")
            self.metrics.increment('smoother_fallbacks')
            return fallback

        most_recent = self._buffer[-1].location

        return FilteredLocation(
            latitude=weighted_lat / total_weight,
            longitude=wrap_longitude_deg(reference_lon + weighted_lon / total_weight),
            accuracy_m=most_recent.accuracy_m,
            speed_mps=most_recent.speed_mps,
            timestamp_ms=most_recent.timestamp_ms,
            altitude_m=weighted_alt / alt_weight if alt_weight > 0 else None,
        )

    def reset(self):
        """Clear the window (new anchor, or filters reset)."""
        self._buffer.clear()
        self._initialized = False
        self._total_updates = 0
        self.metrics.increment('smoother_resets')
        logger.debug("Smoother reset")

    def get_statistics(self) -> SmootherStatistics:
        """Get smoother statistics for monitoring."""
        return SmootherStatistics(
            initialized=self._initialized,
            buffer_fill=len(self._buffer),
            capacity=self.capacity,
            total_updates=self._total_updates,
            last_weight=self._buffer[-1].weight if self._buffer else 0.0,
        )
