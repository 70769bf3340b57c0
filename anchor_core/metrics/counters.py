"""
Metrics counters and histograms for one anchor watch session.

Tracks:
- Fix flow (in, accepted, dropped per outlier reason)
- Filter events (Kalman updates / reinitializations, smoother samples)
- Alarm transitions per cause
- Bounded histograms (innovation, implied speed, distance to anchor)
"""

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Reported as 0 even before the first event, so summaries have stable keys
STANDARD_COUNTERS = (
    'fixes_in',
    'fixes_accepted',
    'fixes_dropped',
    'outlier_checks',
    'kalman_updates',
    'kalman_reinitializations',
    'smoother_samples',
    'alarm_transitions',
)

DEFAULT_HISTOGRAM_SAMPLES = 10000


@dataclass
class CounterSnapshot:
    """Copy of the collector state at one instant."""

    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]] = field(default_factory=dict)

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())

    def drop_rate(self, total_fixes: int) -> float:
        """Dropped fixes as a percentage of total_fixes."""
        if total_fixes == 0:
            return 0.0
        return self.total_dropped() / total_fixes * 100.0

    def acceptance_rate(self) -> float:
        """Accepted fixes as a percentage of fixes received."""
        fixes_in = self.counters.get('fixes_in', 0)
        if fixes_in == 0:
            return 0.0
        return self.counters.get('fixes_accepted', 0) / fixes_in * 100.0

    def alarm_causes(self) -> Dict[str, int]:
        """Transition counts keyed by cause name."""
        prefix = 'alarm_cause_'
        return {
            name[len(prefix):]: value
            for name, value in self.counters.items()
            if name.startswith(prefix)
        }


class MetricsCollector:
    """
    Thread-safe counters, drop reasons and histograms.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('fixes_in')
        metrics.increment_drop('excessive_speed')
        metrics.record_histogram('kalman_innovation_m', 2.4)

        snapshot = metrics.snapshot()
        print(f"Accepted: {snapshot.acceptance_rate():.1f}%")

    Notes:
        - One collector per pipeline; components receive it at construction
        - Histograms keep the most recent max_samples values
    """

    # Drop reason codes, one per outlier gate rejection reason
    DROP_REASONS = {
        'null_location': 'Fix missing or carrying non-finite fields',
        'invalid_time_delta': 'Elapsed time outside the accepted window',
        'poor_accuracy': 'Reported accuracy too poor or poor for too long',
        'excessive_speed': 'Implied speed above plausible ceiling',
        'geometric_inconsistency': 'Implied acceleration above plausible ceiling',
    }

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._drop_reasons: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, Deque[float]] = {}
        self._start_time = time.time()

        self._seed_standard_keys()

    def _seed_standard_keys(self):
        with self._lock:
            for name in STANDARD_COUNTERS:
                self._counters.setdefault(name, 0)
            for reason in self.DROP_REASONS:
                self._drop_reasons.setdefault(reason, 0)

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count dropped fixes under a reason code.

        Args:
            reason: Drop reason code (see DROP_REASONS)
            value: Number of fixes dropped

        Notes:
            - Unknown codes are still counted, with a warning
            - fixes_dropped is incremented alongside
        """
        if reason not in self.DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")

        with self._lock:
            self._drop_reasons[reason] += value
            self._counters['fixes_dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        """Current counter value (0 if never incremented)."""
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drop_reasons.get(reason, 0)

    def record_histogram(
        self,
        histogram_name: str,
        value: float,
        max_samples: int = DEFAULT_HISTOGRAM_SAMPLES
    ):
        """
        Record a histogram sample.

        Args:
            histogram_name: Name of histogram
            value: Sample value
            max_samples: Window size, fixed when the histogram is created
        """
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if samples is None:
                samples = deque(maxlen=max_samples)
                self._histograms[histogram_name] = samples
            samples.append(float(value))

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of a histogram.

        Returns:
            Dict with count, min, max, mean, median, p95, p99
            (None if the histogram has no samples)
        """
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if not samples:
                return None
            values = np.fromiter(samples, dtype=float, count=len(samples))

        median, p95, p99 = np.percentile(values, [50, 95, 99])

        return {
            'count': int(values.size),
            'min': float(values.min()),
            'max': float(values.max()),
            'mean': float(values.mean()),
            'median': float(median),
            'p95': float(p95),
            'p99': float(p99),
        }

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                drop_reasons=dict(self._drop_reasons),
                histograms={name: list(samples) for name, samples in self._histograms.items()},
            )

    def reset(self):
        """Clear everything and restart the uptime clock."""
        with self._lock:
            self._counters.clear()
            self._drop_reasons.clear()
            self._histograms.clear()
            self._start_time = time.time()

        self._seed_standard_keys()

    def get_uptime(self) -> float:
        """Seconds since construction or last reset."""
        return time.time() - self._start_time

    def format_summary(self) -> List[str]:
        """Human-readable summary, one string per line."""
        snapshot = self.snapshot()
        counters = snapshot.counters

        lines = [
            "=" * 70,
            f"  METRICS SUMMARY (uptime: {self.get_uptime():.1f}s)",
            "=" * 70,
            "",
            "FIXES:",
            f"  {'received':30s}: {counters.get('fixes_in', 0):8d}",
            f"  {'accepted':30s}: {counters.get('fixes_accepted', 0):8d} "
            f"({snapshot.acceptance_rate():5.1f}%)",
            f"  {'dropped':30s}: {snapshot.total_dropped():8d}",
        ]

        total_dropped = snapshot.total_dropped()
        for reason, count in sorted(snapshot.drop_reasons.items()):
            if count > 0:
                lines.append(f"    {reason:28s}: {count:8d} ({count / total_dropped * 100:5.1f}%)")

        causes = snapshot.alarm_causes()
        if causes:
            lines += ["", "ALARMS:"]
            for cause, count in sorted(causes.items()):
                lines.append(f"  {cause:30s}: {count:8d}")

        lines += ["", "COUNTERS:"]
        for name, value in sorted(counters.items()):
            lines.append(f"  {name:30s}: {value:8d}")

        if snapshot.histograms:
            lines += ["", "HISTOGRAMS:"]
            for name in sorted(snapshot.histograms):
                stats = self.get_histogram_stats(name)
                if stats:
                    lines.append(f"  {name}: count={stats['count']}, mean={stats['mean']:.3f}, "
                                 f"p95={stats['p95']:.3f}, max={stats['max']:.3f}")

        lines.append("=" * 70)
        return lines

    def print_summary(self):
        print("\n" + "\n".join(self.format_summary()) + "\n")
