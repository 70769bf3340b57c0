"""
Metrics Module: Diagnostics, counters, histograms.

Every dropped fix is counted under a reason code, nothing is dropped
silently. Each pipeline owns one collector and hands it to its components.

Usage:
    from anchor_core.metrics import MetricsCollector

    metrics = MetricsCollector()
    metrics.increment('fixes_in')
    metrics.increment_drop('poor_accuracy')
    metrics.record_histogram('kalman_innovation_m', 1.23)
"""

from .counters import MetricsCollector, CounterSnapshot

__all__ = ['MetricsCollector', 'CounterSnapshot']
