"""
Domain Module: Anchor watch decision logic.

Implements:
- Distance to anchor
- Drift / alarm state machine with radius-crossing hysteresis
- Provider-loss alarm latch
"""

from .drift_monitor import DriftAlarmMonitor

__all__ = ['DriftAlarmMonitor']
