"""
Protocol Module: Message schemas exchanged with the host.

- RawFix in, FilteredLocation out
- Alarm transitions carrying the triggering distance and time
"""

from .location_fix import (
    RawFix,
    FilteredLocation,
    NEUTRAL_SIGNAL_QUALITY,
    passthrough_location,
)
from .alarm_event import (
    AlarmState,
    AlarmCause,
    AlarmTransition,
    AnchorPoint,
)

__all__ = [
    'RawFix',
    'FilteredLocation',
    'NEUTRAL_SIGNAL_QUALITY',
    'passthrough_location',
    'AlarmState',
    'AlarmCause',
    'AlarmTransition',
    'AnchorPoint',
]
