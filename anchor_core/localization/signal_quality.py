"""
GNSS signal quality summary.

Reduces the satellites reported alongside a fix (constellation, C/N0,
used-in-fix flag) to a single 0-100 quality score used to weight samples
in the smoother. Stateless: each call looks only at the observations given.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

# C/N0 mapping: 20 dB-Hz is poor, 45 dB-Hz and above is excellent
CN0_FLOOR_DBHZ = 20.0
CN0_SPAN_DBHZ = 25.0


class ConstellationType(Enum):
    """GNSS constellation, valued by the platform's constellation code."""

    UNKNOWN = 0
    GPS = 1
    SBAS = 2
    GLONASS = 3
    QZSS = 4
    BEIDOU = 5
    GALILEO = 6
    IRNSS = 7

    @classmethod
    def from_gnss_type(cls, gnss_type: int) -> 'ConstellationType':
        """Map a platform constellation code, UNKNOWN if unrecognised."""
        try:
            return cls(gnss_type)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class SatelliteObservation:
    """
    One satellite as seen in a GNSS status report.

    Attributes:
        svid: Satellite vehicle ID within its constellation
        constellation: Constellation the satellite belongs to
        cn0_dbhz: Carrier-to-noise density (dB-Hz), 0 if not tracked
        used_in_fix: Whether the receiver used it in the last fix
        elevation_deg: Elevation above horizon (optional)
        azimuth_deg: Azimuth (optional)
    """

    svid: int
    constellation: ConstellationType
    cn0_dbhz: float
    used_in_fix: bool = False
    elevation_deg: Optional[float] = None
    azimuth_deg: Optional[float] = None


@dataclass
class ConstellationStats:
    """Per-constellation aggregate."""

    constellation: ConstellationType
    total_satellites: int = 0
    used_in_fix: int = 0
    average_cn0_dbhz: float = 0.0
    max_cn0_dbhz: float = 0.0

    @classmethod
    def from_observations(
        cls,
        constellation: ConstellationType,
        observations: List[SatelliteObservation]
    ) -> 'ConstellationStats':
        total = len(observations)
        if total == 0:
            return cls(constellation)

        cn0_values = [obs.cn0_dbhz for obs in observations]
        return cls(
            constellation=constellation,
            total_satellites=total,
            used_in_fix=sum(1 for obs in observations if obs.used_in_fix),
            average_cn0_dbhz=sum(cn0_values) / total,
            max_cn0_dbhz=max(0.0, max(cn0_values)),
        )


@dataclass
class SignalQualitySummary:
    """
    Summary of one GNSS status report.

    Attributes:
        score: Overall signal quality (0-100)
        total_satellites: Satellites visible
        used_in_fix: Satellites used in the fix
        strongest: Constellation with the highest average C/N0
        per_constellation: Stats for every constellation with satellites
    """

    score: int
    total_satellites: int
    used_in_fix: int
    strongest: ConstellationType
    per_constellation: Dict[ConstellationType, ConstellationStats] = field(default_factory=dict)

    def is_degraded(self, threshold: int = 30) -> bool:
        """True if the score is below threshold."""
        return self.score < threshold


def signal_quality_score(observations: Iterable[SatelliteObservation]) -> int:
    """
    Convert satellite observations into an overall quality score.

    Args:
        observations: Satellites from one GNSS status report

    Returns:
        Quality in [0, 100]; 0 when nothing is tracked

    Mapping:
    - average C/N0 over satellites with C/N0 > 0
    - 20 dB-Hz -> 0, 32.5 dB-Hz -> 50, 45 dB-Hz -> 100 (linear, clamped)
    """
    tracked = [obs.cn0_dbhz for obs in observations if obs.cn0_dbhz > 0]
    if not tracked:
        return 0

    avg_cn0 = sum(tracked) / len(tracked)
    # Round half up
    quality = math.floor((avg_cn0 - CN0_FLOOR_DBHZ) / CN0_SPAN_DBHZ * 100 + 0.5)

    return max(0, min(100, int(quality)))


def summarize_constellations(
    observations: Iterable[SatelliteObservation]
) -> Dict[ConstellationType, ConstellationStats]:
    """Group observations by constellation (empty constellations omitted)."""
    grouped: Dict[ConstellationType, List[SatelliteObservation]] = {}
    for obs in observations:
        grouped.setdefault(obs.constellation, []).append(obs)

    return {
        constellation: ConstellationStats.from_observations(constellation, sats)
        for constellation, sats in grouped.items()
    }


def strongest_constellation(observations: Iterable[SatelliteObservation]) -> ConstellationType:
    """Constellation with the highest average C/N0 (UNKNOWN if none)."""
    strongest = ConstellationType.UNKNOWN
    best_cn0 = 0.0

    for constellation, stats in summarize_constellations(observations).items():
        if stats.average_cn0_dbhz > best_cn0:
            best_cn0 = stats.average_cn0_dbhz
            strongest = constellation

    return strongest


def summarize(observations: Iterable[SatelliteObservation]) -> SignalQualitySummary:
    """
    Build the full summary for one GNSS status report.

    Args:
        observations: Satellites from one status report

    Returns:
        SignalQualitySummary
    """
    observations = list(observations)

    return SignalQualitySummary(
        score=signal_quality_score(observations),
        total_satellites=len(observations),
        used_in_fix=sum(1 for obs in observations if obs.used_in_fix),
        strongest=strongest_constellation(observations),
        per_constellation=summarize_constellations(observations),
    )
