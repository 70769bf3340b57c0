"""
Localization Module: Projection, signal quality, fix filtering.

Key classes:
- LocalTangentPlane: Geodetic <-> local (north, east) projection
- OutlierGate: Rejection of physically implausible fixes
- KalmanEstimator: Constant-velocity smoothing in the tangent plane
- WeightedSmoother: Signal-quality weighted moving average
- AnchorWatchPipeline: Per-session gate -> estimator -> smoother -> alarm
"""

from .tangent_plane import (
    LocalTangentPlane,
    EARTH_RADIUS_M,
    distance_m,
    wrap_longitude_deg,
)
from .signal_quality import (
    ConstellationType,
    SatelliteObservation,
    ConstellationStats,
    SignalQualitySummary,
    signal_quality_score,
    summarize,
)
from .outlier_gate import (
    OutlierGate,
    OutlierGateConfig,
    OutlierReason,
    create_default_outlier_gate,
)
from .kalman_estimator import (
    KalmanEstimator,
    KalmanConfig,
    FilterStatistics,
)
from .weighted_smoother import (
    WeightedSmoother,
    SmootherConfig,
    SmootherStatistics,
)
from .pipeline import (
    AnchorWatchPipeline,
    PipelineConfig,
    PipelineResult,
    create_default_pipeline,
)

__all__ = [
    # Projection
    'LocalTangentPlane',
    'EARTH_RADIUS_M',
    'distance_m',
    'wrap_longitude_deg',
    # Signal quality
    'ConstellationType',
    'SatelliteObservation',
    'ConstellationStats',
    'SignalQualitySummary',
    'signal_quality_score',
    'summarize',
    # Filtering
    'OutlierGate',
    'OutlierGateConfig',
    'OutlierReason',
    'create_default_outlier_gate',
    'KalmanEstimator',
    'KalmanConfig',
    'FilterStatistics',
    'WeightedSmoother',
    'SmootherConfig',
    'SmootherStatistics',
    # Pipeline
    'AnchorWatchPipeline',
    'PipelineConfig',
    'PipelineResult',
    'create_default_pipeline',
]
