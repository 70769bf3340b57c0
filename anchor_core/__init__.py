"""
Anchor Watch Core Package.

Position filtering and drift decision pipeline for anchor watch: raw GNSS
fixes in, filtered positions and alarm transitions out.

Package structure:
- proto: Message schemas (raw fixes, filtered locations, alarm events)
- localization: Tangent plane, signal quality, outlier gate, Kalman
  estimator, weighted smoother, per-session pipeline
- domain: Drift / alarm state machine
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.3.0"
__author__ = "Anchor Watch Team"

from .localization import AnchorWatchPipeline, PipelineConfig, create_default_pipeline

__all__ = ['AnchorWatchPipeline', 'PipelineConfig', 'create_default_pipeline']
