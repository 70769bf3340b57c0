"""
Pytest configuration and shared fixtures for the anchor watch tests.

This module provides reusable fixtures for building GNSS fixes at known
offsets from a reference point, and for constructing pipeline components
that share one metrics collector.
"""

import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from anchor_core.proto import RawFix, FilteredLocation
from anchor_core.localization import LocalTangentPlane
from anchor_core.metrics import MetricsCollector


# Reference point used by most tests (North Sea coast)
REFERENCE_LAT = 52.0
REFERENCE_LON = 8.0


# =============================================================================
# Helper Functions
# =============================================================================


def offset_position(
    lat0: float, lon0: float, north_m: float, east_m: float
) -> Tuple[float, float]:
    """
    Position at a local (north, east) offset from a reference point.

    Args:
        lat0: Reference latitude (degrees).
        lon0: Reference longitude (degrees).
        north_m: North offset in meters.
        east_m: East offset in meters.

    Returns:
        (lat, lon) in degrees.
    """
    plane = LocalTangentPlane()
    plane.set_origin(lat0, lon0)
    return plane.to_lat_lon(north_m, east_m)


def make_fix(
    north_m: float = 0.0,
    east_m: float = 0.0,
    t_ms: int = 0,
    accuracy_m: Optional[float] = 5.0,
    origin: Tuple[float, float] = (REFERENCE_LAT, REFERENCE_LON),
    altitude_m: Optional[float] = None,
) -> RawFix:
    """
    Raw fix at a local offset from origin.

    Args:
        north_m: North offset in meters.
        east_m: East offset in meters.
        t_ms: Fix timestamp in milliseconds.
        accuracy_m: Reported accuracy (None = not reported).
        origin: Reference (lat, lon).
        altitude_m: Optional altitude.

    Returns:
        RawFix instance.
    """
    lat, lon = offset_position(origin[0], origin[1], north_m, east_m)
    return RawFix(
        latitude=lat,
        longitude=lon,
        timestamp_ms=t_ms,
        accuracy_m=accuracy_m,
        altitude_m=altitude_m,
    )


def make_location(
    north_m: float = 0.0,
    east_m: float = 0.0,
    t_ms: int = 0,
    accuracy_m: float = 5.0,
    origin: Tuple[float, float] = (REFERENCE_LAT, REFERENCE_LON),
    altitude_m: Optional[float] = None,
) -> FilteredLocation:
    """Filtered location at a local offset from origin."""
    lat, lon = offset_position(origin[0], origin[1], north_m, east_m)
    return FilteredLocation(
        latitude=lat,
        longitude=lon,
        accuracy_m=accuracy_m,
        speed_mps=0.0,
        timestamp_ms=t_ms,
        altitude_m=altitude_m,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def reference_point() -> Tuple[float, float]:
    """
    Reference (lat, lon) used as the origin for offset fixes.

    Returns:
        Tuple of (lat, lon) in degrees.
    """
    return (REFERENCE_LAT, REFERENCE_LON)


@pytest.fixture
def fix_factory() -> Callable[..., RawFix]:
    """
    Factory building raw fixes at (north, east) offsets.

    Returns:
        make_fix helper.
    """
    return make_fix


@pytest.fixture
def location_factory() -> Callable[..., FilteredLocation]:
    """
    Factory building filtered locations at (north, east) offsets.

    Returns:
        make_location helper.
    """
    return make_location


@pytest.fixture
def metrics() -> MetricsCollector:
    """
    Fresh metrics collector for one test.

    Returns:
        MetricsCollector instance.
    """
    return MetricsCollector()
