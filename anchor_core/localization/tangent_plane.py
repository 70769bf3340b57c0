"""
Local tangent plane projection.

Converts geodetic coordinates (degrees) to a local (north, east) frame in
meters around a fixed origin, and back. Flat-Earth approximation, valid for
displacements of tens of kilometers; anchor watch stays well under 1 km.
"""

import math
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# WGS-84 equatorial radius (m)
EARTH_RADIUS_M = 6378137.0

# Below this cos(lat0) the origin is treated as polar
_POLAR_COS_EPSILON = 1e-12


def wrap_longitude_deg(lon: float) -> float:
    """Normalise a longitude or longitude difference into [-180, 180)."""
    return (lon + 180.0) % 360.0 - 180.0


class LocalTangentPlane:
    """
    Flat-Earth (north, east) projector anchored at an origin.

    Usage:
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)
        north, east = plane.to_local_ne(52.0001, 8.0001)
        lat, lon = plane.to_lat_lon(north, east)
    """

    def __init__(self):
        """Initialize projector without origin."""
        self._lat0_rad: Optional[float] = None
        self._lon0_rad: Optional[float] = None
        self._cos_lat0: float = 1.0

    @property
    def has_origin(self) -> bool:
        """True once an origin has been set."""
        return self._lat0_rad is not None

    @property
    def origin(self) -> Optional[Tuple[float, float]]:
        """Origin (lat, lon) in degrees, or None if not set."""
        if not self.has_origin:
            return None
        return (math.degrees(self._lat0_rad), math.degrees(self._lon0_rad))

    def set_origin(self, lat: float, lon: float):
        """
        Set projection origin.

        Args:
            lat: Origin latitude (degrees)
            lon: Origin longitude (degrees)
        """
        self._lat0_rad = math.radians(lat)
        self._lon0_rad = math.radians(lon)
        self._cos_lat0 = math.cos(self._lat0_rad)
        logger.debug(f"Tangent plane origin set: lat={lat:.7f}, lon={lon:.7f}")

    def reset(self):
        """Forget the origin."""
        self._lat0_rad = None
        self._lon0_rad = None
        self._cos_lat0 = 1.0

    def to_local_ne(self, lat: float, lon: float) -> Tuple[float, float]:
        """
        Project geodetic coordinates into the local plane.

        Args:
            lat: Latitude (degrees)
            lon: Longitude (degrees)

        Returns:
            (north_m, east_m) relative to the origin
        """
        self._require_origin()

        north = (math.radians(lat) - self._lat0_rad) * EARTH_RADIUS_M
        dlon = math.radians(wrap_longitude_deg(lon - math.degrees(self._lon0_rad)))
        east = dlon * EARTH_RADIUS_M * self._cos_lat0

        return (north, east)

    def to_lat_lon(self, north_m: float, east_m: float) -> Tuple[float, float]:
        """
        Convert local plane coordinates back to geodetic.

        Args:
            north_m: North offset from origin (m)
            east_m: East offset from origin (m)

        Returns:
            (lat, lon) in degrees

        Notes:
            - At a polar origin the east axis is degenerate; the origin's
              longitude is returned unchanged
            - Longitude is normalised into [-180, 180)
        """
        self._require_origin()

        lat_rad = self._lat0_rad + north_m / EARTH_RADIUS_M

        if abs(self._cos_lat0) < _POLAR_COS_EPSILON:
            lon_rad = self._lon0_rad
        else:
            lon_rad = self._lon0_rad + east_m / (EARTH_RADIUS_M * self._cos_lat0)

        return (math.degrees(lat_rad), wrap_longitude_deg(math.degrees(lon_rad)))

    def _require_origin(self):
        if not self.has_origin:
            raise ValueError("Tangent plane origin not set")


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points (haversine).

    Args:
        lat1, lon1: First point (degrees)
        lat2, lon2: Second point (degrees)

    Returns:
        Distance in meters on a sphere of radius EARTH_RADIUS_M
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlam = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    a = min(1.0, a)

    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(a))
