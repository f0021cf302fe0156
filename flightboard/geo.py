"""
Great-circle geometry helpers.

All angles are in degrees and all distances in kilometers. Bearings
are normalized to [0, 360) with 0 = true north.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0


def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate great-circle distance between two points in kilometers.

    Uses the Haversine formula for accuracy over short to medium distances.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) *
        math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_distances(
    lats: Sequence[float],
    lons: Sequence[float],
    ref_lat: float,
    ref_lon: float,
) -> np.ndarray:
    """
    Vectorized haversine distance from many points to one reference point.

    Returns an array of distances in kilometers, same length as the inputs.
    """
    lat_rad = np.radians(np.asarray(lats, dtype=np.float64))
    lon_rad = np.radians(np.asarray(lons, dtype=np.float64))
    ref_lat_rad = math.radians(ref_lat)
    ref_lon_rad = math.radians(ref_lon)

    delta_lat = ref_lat_rad - lat_rad
    delta_lon = ref_lon_rad - lon_rad

    a = (
        np.sin(delta_lat / 2) ** 2 +
        np.cos(lat_rad) * math.cos(ref_lat_rad) *
        np.sin(delta_lon / 2) ** 2
    )
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def initial_bearing(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """Initial great-circle bearing from point 1 to point 2, in [0, 360)."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    x = math.sin(delta_lon) * math.cos(lat2_rad)
    y = (
        math.cos(lat1_rad) * math.sin(lat2_rad) -
        math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon)
    )

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360.0) % 360.0


def angular_difference(a: float, b: float) -> float:
    """
    Smallest absolute difference between two compass angles.

    Symmetric and wrapped, so the result is always in [0, 180]:
    10 vs 350 is 20, not 340.
    """
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def cos_deg(degrees: float) -> float:
    """Cosine of angle in degrees."""
    return math.cos(math.radians(degrees))


@dataclass
class BoundingBox:
    """
    Geographic bounding box for area queries.

    OpenSky expects: lamin, lomin, lamax, lomax
    (latitude min, longitude min, latitude max, longitude max)
    """
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @classmethod
    def from_center_radius(
        cls,
        center_lat: float,
        center_lon: float,
        radius_km: float
    ) -> 'BoundingBox':
        """
        Create bounding box from center point and radius.

        Uses approximate conversion: 1 degree ~ 111 km at equator.
        Adjusts for latitude to account for longitude convergence.
        """
        lat_delta = radius_km / 111.0
        lon_delta = radius_km / (111.0 * max(abs(cos_deg(center_lat)), 1e-6))

        return cls(
            lat_min=center_lat - lat_delta,
            lat_max=center_lat + lat_delta,
            lon_min=center_lon - lon_delta,
            lon_max=center_lon + lon_delta,
        )

    def to_params(self) -> dict:
        """Convert to OpenSky API query parameters."""
        return {
            'lamin': self.lat_min,
            'lamax': self.lat_max,
            'lomin': self.lon_min,
            'lomax': self.lon_max,
        }

    def contains(self, lat: float, lon: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lon_min <= lon <= self.lon_max
