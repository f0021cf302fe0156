"""
AircraftState model - live telemetry for one physical aircraft.

Identity is the ICAO24 transponder address, which stays the same for the
lifetime of the airframe (not per flight). Instances held by a tracked
set are mutated in place on position-only refreshes.

OpenSky state vector format (array indices):
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max)
2: origin_country  - Country of registration
3: time_position   - Unix timestamp of last position update
4: last_contact    - Unix timestamp of last message
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
7: baro_altitude   - Barometric altitude (meters)
8: on_ground       - Boolean
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)
11: vertical_rate  - Vertical rate (m/s)
"""

import time
from dataclasses import dataclass, replace
from typing import Any, List, Mapping, Optional


def _clean_callsign(raw: Any) -> Optional[str]:
    if not raw or not isinstance(raw, str):
        return None
    return raw.strip() or None


@dataclass
class AircraftState:
    """
    Current state of a single aircraft.

    Position fields may be None if not reported; `has_position()` tells
    whether the record is usable for tracking.
    """
    icao24: str
    callsign: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    altitude: Optional[float] = None
    ground_speed: Optional[float] = None
    true_track: Optional[float] = None
    on_ground: bool = False
    last_contact: Optional[int] = None
    origin_country: Optional[str] = None

    def __post_init__(self):
        self.icao24 = self.icao24.strip().lower()
        self.callsign = _clean_callsign(self.callsign)

    @classmethod
    def from_state_vector(cls, arr: List[Any]) -> Optional['AircraftState']:
        """
        Parse an OpenSky state vector array.

        Returns None if the array is malformed or has no ICAO24.
        """
        if not arr or len(arr) < 11:
            return None

        icao24 = arr[0]
        if not icao24 or not isinstance(icao24, str):
            return None

        return cls(
            icao24=icao24,
            callsign=arr[1],
            origin_country=arr[2],
            last_contact=arr[4] if arr[4] is not None else arr[3],
            longitude=arr[5],
            latitude=arr[6],
            altitude=arr[7],
            on_ground=bool(arr[8]),
            ground_speed=arr[9],
            true_track=arr[10],
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional['AircraftState']:
        """Build from an OpenSky-compatible mapping (field names as in the array format)."""
        icao24 = data.get('icao24')
        if not icao24 or not isinstance(icao24, str):
            return None

        return cls(
            icao24=icao24,
            callsign=data.get('callsign'),
            origin_country=data.get('origin_country'),
            last_contact=data.get('last_contact'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
            altitude=data.get('baro_altitude', data.get('altitude')),
            on_ground=bool(data.get('on_ground', False)),
            ground_speed=data.get('velocity', data.get('ground_speed')),
            true_track=data.get('true_track'),
        )

    def has_position(self) -> bool:
        """Check if this state has valid position data."""
        return self.latitude is not None and self.longitude is not None

    def apply_position(self, update: 'AircraftState', now: Optional[float] = None) -> None:
        """
        Refresh telemetry in place from a newer observation of the same aircraft.

        The callsign is only replaced when the update carries one.
        """
        if update.icao24 != self.icao24:
            raise ValueError(f'Cannot apply {update.icao24} to {self.icao24}')

        self.latitude = update.latitude
        self.longitude = update.longitude
        self.altitude = update.altitude
        self.ground_speed = update.ground_speed
        self.true_track = update.true_track
        self.on_ground = update.on_ground
        self.callsign = update.callsign or self.callsign
        self.last_contact = update.last_contact or int(now if now is not None else time.time())

    def copy(self) -> 'AircraftState':
        return replace(self)

    @property
    def display_callsign(self) -> str:
        """Callsign for display, with fallback."""
        return self.callsign or self.icao24.upper()

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            'icao24': self.icao24,
            'callsign': self.callsign,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'ground_speed': self.ground_speed,
            'true_track': self.true_track,
            'on_ground': self.on_ground,
            'last_contact': self.last_contact,
            'origin_country': self.origin_country,
        }
