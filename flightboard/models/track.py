"""
TrackPoint model - one sample of an aircraft's position history.

Track data is append-only: points are never edited, only dropped from
the head of a buffer when it is full or too old.
"""

from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass(frozen=True)
class TrackPoint:
    """Historical position record used for trail rendering."""
    time: float
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    true_track: Optional[float] = None
    ground_speed: Optional[float] = None
    on_ground: bool = False

    @classmethod
    def from_waypoint(cls, wp: List[Any]) -> Optional['TrackPoint']:
        """
        Parse an OpenSky track waypoint.

        Array format: [time, latitude, longitude, baro_altitude, true_track, on_ground]
        """
        if not wp or len(wp) < 3 or wp[1] is None or wp[2] is None:
            return None
        return cls(
            time=wp[0],
            latitude=wp[1],
            longitude=wp[2],
            altitude=wp[3] if len(wp) > 3 else None,
            true_track=wp[4] if len(wp) > 4 else None,
            on_ground=bool(wp[5]) if len(wp) > 5 else False,
        )

    def to_list(self) -> list:
        return [self.time, self.latitude, self.longitude, self.altitude, self.true_track, self.on_ground]
