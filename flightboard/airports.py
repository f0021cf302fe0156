"""
Tracked airport definitions.

An airport entry may stand for a metro area served by several airports
(e.g. Tokyo = Haneda + Narita). Such entries list their members as
sub-airports; every member's ICAO and IATA code then counts as "this
airport" for classification and schedule loading.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from flightboard.exceptions import UnknownAirport
from flightboard.geo import haversine_distance


@dataclass(frozen=True)
class SubAirport:
    """One physical airport within a multi-airport area."""
    name: str
    icao: str
    iata: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class AirportConfig:
    """A trackable airport (or metro area)."""
    id: str
    name: str
    icao: str
    iata: str
    latitude: float
    longitude: float
    radius_km: float
    sub_airports: Tuple[SubAirport, ...] = field(default_factory=tuple)

    @property
    def codes(self) -> FrozenSet[str]:
        """Every ICAO/IATA code that identifies this airport."""
        codes = set(self.icao.split('/')) | set(self.iata.split('/'))
        for sub in self.sub_airports:
            codes.add(sub.icao)
            codes.add(sub.iata)
        return frozenset(c.strip().upper() for c in codes if c and c.strip())

    def matches(self, code: Optional[str]) -> bool:
        """True if `code` names this airport or one of its sub-airports."""
        if not code:
            return False
        return code.strip().upper() in self.codes

    @property
    def schedule_codes(self) -> List[str]:
        """IATA codes whose timetables make up this airport's schedule."""
        if self.sub_airports:
            return [sub.iata for sub in self.sub_airports]
        return [self.iata]

    def reference_point(self, lat: float, lon: float) -> Tuple[float, float]:
        """
        Coordinates to measure bearing against for an aircraft at (lat, lon).

        Single airports use their own coordinates; multi-airport areas use
        the nearest member airport.
        """
        if not self.sub_airports:
            return self.latitude, self.longitude
        nearest = min(
            self.sub_airports,
            key=lambda sub: haversine_distance(lat, lon, sub.latitude, sub.longitude),
        )
        return nearest.latitude, nearest.longitude


AIRPORTS: Dict[str, AirportConfig] = {
    'fukuoka': AirportConfig(
        id='fukuoka',
        name='Fukuoka',
        icao='RJFF',
        iata='FUK',
        latitude=33.5859,
        longitude=130.451,
        radius_km=100,
    ),
    'tokyo': AirportConfig(
        id='tokyo',
        name='Tokyo (Haneda + Narita)',
        icao='RJTT/RJAA',
        iata='HND/NRT',
        # Midpoint of the two airports
        latitude=35.657,
        longitude=140.083,
        radius_km=120,
        sub_airports=(
            SubAirport(name='Haneda', icao='RJTT', iata='HND', latitude=35.5534, longitude=139.7811),
            SubAirport(name='Narita', icao='RJAA', iata='NRT', latitude=35.7720, longitude=140.3929),
        ),
    ),
    'incheon': AirportConfig(
        id='incheon',
        name='Seoul Incheon',
        icao='RKSI',
        iata='ICN',
        latitude=37.4602,
        longitude=126.4407,
        radius_km=100,
    ),
}

DEFAULT_AIRPORT = 'fukuoka'


def get_airport(airport_id: str) -> AirportConfig:
    """Look up a configured airport, raising UnknownAirport if absent."""
    try:
        return AIRPORTS[airport_id]
    except KeyError:
        raise UnknownAirport(airport_id) from None
