from typing import Dict, List, Optional

import pytest

from flightboard.airports import AIRPORTS
from flightboard.exceptions import FeedUnavailable
from flightboard.models import AircraftState, AirportSchedule, RouteRecord, TrackPoint

# Fukuoka RJFF
FUK_LAT = 33.5859
FUK_LON = 130.451


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_aircraft(
    icao24: str,
    lat: float = FUK_LAT - 0.5,
    lon: float = FUK_LON,
    callsign: Optional[str] = None,
    true_track: Optional[float] = None,
    on_ground: bool = False,
    altitude: Optional[float] = 3000.0,
) -> AircraftState:
    return AircraftState(
        icao24=icao24,
        callsign=callsign,
        latitude=lat,
        longitude=lon,
        altitude=altitude,
        ground_speed=120.0,
        true_track=true_track,
        on_ground=on_ground,
        last_contact=1_700_000_000,
    )


class FakePositionFeed:
    """Returns scripted responses in order; an exception instance is raised instead."""

    def __init__(self, responses=None):
        self.responses: List = list(responses or [])
        self.calls: List[tuple] = []
        self.default: List[AircraftState] = []

    def push(self, response) -> None:
        self.responses.append(response)

    def fetch_live_aircraft(self, lat, lon, radius_km):
        self.calls.append((lat, lon, radius_km))
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return [a.copy() for a in response]


class FakeScheduleFeed:
    def __init__(self, schedules: Optional[Dict[str, AirportSchedule]] = None):
        self.schedules = schedules or {}
        self.calls: List[str] = []
        self.fail = False

    def fetch_schedule(self, airport_code):
        self.calls.append(airport_code)
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise FeedUnavailable('schedule down', source='fake')
        return self.schedules.get(airport_code, AirportSchedule(airport_code=airport_code))


class FakeRouteLookup:
    def __init__(self, routes: Optional[Dict[str, RouteRecord]] = None):
        self.routes = routes or {}
        self.calls: List[str] = []
        self.fail = False

    def lookup_route(self, identifier):
        self.calls.append(identifier)
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise FeedUnavailable('route lookup down', source='fake')
        return self.routes.get(identifier)


class FakeTrackLookup:
    def __init__(self, tracks: Optional[Dict[str, List[TrackPoint]]] = None):
        self.tracks = tracks or {}
        self.calls: List[str] = []
        self.fail = False

    def fetch_track(self, icao24):
        self.calls.append(icao24)
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise FeedUnavailable('track lookup down', source='fake')
        return list(self.tracks.get(icao24, []))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fukuoka():
    return AIRPORTS['fukuoka']


@pytest.fixture
def tokyo():
    return AIRPORTS['tokyo']


@pytest.fixture
def position_feed():
    return FakePositionFeed()
