"""
Interfaces of the upstream feeds the engine consumes.

Concrete fetchers live outside the engine; anything with matching
methods can be plugged in. Implementations raise FeedUnavailable on
network or parse failure. A timeout is reported the same way, or as an
empty result; callers treat both as "no new data".
"""

from typing import List, Optional, Protocol

from flightboard.models import AircraftState, AirportSchedule, RouteRecord, TrackPoint


class PositionFeed(Protocol):
    """Live aircraft states around a point. May under-report."""

    def fetch_live_aircraft(self, lat: float, lon: float, radius_km: float) -> List[AircraftState]:
        ...


class ScheduleFeed(Protocol):
    """Full, non-incremental arrivals/departures snapshot for one airport code."""

    def fetch_schedule(self, airport_code: str) -> AirportSchedule:
        ...


class RouteLookup(Protocol):
    """Origin/destination for a flight identifier, or None if unknown."""

    def lookup_route(self, identifier: str) -> Optional[RouteRecord]:
        ...


class TrackLookup(Protocol):
    """Extended position history for one aircraft."""

    def fetch_track(self, icao24: str) -> List[TrackPoint]:
        ...
