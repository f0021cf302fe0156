"""
Arrival/departure classification for tracked aircraft.

Each aircraft is labelled ARRIVAL or DEPARTURE relative to the tracked
airport by an ordered chain of rules; the first rule that produces an
answer wins:

1. Route destination is this airport      -> ARRIVAL
2. Route origin is this airport           -> DEPARTURE
3. Heading points at the airport          -> ARRIVAL, otherwise DEPARTURE
   (bearing aircraft->airport vs. true track, wrapped to <= 180 degrees;
   skipped when the heading is unknown or the aircraft is practically
   overhead, where the bearing is meaningless)
4. Nothing known                          -> ARRIVAL

"This airport" means any ICAO/IATA code of the airport or of one of its
member airports, so a metro area like Tokyo matches both HND and NRT.
Route data beats geometry: a departing aircraft still turning toward the
field is classified by its route.

Distances for the snapshot ordering are computed in one vectorized
NumPy pass over all aircraft.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Mapping, Optional, Tuple

import numpy as np

from flightboard.airports import AirportConfig
from flightboard.config import config
from flightboard.geo import angular_difference, haversine_distance, haversine_distances, initial_bearing
from flightboard.models import AircraftState, AirportSchedule, Direction, RouteRecord
from flightboard.services.routes import find_scheduled, normalize_identifier, route_from_scheduled

logger = logging.getLogger(__name__)


class ClassificationReason(str, Enum):
    """Which rule decided a classification."""
    ROUTE_DESTINATION = 'route_destination'
    ROUTE_ORIGIN = 'route_origin'
    BEARING = 'bearing'
    DEFAULT = 'default'


@dataclass
class Geometry:
    """Position of an aircraft relative to the airport reference point."""
    bearing_to_airport: Optional[float] = None
    heading_difference: Optional[float] = None
    distance_km: Optional[float] = None


@dataclass
class Classification:
    """Result of classifying one aircraft."""
    icao24: str
    direction: Direction
    reason: ClassificationReason
    aircraft: AircraftState
    route: Optional[RouteRecord] = None
    bearing_to_airport: Optional[float] = None
    heading_difference: Optional[float] = None
    distance_km: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'icao24': self.icao24,
            'callsign': self.aircraft.callsign,
            'direction': self.direction.value,
            'reason': self.reason.value,
            'route': self.route.to_dict() if self.route else None,
            'bearing_to_airport': self.bearing_to_airport,
            'heading_difference': self.heading_difference,
            'distance_km': self.distance_km,
            'aircraft': self.aircraft.to_dict(),
        }


RuleResult = Optional[Tuple[Direction, ClassificationReason]]
Rule = Callable[[AirportConfig, Optional[RouteRecord], Geometry, float, float], RuleResult]


def _route_destination_rule(airport, route, geometry, threshold, min_distance) -> RuleResult:
    if route and airport.matches(route.destination):
        return Direction.ARRIVAL, ClassificationReason.ROUTE_DESTINATION
    return None


def _route_origin_rule(airport, route, geometry, threshold, min_distance) -> RuleResult:
    if route and airport.matches(route.origin):
        return Direction.DEPARTURE, ClassificationReason.ROUTE_ORIGIN
    return None


def _bearing_rule(airport, route, geometry, threshold, min_distance) -> RuleResult:
    if geometry.heading_difference is None or geometry.distance_km is None:
        return None
    if geometry.distance_km <= min_distance:
        return None
    if geometry.heading_difference < threshold:
        return Direction.ARRIVAL, ClassificationReason.BEARING
    return Direction.DEPARTURE, ClassificationReason.BEARING


def _default_rule(airport, route, geometry, threshold, min_distance) -> RuleResult:
    return Direction.ARRIVAL, ClassificationReason.DEFAULT


# Evaluated in order, first match wins. The last rule always matches.
CLASSIFICATION_RULES: List[Rule] = [
    _route_destination_rule,
    _route_origin_rule,
    _bearing_rule,
    _default_rule,
]


def measure(aircraft: AircraftState, airport: AirportConfig) -> Geometry:
    """Bearing, heading difference and distance from aircraft to airport."""
    if not aircraft.has_position():
        return Geometry()

    ref_lat, ref_lon = airport.reference_point(aircraft.latitude, aircraft.longitude)
    bearing = initial_bearing(aircraft.latitude, aircraft.longitude, ref_lat, ref_lon)
    distance = haversine_distance(aircraft.latitude, aircraft.longitude, ref_lat, ref_lon)

    difference = None
    if aircraft.true_track is not None:
        difference = angular_difference(aircraft.true_track, bearing)

    return Geometry(bearing_to_airport=bearing, heading_difference=difference, distance_km=distance)


def classify(
    aircraft: AircraftState,
    airport: AirportConfig,
    route: Optional[RouteRecord] = None,
    schedule: Optional[AirportSchedule] = None,
    bearing_threshold: Optional[float] = None,
    min_distance_km: Optional[float] = None,
) -> Classification:
    """
    Classify one aircraft as arriving at or departing from `airport`.

    If no route is given, a route derived from the airport schedule is
    used when the callsign matches a timetable entry.
    """
    threshold = bearing_threshold if bearing_threshold is not None else config.classification.bearing_threshold_degrees
    min_distance = (
        min_distance_km if min_distance_km is not None
        else config.classification.min_bearing_distance_km
    )

    if route is None and schedule is not None:
        scheduled = find_scheduled(aircraft.callsign, schedule)
        if scheduled is not None:
            route = route_from_scheduled(
                scheduled, schedule.airport_code, identifier=normalize_identifier(aircraft.callsign),
            )

    geometry = measure(aircraft, airport)

    for rule in CLASSIFICATION_RULES:
        result = rule(airport, route, geometry, threshold, min_distance)
        if result is not None:
            direction, reason = result
            break

    return Classification(
        icao24=aircraft.icao24,
        direction=direction,
        reason=reason,
        aircraft=aircraft,
        route=route,
        bearing_to_airport=geometry.bearing_to_airport,
        heading_difference=geometry.heading_difference,
        distance_km=geometry.distance_km,
    )


@dataclass
class ClassifiedSnapshot:
    """All tracked aircraft split by direction, nearest first."""
    arrivals: List[Classification] = field(default_factory=list)
    departures: List[Classification] = field(default_factory=list)
    total: int = 0

    def to_dict(self) -> dict:
        return {
            'arrivals': [c.to_dict() for c in self.arrivals],
            'departures': [c.to_dict() for c in self.departures],
            'total': self.total,
        }


def classify_all(
    aircraft_list: List[AircraftState],
    airport: AirportConfig,
    routes: Optional[Mapping[str, Optional[RouteRecord]]] = None,
    schedule: Optional[AirportSchedule] = None,
    bearing_threshold: Optional[float] = None,
) -> ClassifiedSnapshot:
    """
    Classify every aircraft exactly once.

    `routes` maps normalized callsigns to resolved routes (None values
    are cached misses). Both lists are ordered by distance from the
    airport center; aircraft without a position come last.
    """
    routes = routes or {}
    if not aircraft_list:
        return ClassifiedSnapshot()

    lats = [a.latitude if a.has_position() else np.nan for a in aircraft_list]
    lons = [a.longitude if a.has_position() else np.nan for a in aircraft_list]
    distances = haversine_distances(lats, lons, airport.latitude, airport.longitude)
    order = np.argsort(distances, kind='stable')

    snapshot = ClassifiedSnapshot(total=len(aircraft_list))
    for index in order:
        aircraft = aircraft_list[int(index)]
        key = normalize_identifier(aircraft.callsign)
        route = routes.get(key) if key else None
        result = classify(aircraft, airport, route=route, schedule=schedule, bearing_threshold=bearing_threshold)
        if result.direction == Direction.ARRIVAL:
            snapshot.arrivals.append(result)
        else:
            snapshot.departures.append(result)

    logger.debug(
        f'Classified {snapshot.total} aircraft at {airport.id}: '
        f'{len(snapshot.arrivals)} arrivals, {len(snapshot.departures)} departures'
    )
    return snapshot
