"""
Route reconciliation - matches live callsigns to routes and timetables.

Live telemetry and airport timetables name the same flight differently:
transponders broadcast ICAO-style callsigns ('JAL910', 'CES 586') while
timetables use IATA flight numbers ('JL910'). Identifiers are
normalized, and 2-character IATA carrier prefixes are translated to
their 3-letter ICAO equivalents before comparing.

Route lookups are cached per normalized identifier, including negative
results, so each identifier reaches the upstream lookup at most once
per cache lifetime no matter how many polls it shows up in.
"""

import logging
import re
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from flightboard.cache import TTLCache
from flightboard.config import config
from flightboard.exceptions import FeedUnavailable
from flightboard.ingestion.gateways import RouteLookup
from flightboard.models import AirportSchedule, Direction, RouteRecord, ScheduledFlight

logger = logging.getLogger(__name__)

_ICAO_RE = re.compile(r'^([A-Z]{3})(\d{1,4}[A-Z]?)$')
_IATA_RE = re.compile(r'^([A-Z0-9]{2})(\d{1,4}[A-Z]?)$')
_WHITESPACE_RE = re.compile(r'\s+')

# IATA (2-char) to ICAO (3-letter) airline designators
IATA_TO_ICAO_AIRLINE: Dict[str, str] = {
    # Japan
    'JL': 'JAL',  # Japan Airlines
    'NH': 'ANA',  # All Nippon Airways
    'GK': 'JJP',  # Jetstar Japan
    'MM': 'APJ',  # Peach Aviation
    'BC': 'SKY',  # Skymark
    '7G': 'SFJ',  # StarFlyer
    'HD': 'ADO',  # Air Do
    '6J': 'SNJ',  # Solaseed Air
    'NU': 'JTA',  # Japan Transocean Air
    'IJ': 'SJO',  # Spring Japan
    'ZG': 'TZP',  # ZIPAIR
    'JH': 'FDA',  # Fuji Dream Airlines
    'OC': 'ORC',  # Oriental Air Bridge
    # Korea
    'KE': 'KAL',  # Korean Air
    'OZ': 'AAR',  # Asiana
    '7C': 'JJA',  # Jeju Air
    'LJ': 'JNA',  # Jin Air
    'TW': 'TWB',  # T'way Air
    'BX': 'ABL',  # Air Busan
    'RS': 'ASV',  # Air Seoul
    # China, Taiwan, Hong Kong
    'MU': 'CES',  # China Eastern
    'CA': 'CCA',  # Air China
    'CZ': 'CSN',  # China Southern
    'FM': 'CSH',  # Shanghai Airlines
    'HO': 'DKH',  # Juneyao
    '9C': 'CQH',  # Spring Airlines
    'CI': 'CAL',  # China Airlines
    'BR': 'EVA',  # EVA Air
    'IT': 'TTW',  # Tigerair Taiwan
    'JX': 'SJX',  # Starlux
    'CX': 'CPA',  # Cathay Pacific
    'UO': 'HKE',  # HK Express
    # Southeast Asia and beyond
    'SQ': 'SIA',  # Singapore
    'TR': 'TGW',  # Scoot
    'TG': 'THA',  # Thai
    'VN': 'HVN',  # Vietnam Airlines
    'VJ': 'VJC',  # VietJet
    'PR': 'PAL',  # Philippine Airlines
    '5J': 'CEB',  # Cebu Pacific
    'QF': 'QFA',  # Qantas
    'EK': 'UAE',  # Emirates
    'QR': 'QTR',  # Qatar
    # North America and Europe
    'AA': 'AAL',  # American Airlines
    'DL': 'DAL',  # Delta
    'UA': 'UAL',  # United
    'AS': 'ASA',  # Alaska
    'HA': 'HAL',  # Hawaiian
    'AC': 'ACA',  # Air Canada
    'BA': 'BAW',  # British Airways
    'LH': 'DLH',  # Lufthansa
    'AF': 'AFR',  # Air France
    'KL': 'KLM',  # KLM
    'AY': 'FIN',  # Finnair
    'FX': 'FDX',  # FedEx
    '5X': 'UPS',  # UPS
}


def normalize_identifier(raw: Optional[str]) -> Optional[str]:
    """
    Canonical form of a flight identifier: no whitespace, upper-case.

    Idempotent. 'JL 910', 'jl910' and 'JL910' all become 'JL910'.
    Returns None for empty input.
    """
    if not raw:
        return None
    cleaned = _WHITESPACE_RE.sub('', raw).upper()
    return cleaned or None


def split_identifier(identifier: str) -> Optional[Tuple[str, str]]:
    """
    Split a normalized identifier into (carrier prefix, flight number).

    The 3-letter ICAO form is tried first: 'JAL910' -> ('JAL', '910'),
    'JL910' -> ('JL', '910'), '7C1101' -> ('7C', '1101').
    """
    match = _ICAO_RE.match(identifier) or _IATA_RE.match(identifier)
    if not match:
        return None
    return match.group(1), match.group(2)


def to_icao_form(identifier: str, table: Mapping[str, str] = IATA_TO_ICAO_AIRLINE) -> str:
    """
    Translate a 2-character carrier prefix to its 3-letter equivalent.

    Identifiers already in 3-letter form, unknown prefixes and anything
    that does not parse pass through unchanged.
    """
    parts = split_identifier(identifier)
    if not parts:
        return identifier
    prefix, number = parts
    if len(prefix) == 2 and prefix in table:
        return table[prefix] + number
    return identifier


def identifiers_match(
    a: Optional[str],
    b: Optional[str],
    table: Mapping[str, str] = IATA_TO_ICAO_AIRLINE,
) -> bool:
    """
    Compare two flight identifiers across naming schemes.

    With {'JL': 'JAL'}, 'JAL910' matches 'JL910' and 'JL 910'.
    """
    na = normalize_identifier(a)
    nb = normalize_identifier(b)
    if not na or not nb:
        return False
    if na == nb:
        return True

    parts_a = split_identifier(na)
    parts_b = split_identifier(nb)
    if not parts_a or not parts_b:
        return False
    # Same scheme and not equal: different flights
    if len(parts_a[0]) == len(parts_b[0]):
        return False

    return to_icao_form(na, table) == to_icao_form(nb, table)


def find_scheduled(
    identifier: Optional[str],
    schedule: Optional[AirportSchedule],
    table: Mapping[str, str] = IATA_TO_ICAO_AIRLINE,
) -> Optional[ScheduledFlight]:
    """Find the timetable row for a live identifier. Arrivals are searched first."""
    if not schedule or not normalize_identifier(identifier):
        return None
    for flight in schedule.arrivals:
        if identifiers_match(identifier, flight.flight_number, table):
            return flight
    for flight in schedule.departures:
        if identifiers_match(identifier, flight.flight_number, table):
            return flight
    return None


def route_from_scheduled(
    flight: ScheduledFlight,
    airport_code: str,
    identifier: Optional[str] = None,
) -> RouteRecord:
    """
    Convert a timetable row into a RouteRecord.

    An arrival row only names the other end (the origin), so the
    destination is the timetable's own airport, and vice versa.
    """
    if flight.direction == Direction.ARRIVAL:
        origin, destination = flight.origin, flight.destination or airport_code
    else:
        origin, destination = flight.origin or airport_code, flight.destination

    return RouteRecord(
        identifier=identifier or normalize_identifier(flight.flight_number),
        origin=origin,
        destination=destination,
        scheduled_time=flight.scheduled_time,
        actual_time=flight.actual_time,
        status=flight.status,
        source='schedule',
    )


class RouteService:
    """
    Resolves flight identifiers to routes with negative caching.

    Resolution order: route cache, upstream route lookup, then the
    airport timetable. Whatever comes out, a route or None, is cached
    under the normalized identifier.
    """

    def __init__(
        self,
        lookup: Optional[RouteLookup],
        cache: Optional[TTLCache] = None,
        prefix_table: Mapping[str, str] = IATA_TO_ICAO_AIRLINE,
    ):
        self.lookup = lookup
        self.cache = cache if cache is not None else TTLCache(
            ttl_seconds=config.cache.route_ttl_seconds,
            max_size=config.cache.route_max_entries,
            name='routes',
        )
        self.prefix_table = prefix_table

        self._lookups = 0
        self._failures = 0

        if lookup is None:
            logger.warning('No route lookup configured - routes come from the schedule only')

    def get_cached(self, identifier: Optional[str]) -> Optional[RouteRecord]:
        """Get a route ONLY from cache (no upstream call)."""
        key = normalize_identifier(identifier)
        if not key:
            return None
        return self.cache.get(key)

    def is_resolved(self, identifier: Optional[str]) -> bool:
        """True if the identifier has a cached result, positive or negative."""
        key = normalize_identifier(identifier)
        return bool(key) and key in self.cache

    def resolve(
        self,
        identifier: Optional[str],
        schedule: Optional[AirportSchedule] = None,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> Optional[RouteRecord]:
        """
        Get route information for a flight identifier.

        Returns cached data if available (a cached miss returns None
        without calling upstream), otherwise asks the route lookup and
        falls back to the schedule.

        `is_current` is checked once the lookup returns; if it reports
        False the result was produced for superseded state and is
        dropped without caching.
        """
        key = normalize_identifier(identifier)
        if not key:
            return None

        entry = self.cache.get_entry(key)
        if entry is not None:
            return entry.value

        route = None
        if self.lookup is not None:
            self._lookups += 1
            try:
                route = self.lookup.lookup_route(key)
            except FeedUnavailable as e:
                # Not cached: the next tick retries
                self._failures += 1
                logger.warning(f'Route lookup unavailable for {key}: {e}')
                return None
            except Exception as e:
                self._failures += 1
                logger.error(f'Route lookup error for {key}: {e}')
                return None

        if is_current is not None and not is_current():
            logger.debug(f'Dropping route for {key}, lookup superseded')
            return None

        if route is not None and not route.is_usable:
            route = None
        if route is not None and route.identifier != key:
            route = RouteRecord(
                identifier=key,
                origin=route.origin,
                destination=route.destination,
                route=route.route,
                scheduled_time=route.scheduled_time,
                actual_time=route.actual_time,
                status=route.status,
                source=route.source,
            )

        if route is None and schedule is not None:
            scheduled = find_scheduled(key, schedule, self.prefix_table)
            if scheduled is not None:
                route = route_from_scheduled(scheduled, schedule.airport_code, identifier=key)

        if route:
            logger.debug(f'Route for {key}: {route.origin} -> {route.destination} ({route.source})')
        else:
            logger.debug(f'No route found for {key}')

        # Cache result (even if None, to avoid repeated failed lookups)
        self.cache.set(key, route)
        return route

    def resolve_many(
        self,
        identifiers: Iterable[Optional[str]],
        schedule: Optional[AirportSchedule] = None,
    ) -> Dict[str, Optional[RouteRecord]]:
        """Resolve a batch of identifiers, each normalized key at most once."""
        results: Dict[str, Optional[RouteRecord]] = {}
        for identifier in identifiers:
            key = normalize_identifier(identifier)
            if key and key not in results:
                results[key] = self.resolve(key, schedule)
        return results

    def known_routes(self) -> Dict[str, RouteRecord]:
        """All cached positive results, keyed by normalized identifier."""
        return {key: route for key, route in self.cache.items() if route is not None}

    def clear(self) -> None:
        self.cache.clear()

    @property
    def stats(self) -> dict:
        """Get service statistics."""
        return {
            'cache': self.cache.stats,
            'lookups': self._lookups,
            'failures': self._failures,
        }
