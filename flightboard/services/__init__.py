"""Services layer for FlightBoard."""

from flightboard.services.routes import (
    IATA_TO_ICAO_AIRLINE,
    RouteService,
    find_scheduled,
    identifiers_match,
    normalize_identifier,
    route_from_scheduled,
    split_identifier,
    to_icao_form,
)
from flightboard.services.schedule import ScheduleService

__all__ = [
    'IATA_TO_ICAO_AIRLINE',
    'RouteService',
    'ScheduleService',
    'find_scheduled',
    'identifiers_match',
    'normalize_identifier',
    'route_from_scheduled',
    'split_identifier',
    'to_icao_form',
]
