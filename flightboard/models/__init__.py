"""
Data models for FlightBoard.

Plain dataclasses shared by the feeds, caches and engine:
1. AircraftState - live telemetry, identity = icao24
2. ScheduledFlight / AirportSchedule - timetable snapshots
3. RouteRecord - resolved origin/destination per flight identifier
4. TrackPoint - position history samples
"""

from flightboard.models.aircraft import AircraftState
from flightboard.models.route import RouteRecord
from flightboard.models.schedule import AirportSchedule, Direction, ScheduledFlight, format_local_time
from flightboard.models.track import TrackPoint

__all__ = [
    'AircraftState',
    'AirportSchedule',
    'Direction',
    'RouteRecord',
    'ScheduledFlight',
    'TrackPoint',
    'format_local_time',
]
