"""
Scheduled flights - the airport timetable side of reconciliation.

A schedule snapshot is always replaced as a whole when it is reloaded;
individual entries are never patched.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

_CLOCK_RE = re.compile(r'(\d{2}):(\d{2})')


class Direction(str, Enum):
    """Movement direction relative to the tracked airport."""
    ARRIVAL = 'arrival'
    DEPARTURE = 'departure'


def format_local_time(value: Optional[str]) -> Optional[str]:
    """
    Extract 'HH:MM' from a local timestamp string without any timezone conversion.

    '2026-02-27 15:40+09:00' -> '15:40'
    """
    if not value:
        return None
    match = _CLOCK_RE.search(value)
    if not match:
        return None
    return f'{match.group(1)}:{match.group(2)}'


@dataclass(frozen=True)
class ScheduledFlight:
    """One timetable row for an arrival or departure."""
    flight_number: str
    direction: Direction
    scheduled_time: Optional[str] = None  # local HH:MM
    origin: Optional[str] = None
    destination: Optional[str] = None
    gate: Optional[str] = None
    terminal: Optional[str] = None
    status: Optional[str] = None
    airline: Optional[str] = None
    actual_time: Optional[str] = None

    def __post_init__(self):
        # Feeds may hand over full local timestamps; keep only the clock time
        object.__setattr__(self, 'scheduled_time', format_local_time(self.scheduled_time))
        object.__setattr__(self, 'actual_time', format_local_time(self.actual_time))

    def to_dict(self) -> dict:
        return {
            'flight_number': self.flight_number,
            'direction': self.direction.value,
            'scheduled_time': self.scheduled_time,
            'actual_time': self.actual_time,
            'origin': self.origin,
            'destination': self.destination,
            'gate': self.gate,
            'terminal': self.terminal,
            'status': self.status,
            'airline': self.airline,
        }


def _time_sort_key(flight: ScheduledFlight):
    # Rows without a time go last
    return (flight.scheduled_time is None, flight.scheduled_time or '')


@dataclass
class AirportSchedule:
    """Full arrivals/departures snapshot for one airport code (or a merged area)."""
    airport_code: str
    arrivals: List[ScheduledFlight] = field(default_factory=list)
    departures: List[ScheduledFlight] = field(default_factory=list)
    fetched_at: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.arrivals and not self.departures

    def all_flights(self) -> List[ScheduledFlight]:
        return self.arrivals + self.departures

    @classmethod
    def merge(cls, airport_code: str, schedules: List['AirportSchedule']) -> 'AirportSchedule':
        """
        Combine several airport snapshots into one, re-sorted by scheduled time.

        Used for metro areas served by more than one airport code. Each
        row keeps its own member airport: arrivals without a destination
        and departures without an origin get the code of the snapshot
        they came from.
        """
        arrivals: List[ScheduledFlight] = []
        departures: List[ScheduledFlight] = []
        fetched = [s.fetched_at for s in schedules if s.fetched_at is not None]
        for schedule in schedules:
            arrivals.extend(
                f if f.destination else replace(f, destination=schedule.airport_code)
                for f in schedule.arrivals
            )
            departures.extend(
                f if f.origin else replace(f, origin=schedule.airport_code)
                for f in schedule.departures
            )

        arrivals.sort(key=_time_sort_key)
        departures.sort(key=_time_sort_key)

        return cls(
            airport_code=airport_code,
            arrivals=arrivals,
            departures=departures,
            fetched_at=min(fetched) if fetched else None,
        )
