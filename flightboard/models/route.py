"""RouteRecord model - resolved origin/destination for one flight identifier."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RouteRecord:
    """
    Route information for a flight.

    `identifier` is the normalized flight identifier the record is keyed
    by. Airport codes may be ICAO ('RJFF') or IATA ('FUK') depending on
    the source.
    """
    identifier: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    route: Optional[str] = None  # e.g. 'RJTT-RJFF'
    scheduled_time: Optional[str] = None
    actual_time: Optional[str] = None
    status: Optional[str] = None
    source: str = 'lookup'

    @classmethod
    def from_route_string(cls, identifier: str, route: str) -> 'RouteRecord':
        """Parse 'ORIG-DEST' (intermediate stops are ignored)."""
        parts = [p.strip().upper() for p in route.split('-') if p.strip()]
        return cls(
            identifier=identifier,
            origin=parts[0] if parts else None,
            destination=parts[-1] if len(parts) > 1 else None,
            route=route,
        )

    @property
    def is_usable(self) -> bool:
        return bool(self.origin or self.destination)

    def to_dict(self) -> dict:
        return {
            'identifier': self.identifier,
            'origin': self.origin,
            'destination': self.destination,
            'route': self.route,
            'scheduled_time': self.scheduled_time,
            'actual_time': self.actual_time,
            'status': self.status,
            'source': self.source,
        }
