"""
TrackedSet - the locked population of aircraft for one airport.

Membership only changes through `replace()`, which the scheduler calls
on a successful full rescan. Position updates in between touch the
aircraft already tracked and nothing else, so the set never drifts
between rescans.
"""

import threading
from typing import Dict, Iterable, List, Optional

from flightboard.models import AircraftState


class TrackedSet:
    """Thread-safe icao24 -> AircraftState map with rescan/update timestamps."""

    def __init__(self, airport_id: str):
        self.airport_id = airport_id
        self._aircraft: Dict[str, AircraftState] = {}
        self.last_rescan_at: Optional[float] = None
        self.last_update_at: Optional[float] = None
        self._lock = threading.RLock()

    def replace(self, aircraft: Iterable[AircraftState], now: float) -> List[AircraftState]:
        """
        Wholesale replacement with a new population.

        Returns copies of the new members. Duplicate icao24s keep the
        last occurrence.
        """
        members = {a.icao24: a.copy() for a in aircraft}
        with self._lock:
            self._aircraft = members
            self.last_rescan_at = now
            self.last_update_at = now
            return [a.copy() for a in members.values()]

    def apply_positions(self, updates: Iterable[AircraftState], now: float) -> List[AircraftState]:
        """
        Refresh tracked members in place.

        Updates for aircraft outside the set are ignored; members absent
        from `updates` keep their last known position. Returns copies of
        the members that were refreshed.
        """
        applied = []
        with self._lock:
            for update in updates:
                current = self._aircraft.get(update.icao24)
                if current is None:
                    continue
                current.apply_position(update, now)
                applied.append(current.copy())
            self.last_update_at = now
        return applied

    def icao24s(self) -> List[str]:
        with self._lock:
            return list(self._aircraft)

    def get(self, icao24: str) -> Optional[AircraftState]:
        with self._lock:
            aircraft = self._aircraft.get(icao24.lower())
            return aircraft.copy() if aircraft else None

    def snapshot(self) -> List[AircraftState]:
        """Copies of every tracked aircraft."""
        with self._lock:
            return [a.copy() for a in self._aircraft.values()]

    def clear(self) -> None:
        with self._lock:
            self._aircraft = {}
            self.last_rescan_at = None
            self.last_update_at = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._aircraft)

    def __contains__(self, icao24: str) -> bool:
        with self._lock:
            return icao24.lower() in self._aircraft
