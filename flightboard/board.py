"""
FlightBoard - the consumer-facing engine for one tracked airport.

Ties the pieces together:
- ScanScheduler keeps the locked aircraft set fresh
- ScheduleService loads the airport timetable
- RouteService resolves callsigns to routes (lookup, then timetable)
- TrackHistory records trails from every applied position
- classify_all splits the tracked set into arrivals and departures

All airport-scoped state (tracked set, routes, selected-aircraft tracks,
trails, loaded schedule) is switched together by `switch_airport()`.
Work started for a previous airport is discarded when it completes.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from flightboard.airports import AirportConfig, get_airport
from flightboard.analytics.classification import ClassifiedSnapshot, classify_all
from flightboard.cache import ScheduleCache, TTLCache
from flightboard.config import AppConfig, config
from flightboard.exceptions import FeedUnavailable
from flightboard.ingestion.gateways import PositionFeed, RouteLookup, ScheduleFeed, TrackLookup
from flightboard.models import AircraftState, AirportSchedule, RouteRecord, TrackPoint
from flightboard.services.routes import RouteService, normalize_identifier
from flightboard.services.schedule import ScheduleService
from flightboard.tracking.scheduler import ScanScheduler
from flightboard.tracking.track_history import TrackHistory

logger = logging.getLogger(__name__)


@dataclass
class SelectedAircraft:
    """Detail view of one aircraft picked by the consumer."""
    icao24: str
    aircraft: Optional[AircraftState]
    route: Optional[RouteRecord]
    track: List[TrackPoint] = field(default_factory=list)
    track_source: str = 'history'  # 'lookup' or 'history'

    def to_dict(self) -> dict:
        return {
            'icao24': self.icao24,
            'aircraft': self.aircraft.to_dict() if self.aircraft else None,
            'route': self.route.to_dict() if self.route else None,
            'track': [p.to_list() for p in self.track],
            'track_source': self.track_source,
        }


class FlightBoard:
    """
    Live arrivals/departures board for one airport at a time.

    Drive it with `tick()` from your own loop, or `start()` a background
    thread. Readers get snapshot copies and never block on the network.
    """

    def __init__(
        self,
        airport_id: Optional[str],
        position_feed: PositionFeed,
        schedule_feed: Optional[ScheduleFeed] = None,
        route_lookup: Optional[RouteLookup] = None,
        track_lookup: Optional[TrackLookup] = None,
        settings: Optional[AppConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or config
        self._clock = clock or time.time
        self.airport: AirportConfig = get_airport(airport_id or self.settings.default_airport)
        self.track_lookup = track_lookup

        scan = self.settings.scan
        self.scheduler = ScanScheduler(
            self.airport,
            position_feed,
            update_interval=scan.update_interval,
            rescan_interval=scan.rescan_interval,
            radius_factor=scan.radius_factor,
            include_on_ground=scan.include_on_ground,
            clock=self._clock,
        )

        caches = self.settings.cache
        self.route_service = RouteService(
            route_lookup,
            TTLCache(caches.route_ttl_seconds, caches.route_max_entries, name='routes', clock=self._clock),
        )
        self.schedule_service = ScheduleService(
            schedule_feed,
            ScheduleCache(
                caches.schedule_ttl_seconds,
                caches.schedule_refresh_floor_seconds,
                max_size=caches.schedule_max_entries,
                clock=self._clock,
            ),
            clock=self._clock,
        )
        self.selected_tracks: TTLCache[List[TrackPoint]] = TTLCache(
            caches.selected_track_ttl_seconds,
            caches.selected_track_max_entries,
            name='selected_tracks',
            clock=self._clock,
        )

        track = self.settings.track
        self.history = TrackHistory(
            min_interval=track.min_interval_seconds,
            max_points=track.max_points,
            max_age=track.max_age_seconds,
            max_buffers=track.max_buffers,
            clock=self._clock,
        )
        self.sweep_interval = track.sweep_interval_seconds

        self._schedule: Optional[AirportSchedule] = None
        self._last_sweep = self._clock()
        self._lock = threading.RLock()

        self._running = False
        self._thread: Optional[threading.Thread] = None

        self.scheduler.add_rescan_callback(self._record_positions)
        self.scheduler.add_update_callback(self._record_positions)

        logger.info(f'FlightBoard ready for {self.airport.name} ({self.airport.id})')

    def _record_positions(self, aircraft: List[AircraftState]) -> None:
        self.history.record_many(aircraft, self._clock())

    @property
    def generation(self) -> int:
        return self.scheduler.generation

    # -- driving -----------------------------------------------------------

    def tick(self) -> Optional[str]:
        """
        Run one engine cycle.

        Lets the scheduler fetch whatever is due, keeps the schedule
        fresh, resolves routes for newly seen callsigns and periodically
        sweeps old trails. Nothing is fetched while hidden.
        """
        action = self.scheduler.tick()
        if not self.scheduler.visible:
            return action

        self.refresh_schedule()
        self.resolve_pending_routes()

        now = self._clock()
        if now - self._last_sweep >= self.sweep_interval:
            self._last_sweep = now
            self.history.sweep(now)
            self.selected_tracks.purge_expired()

        return action

    def refresh_schedule(self) -> Optional[AirportSchedule]:
        """Load the airport schedule if the cached copy is stale."""
        with self._lock:
            generation = self.generation
            airport = self.airport

        schedule = self.schedule_service.get_schedule(airport)

        with self._lock:
            if generation != self.generation:
                logger.info(f'Discarding schedule for {airport.id}, airport switched')
                return None
            if schedule is not None:
                self._schedule = schedule
            return self._schedule

    def resolve_pending_routes(self) -> int:
        """Resolve routes for tracked callsigns not seen before. Returns lookups made."""
        with self._lock:
            generation = self.generation
            schedule = self._schedule

        resolved = 0
        for aircraft in self.scheduler.tracked.snapshot():
            if generation != self.generation:
                break
            key = normalize_identifier(aircraft.callsign)
            if not key or self.route_service.is_resolved(key):
                continue
            # A switch during the lookup must not leave the old airport's route behind
            self.route_service.resolve(
                key, schedule, is_current=lambda: generation == self.generation
            )
            resolved += 1
        return resolved

    # -- reading -----------------------------------------------------------

    def classified(self) -> ClassifiedSnapshot:
        """Tracked aircraft split into arrivals and departures."""
        with self._lock:
            airport = self.airport
            schedule = self._schedule
        return classify_all(
            self.scheduler.tracked.snapshot(),
            airport,
            routes=self.route_service.known_routes(),
            schedule=schedule,
            bearing_threshold=self.settings.classification.bearing_threshold_degrees,
        )

    def routes(self) -> Dict[str, RouteRecord]:
        """Resolved routes keyed by normalized callsign."""
        return self.route_service.known_routes()

    def tracks(self) -> Dict[str, List[TrackPoint]]:
        """Trails with at least two points, keyed by icao24."""
        return self.history.trails(min_points=2)

    def schedule(self) -> Optional[AirportSchedule]:
        with self._lock:
            return self._schedule

    def aircraft(self) -> List[AircraftState]:
        return self.scheduler.tracked.snapshot()

    def select_aircraft(self, icao24: str) -> SelectedAircraft:
        """
        Detail view for one aircraft, including its extended track.

        The track comes from the track lookup (cached per airport) and
        falls back to locally recorded history if the lookup fails or
        returns nothing.
        """
        key = icao24.strip().lower()
        aircraft = self.scheduler.tracked.get(key)
        route = self.route_service.get_cached(aircraft.callsign) if aircraft else None

        entry = self.selected_tracks.get_entry(key)
        if entry is not None:
            return SelectedAircraft(key, aircraft, route, list(entry.value), 'lookup')

        if self.track_lookup is not None:
            generation = self.generation
            try:
                track = self.track_lookup.fetch_track(key)
            except FeedUnavailable as e:
                logger.warning(f'Track lookup unavailable for {key}: {e}')
                track = []
            except Exception as e:
                logger.error(f'Track lookup error for {key}: {e}')
                track = []

            if track and generation == self.generation:
                self.selected_tracks.set(key, track)
                return SelectedAircraft(key, aircraft, route, list(track), 'lookup')

        return SelectedAircraft(key, aircraft, route, self.history.get(key), 'history')

    # -- control -----------------------------------------------------------

    def set_visible(self, visible: bool) -> None:
        self.scheduler.set_visible(visible)

    def switch_airport(self, airport_id: str) -> AirportConfig:
        """
        Move the board to another airport.

        Unknown ids raise UnknownAirport and leave the board untouched.
        """
        airport = get_airport(airport_id)

        with self._lock:
            if airport.id == self.airport.id:
                return airport
            previous = self.airport
            self.airport = airport
            self.scheduler.reset(airport)
            self.route_service.clear()
            self.selected_tracks.clear()
            self.history.clear()
            self._schedule = None

        logger.info(f'Switched airport {previous.id} -> {airport.id}')
        return airport

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run the engine loop continuously.

        This method blocks - use start() for non-blocking.
        """
        interval = interval or self.settings.scan.tick_interval
        self._running = True

        while self._running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f'FlightBoard tick error: {e}')
            time.sleep(interval)

    def start(self, interval: Optional[float] = None) -> None:
        """Start the engine loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('FlightBoard already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            daemon=True,
        )
        self._thread.start()
        logger.info(f'FlightBoard started for {self.airport.id}')

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info('FlightBoard stopped')

    @property
    def stats(self) -> dict:
        """Get engine statistics."""
        return {
            'airport': self.airport.id,
            'scheduler': self.scheduler.stats,
            'routes': self.route_service.stats,
            'schedule': self.schedule_service.stats,
            'selected_tracks': self.selected_tracks.stats,
            'history': self.history.stats,
        }
