"""
Scan/update scheduler - two-speed polling of the live position feed.

The aircraft around an airport are "locked" by a full rescan and then
followed with cheap position updates:

1. Rescan (slow timer, default 120 s): query the whole area and replace
   the tracked set wholesale.
2. Update (fast timer, default 3 s): query again, but only refresh the
   positions of aircraft already tracked.

Newcomers therefore show up only at the next rescan, and aircraft that
drop out of a poll keep their last position until the next rescan
removes them. The set never drifts between rescans.

Timers advance only while the consumer is visible. Each airport switch
bumps a generation counter; a feed response tagged with an old
generation is discarded instead of being applied to the new airport.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional

from flightboard.airports import AirportConfig
from flightboard.config import config
from flightboard.exceptions import FeedUnavailable
from flightboard.ingestion.gateways import PositionFeed
from flightboard.models import AircraftState
from flightboard.tracking.tracked_set import TrackedSet

logger = logging.getLogger(__name__)

AircraftCallback = Callable[[List[AircraftState]], None]


class SchedulerState(str, Enum):
    UNLOCKED = 'unlocked'  # no population yet (startup or after airport switch)
    LOCKED = 'locked'


class ScanScheduler:
    """
    Drives rescans and position updates for one airport at a time.

    Call `tick()` periodically (or use `start_background()`); the
    scheduler decides which fetch, if any, is due.
    """

    def __init__(
        self,
        airport: AirportConfig,
        position_feed: PositionFeed,
        update_interval: Optional[float] = None,
        rescan_interval: Optional[float] = None,
        radius_factor: Optional[float] = None,
        include_on_ground: Optional[bool] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.airport = airport
        self.feed = position_feed
        self.update_interval = update_interval if update_interval is not None else config.scan.update_interval
        self.rescan_interval = rescan_interval if rescan_interval is not None else config.scan.rescan_interval
        self.radius_factor = radius_factor if radius_factor is not None else config.scan.radius_factor
        self.include_on_ground = (
            include_on_ground if include_on_ground is not None else config.scan.include_on_ground
        )
        self._clock = clock or time.time

        self.tracked = TrackedSet(airport.id)
        self.state = SchedulerState.UNLOCKED

        self._state_lock = threading.RLock()
        # Held for the duration of a feed call; never waited on
        self._inflight = threading.Lock()

        self._generation = 0
        self._visible = True
        self._last_tick: Optional[float] = None
        self._fast_elapsed = 0.0
        self._slow_elapsed = 0.0
        self._rescan_due = True

        self._rescan_callbacks: List[AircraftCallback] = []
        self._update_callbacks: List[AircraftCallback] = []

        self._running = False
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self._rescan_count = 0
        self._update_count = 0
        self._error_count = 0
        self._skipped_count = 0
        self._discarded_count = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def radius_km(self) -> float:
        return self.airport.radius_km * self.radius_factor

    def add_rescan_callback(self, callback: AircraftCallback) -> None:
        """Register callback for a successful rescan (receives the new population)."""
        self._rescan_callbacks.append(callback)

    def add_update_callback(self, callback: AircraftCallback) -> None:
        """Register callback for a position update (receives the refreshed aircraft)."""
        self._update_callbacks.append(callback)

    def _notify(self, callbacks: List[AircraftCallback], aircraft: List[AircraftState]) -> None:
        for callback in callbacks:
            try:
                callback(aircraft)
            except Exception as e:
                logger.error(f'Scheduler callback error: {e}')

    def set_visible(self, visible: bool) -> None:
        """Pause or resume polling. Elapsed phase time is kept across a pause."""
        with self._state_lock:
            if visible != self._visible:
                logger.info(f'Scheduler {"resumed" if visible else "paused"} for {self.airport.id}')
            self._visible = visible

    def tick(self) -> Optional[str]:
        """
        Advance the phase timers and run whichever fetch is due.

        Returns 'rescan', 'update' or None.
        """
        now = self._clock()
        with self._state_lock:
            elapsed = now - self._last_tick if self._last_tick is not None else 0.0
            self._last_tick = now
            if not self._visible:
                return None

            self._fast_elapsed += elapsed
            self._slow_elapsed += elapsed

            action = None
            if self.state == SchedulerState.UNLOCKED:
                # Keep retrying at the fast cadence until something is locked
                if self._rescan_due or self._fast_elapsed >= self.update_interval:
                    action = 'rescan'
            elif self._slow_elapsed >= self.rescan_interval:
                action = 'rescan'
            elif self._fast_elapsed >= self.update_interval:
                action = 'update'

            if action == 'rescan':
                self._rescan_due = False
                self._fast_elapsed = 0.0
                self._slow_elapsed = 0.0
            elif action == 'update':
                self._fast_elapsed = 0.0

        if action == 'rescan':
            self.rescan()
        elif action == 'update':
            self.update_positions()
        return action

    def _fetch(self, generation: int, airport: AirportConfig) -> Optional[List[AircraftState]]:
        """Call the feed; None on failure. Errors never escape the tick loop."""
        try:
            return self.feed.fetch_live_aircraft(airport.latitude, airport.longitude, self.radius_km)
        except FeedUnavailable as e:
            self._error_count += 1
            logger.warning(f'Position feed unavailable for {airport.id} (generation {generation}): {e}')
        except Exception as e:
            self._error_count += 1
            logger.error(f'Position feed error for {airport.id}: {e}')
        return None

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation:
            self._discarded_count += 1
            logger.info(f'Discarding response for superseded generation {generation}')
            return False
        return True

    def rescan(self) -> Optional[List[AircraftState]]:
        """
        Fetch the full area and replace the tracked set.

        Returns the new population, or None if nothing was replaced
        (feed failure, empty result, overlapping call or airport switch).
        """
        if not self._inflight.acquire(blocking=False):
            self._skipped_count += 1
            logger.debug('Rescan skipped, another fetch is in flight')
            return None

        try:
            with self._state_lock:
                generation = self._generation
                airport = self.airport

            states = self._fetch(generation, airport)
            if states is None:
                return None

            candidates = [
                s for s in states
                if s.has_position() and (self.include_on_ground or not s.on_ground)
            ]

            with self._state_lock:
                if not self._is_current(generation):
                    return None
                if not candidates:
                    logger.info(
                        f'Rescan of {airport.id} found no aircraft, '
                        f'keeping {len(self.tracked)} tracked'
                    )
                    return None

                population = self.tracked.replace(candidates, self._clock())
                was_unlocked = self.state == SchedulerState.UNLOCKED
                self.state = SchedulerState.LOCKED
                self._rescan_count += 1

            if was_unlocked:
                logger.info(f'Locked {len(population)} aircraft around {airport.name}')
            else:
                logger.debug(f'Rescan of {airport.id}: {len(population)} aircraft')
        finally:
            self._inflight.release()

        self._notify(self._rescan_callbacks, population)
        return population

    def update_positions(self) -> Optional[List[AircraftState]]:
        """
        Refresh positions of tracked aircraft only.

        No-op until the first successful rescan. Returns the refreshed
        aircraft, or None if nothing was applied.
        """
        if self.state != SchedulerState.LOCKED:
            return None

        if not self._inflight.acquire(blocking=False):
            self._skipped_count += 1
            logger.debug('Update skipped, another fetch is in flight')
            return None

        try:
            with self._state_lock:
                generation = self._generation
                airport = self.airport

            states = self._fetch(generation, airport)
            if states is None:
                return None

            with self._state_lock:
                if not self._is_current(generation):
                    return None
                refreshed = self.tracked.apply_positions(
                    [s for s in states if s.has_position()], self._clock(),
                )
                self._update_count += 1

            logger.debug(f'Updated {len(refreshed)}/{len(self.tracked)} tracked aircraft')
        finally:
            self._inflight.release()

        self._notify(self._update_callbacks, refreshed)
        return refreshed

    def reset(self, airport: AirportConfig) -> int:
        """
        Switch to another airport.

        Clears the tracked set and starts over unlocked. Returns the new
        generation; anything fetched for an older one is discarded.
        """
        with self._state_lock:
            self._generation += 1
            self.airport = airport
            self.tracked.clear()
            self.tracked.airport_id = airport.id
            self.state = SchedulerState.UNLOCKED
            self._last_tick = None
            self._fast_elapsed = 0.0
            self._slow_elapsed = 0.0
            self._rescan_due = True
            generation = self._generation

        logger.info(f'Scheduler reset to {airport.id} (generation {generation})')
        return generation

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run the tick loop continuously.

        This method blocks - use start_background() for non-blocking.
        """
        interval = interval or config.scan.tick_interval
        self._running = True

        logger.info(f'Starting scheduler for {self.airport.id} (tick={interval}s)')

        while self._running:
            try:
                self.tick()
            except Exception as e:
                self._error_count += 1
                logger.error(f'Scheduler tick error: {e}')
            time.sleep(interval)

        logger.info('Scheduler stopped')

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start the tick loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Scheduler already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            daemon=True,
        )
        self._thread.start()
        logger.info('Background scheduler started')

    def stop(self) -> None:
        """Stop the background tick loop."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def stats(self) -> dict:
        """Get scheduler statistics."""
        return {
            'airport': self.airport.id,
            'state': self.state.value,
            'visible': self._visible,
            'generation': self._generation,
            'tracked': len(self.tracked),
            'rescan_count': self._rescan_count,
            'update_count': self._update_count,
            'error_count': self._error_count,
            'skipped_count': self._skipped_count,
            'discarded_count': self._discarded_count,
            'last_rescan_at': self.tracked.last_rescan_at,
            'last_update_at': self.tracked.last_update_at,
        }
