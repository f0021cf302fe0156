"""
Airport schedule loading.

Timetables are full snapshots per airport code, cached for ten minutes
with a minimum refresh floor. A failed refresh keeps serving the last
known good snapshot. Metro areas (e.g. Tokyo) load one timetable per
member airport and merge them.
"""

import logging
import time
from typing import Callable, List, Optional

from flightboard.airports import AirportConfig
from flightboard.cache import ScheduleCache
from flightboard.config import config
from flightboard.exceptions import FeedUnavailable
from flightboard.ingestion.gateways import ScheduleFeed
from flightboard.models import AirportSchedule

logger = logging.getLogger(__name__)


class ScheduleService:
    """Loads and caches airport timetables from a ScheduleFeed."""

    def __init__(
        self,
        feed: Optional[ScheduleFeed],
        cache: Optional[ScheduleCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.feed = feed
        self._clock = clock or time.time
        self.cache = cache if cache is not None else ScheduleCache(
            ttl_seconds=config.cache.schedule_ttl_seconds,
            refresh_floor_seconds=config.cache.schedule_refresh_floor_seconds,
            max_size=config.cache.schedule_max_entries,
            clock=self._clock,
        )

        self._fetches = 0
        self._failures = 0

    def _load_code(self, code: str) -> Optional[AirportSchedule]:
        entry = self.cache.get_entry(code)
        if entry is not None:
            return entry.value

        if self.feed is None:
            return None

        self._fetches += 1
        try:
            schedule = self.feed.fetch_schedule(code)
        except FeedUnavailable as e:
            logger.warning(f'Schedule feed unavailable for {code}: {e}')
            return self._fallback(code)
        except Exception as e:
            logger.error(f'Schedule feed error for {code}: {e}')
            return self._fallback(code)

        if schedule.fetched_at is None:
            schedule.fetched_at = self._clock()

        self.cache.set(code, schedule)
        logger.info(
            f'Loaded schedule for {code}: '
            f'{len(schedule.arrivals)} arrivals, {len(schedule.departures)} departures'
        )
        return schedule

    def get_schedule(self, airport: AirportConfig) -> Optional[AirportSchedule]:
        """
        Get the timetable for an airport, merged across its member codes.

        Returns None only when no member code has ever loaded.
        """
        codes = airport.schedule_codes
        snapshots: List[AirportSchedule] = []
        for code in codes:
            schedule = self._load_code(code)
            if schedule is not None:
                snapshots.append(schedule)

        if not snapshots:
            return None
        if len(codes) == 1:
            return snapshots[0]
        return AirportSchedule.merge(airport.iata, snapshots)

    def _fallback(self, code: str) -> Optional[AirportSchedule]:
        self._failures += 1
        stale = self.cache.get_stale(code)
        if stale is None:
            return None
        logger.warning(f'Serving last known good schedule for {code}')
        return stale.value

    def clear(self) -> None:
        self.cache.clear()

    @property
    def stats(self) -> dict:
        return {
            'cache': self.cache.stats,
            'fetches': self._fetches,
            'failures': self._failures,
        }
