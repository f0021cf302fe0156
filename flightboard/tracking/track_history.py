"""
Track history - short per-aircraft trails built from observed positions.

Each aircraft gets a bounded buffer of its recent positions:
- samples closer than `min_interval` to the newest point are dropped
- at most `max_points` points per aircraft (oldest fall off)
- points older than `max_age` are pruned by `sweep()`
- at most `max_buffers` aircraft; the longest-lived buffer goes first

This is the in-memory counterpart of an append-only position history:
points are never edited, only dropped from the head.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional

from flightboard.config import config
from flightboard.models import AircraftState, TrackPoint

logger = logging.getLogger(__name__)


@dataclass
class TrackBuffer:
    """Ordered positions for one aircraft."""
    icao24: str
    created_at: float
    points: Deque[TrackPoint] = field(default_factory=deque)

    @property
    def newest(self) -> Optional[TrackPoint]:
        return self.points[-1] if self.points else None


class TrackHistory:
    """Thread-safe collection of bounded per-aircraft track buffers."""

    def __init__(
        self,
        min_interval: Optional[float] = None,
        max_points: Optional[int] = None,
        max_age: Optional[float] = None,
        max_buffers: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.min_interval = min_interval if min_interval is not None else config.track.min_interval_seconds
        self.max_points = max_points if max_points is not None else config.track.max_points
        self.max_age = max_age if max_age is not None else config.track.max_age_seconds
        self.max_buffers = max_buffers if max_buffers is not None else config.track.max_buffers
        self._clock = clock or time.time

        self._buffers: Dict[str, TrackBuffer] = {}
        self._lock = threading.RLock()
        self._evictions = 0

    def record(self, aircraft: AircraftState, now: Optional[float] = None) -> bool:
        """
        Append the aircraft's current position to its trail.

        Returns True if a point was added.
        """
        if not aircraft.has_position():
            return False

        now = now if now is not None else self._clock()
        point = TrackPoint(
            time=now,
            latitude=aircraft.latitude,
            longitude=aircraft.longitude,
            altitude=aircraft.altitude,
            true_track=aircraft.true_track,
            ground_speed=aircraft.ground_speed,
            on_ground=aircraft.on_ground,
        )

        with self._lock:
            buffer = self._buffers.get(aircraft.icao24)
            if buffer is None:
                while len(self._buffers) >= self.max_buffers:
                    self._evict_longest_lived()
                buffer = TrackBuffer(
                    icao24=aircraft.icao24,
                    created_at=now,
                    points=deque(maxlen=self.max_points),
                )
                self._buffers[aircraft.icao24] = buffer
            elif buffer.newest is not None and now - buffer.newest.time < self.min_interval:
                return False

            buffer.points.append(point)
        return True

    def record_many(self, aircraft: Iterable[AircraftState], now: Optional[float] = None) -> int:
        """Record a batch of aircraft. Returns the number of points added."""
        now = now if now is not None else self._clock()
        return sum(1 for a in aircraft if self.record(a, now))

    def _evict_longest_lived(self) -> None:
        oldest = min(self._buffers.values(), key=lambda b: b.created_at)
        del self._buffers[oldest.icao24]
        self._evictions += 1
        logger.debug(f'Evicted track buffer for {oldest.icao24}')

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Prune old points and dead buffers, then enforce the buffer cap.

        Returns the number of buffers removed.
        """
        now = now if now is not None else self._clock()
        cutoff = now - self.max_age
        removed = 0

        with self._lock:
            for icao24 in list(self._buffers):
                buffer = self._buffers[icao24]
                while buffer.points and buffer.points[0].time < cutoff:
                    buffer.points.popleft()
                if not buffer.points:
                    del self._buffers[icao24]
                    removed += 1

            while len(self._buffers) > self.max_buffers:
                self._evict_longest_lived()
                removed += 1

        if removed:
            logger.debug(f'Track sweep removed {removed} buffers, {len(self._buffers)} remain')
        return removed

    def get(self, icao24: str) -> List[TrackPoint]:
        """Trail for one aircraft, oldest point first."""
        with self._lock:
            buffer = self._buffers.get(icao24.lower())
            return list(buffer.points) if buffer else []

    def trails(self, min_points: int = 2) -> Dict[str, List[TrackPoint]]:
        """Every trail with at least `min_points` points."""
        with self._lock:
            return {
                icao24: list(buffer.points)
                for icao24, buffer in self._buffers.items()
                if len(buffer.points) >= min_points
            }

    def clear(self) -> None:
        with self._lock:
            self._buffers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffers)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'buffers': len(self._buffers),
                'points': sum(len(b.points) for b in self._buffers.values()),
                'evictions': self._evictions,
            }
