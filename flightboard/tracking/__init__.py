"""
Live tracking for FlightBoard.

Two-speed polling of the position feed, the locked per-airport aircraft
set it maintains, and short trail history per aircraft.
"""

from flightboard.tracking.scheduler import ScanScheduler, SchedulerState
from flightboard.tracking.track_history import TrackBuffer, TrackHistory
from flightboard.tracking.tracked_set import TrackedSet

__all__ = ['ScanScheduler', 'SchedulerState', 'TrackBuffer', 'TrackHistory', 'TrackedSet']
