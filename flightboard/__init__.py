"""
FlightBoard - live aircraft positions reconciled with airport schedules.

Tracks the aircraft around an airport with two-speed polling, classifies
each as arriving or departing, and matches callsigns to routes and
timetable entries.
"""

__version__ = '0.1.0'
