"""
Data ingestion module for FlightBoard.

Defines the feed interfaces the engine depends on, plus an OpenSky
client that implements the position and track feeds.
"""

from flightboard.ingestion.gateways import PositionFeed, RouteLookup, ScheduleFeed, TrackLookup
from flightboard.ingestion.opensky_client import OpenSkyClient

__all__ = ['OpenSkyClient', 'PositionFeed', 'RouteLookup', 'ScheduleFeed', 'TrackLookup']
