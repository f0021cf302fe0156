"""
FlightBoard application bootstrap.

Configures logging and wires a FlightBoard to its feeds. The OpenSky
client is the default position and track feed; schedule and route
sources are plugged in by the embedding application.

Usage:
    python -m flightboard.app [airport_id]
"""

import logging
import sys
import time
from typing import Optional

from flightboard.board import FlightBoard
from flightboard.config import AppConfig, config
from flightboard.ingestion import OpenSkyClient, PositionFeed, RouteLookup, ScheduleFeed, TrackLookup

logger = logging.getLogger(__name__)


def configure_logging(debug: Optional[bool] = None) -> None:
    """Configure root logging in the standard FlightBoard format."""
    debug = config.debug if debug is None else debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def create_board(
    airport_id: Optional[str] = None,
    position_feed: Optional[PositionFeed] = None,
    schedule_feed: Optional[ScheduleFeed] = None,
    route_lookup: Optional[RouteLookup] = None,
    track_lookup: Optional[TrackLookup] = None,
    settings: Optional[AppConfig] = None,
) -> FlightBoard:
    """
    Application factory.

    Without an explicit position feed an OpenSkyClient is created from
    configuration and also serves as the track lookup.
    """
    settings = settings or config

    if position_feed is None:
        client = OpenSkyClient.from_config()
        position_feed = client
        if track_lookup is None:
            track_lookup = client

    return FlightBoard(
        airport_id or settings.default_airport,
        position_feed,
        schedule_feed=schedule_feed,
        route_lookup=route_lookup,
        track_lookup=track_lookup,
        settings=settings,
    )


def run(airport_id: Optional[str] = None, report_interval: float = 30) -> None:
    """Run a board in the foreground, logging a summary periodically."""
    configure_logging()
    board = create_board(airport_id)
    board.start()

    try:
        while True:
            time.sleep(report_interval)
            snapshot = board.classified()
            logger.info(
                f'{board.airport.name}: {snapshot.total} tracked, '
                f'{len(snapshot.arrivals)} arrivals, {len(snapshot.departures)} departures'
            )
    except KeyboardInterrupt:
        logger.info('Shutting down...')
    finally:
        board.stop()


if __name__ == '__main__':
    run(sys.argv[1] if len(sys.argv) > 1 else None)
