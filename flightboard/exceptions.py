"""Exception hierarchy for FlightBoard."""

from typing import Optional


class FlightBoardError(Exception):
    """Base exception for all FlightBoard errors."""


class FeedUnavailable(FlightBoardError):
    """
    An upstream feed could not deliver data.

    Raised by gateways on network, HTTP or parse failures. Never fatal:
    callers keep their previously cached state and retry on the next tick.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class UnknownAirport(FlightBoardError, KeyError):
    """The requested airport id is not configured."""

    def __init__(self, airport_id: str):
        super().__init__(airport_id)
        self.airport_id = airport_id

    def __str__(self) -> str:
        return f'Unknown airport: {self.airport_id!r}'
