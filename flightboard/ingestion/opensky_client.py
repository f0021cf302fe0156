"""
OpenSky Network API client.

Reference implementation of the PositionFeed and TrackLookup gateways:
- OAuth2 client-credentials authentication (optional, higher rate limits)
- Bounding box queries for the area around an airport
- Track queries for a single aircraft
- Rate limit header tracking with a back-off window after HTTP 429

The access token lives in a size-1 TTLCache whose entry expires a safety
margin before the token itself does.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

import requests

from flightboard.cache import TTLCache
from flightboard.config import config
from flightboard.exceptions import FeedUnavailable
from flightboard.geo import BoundingBox
from flightboard.models import AircraftState, TrackPoint

logger = logging.getLogger(__name__)

_TOKEN_KEY = 'access_token'


@dataclass
class RateLimitInfo:
    """Latest rate limit headers reported by OpenSky."""
    remaining: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    blocked_until: float = 0.0


def _header_int(headers, name: str) -> Optional[int]:
    value = headers.get(name) if headers is not None else None
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class OpenSkyClient:
    """
    Client for OpenSky Network API.

    Handles:
    - GET requests to /states/all and /tracks/all
    - Optional OAuth2 authentication
    - Bounding box filtering
    - Cooperative back-off while rate limited
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: str = 'https://opensky-network.org/api',
        auth_url: Optional[str] = None,
        timeout: float = 30,
        token_margin_seconds: float = 60,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.auth_url = auth_url or config.opensky.auth_url
        self.timeout = timeout
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_margin_seconds = token_margin_seconds
        self._clock = clock or time.time

        if self.is_authenticated:
            logger.info('OpenSky client initialized with OAuth2 credentials')
        else:
            logger.warning('OpenSky client running without authentication (lower rate limits)')

        self.session = session or requests.Session()
        self.rate_limit_info = RateLimitInfo()
        self._token_cache: TTLCache[str] = TTLCache(
            ttl_seconds=0, max_size=1, name='opensky_token', clock=self._clock,
        )

    @classmethod
    def from_config(cls) -> 'OpenSkyClient':
        """Create client from application configuration."""
        return cls(
            client_id=config.opensky.client_id,
            client_secret=config.opensky.client_secret,
            base_url=config.opensky.base_url,
            auth_url=config.opensky.auth_url,
            timeout=config.opensky.timeout_seconds,
            token_margin_seconds=config.cache.token_safety_margin_seconds,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_access_token(self) -> Optional[str]:
        """
        Return a valid bearer token, fetching a new one when the cached one expires.

        Returns None in anonymous mode or if the token endpoint fails, in
        which case requests fall back to anonymous access.
        """
        if not self.is_authenticated:
            return None

        token = self._token_cache.get(_TOKEN_KEY)
        if token:
            return token

        try:
            response = self.session.post(
                self.auth_url,
                data={
                    'grant_type': 'client_credentials',
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f'Failed to get OpenSky token: {e}')
            logger.warning('Falling back to anonymous mode')
            return None

        token = payload.get('access_token')
        if not token:
            logger.error('OpenSky token response missing access_token')
            return None

        expires_in = float(payload.get('expires_in', 0))
        ttl = max(0.0, expires_in - self.token_margin_seconds)
        self._token_cache.set(_TOKEN_KEY, token, ttl=ttl)
        logger.info(f'OpenSky token obtained (valid for {expires_in:.0f}s)')
        return token

    def _record_rate_limit(self, response) -> None:
        headers = getattr(response, 'headers', None)
        remaining = _header_int(headers, 'x-rate-limit-remaining')
        retry_after = _header_int(headers, 'x-rate-limit-retry-after-seconds')
        if remaining is not None:
            self.rate_limit_info.remaining = remaining
        if retry_after is not None:
            self.rate_limit_info.retry_after_seconds = retry_after

    def _get(self, endpoint: str, params: dict) -> Any:
        """
        Authenticated GET returning parsed JSON.

        Raises:
            FeedUnavailable on network/API errors, while backing off after
            a 429, or on unparseable responses
        """
        now = self._clock()
        if now < self.rate_limit_info.blocked_until:
            wait = self.rate_limit_info.blocked_until - now
            raise FeedUnavailable(f'Rate limited, retry in {wait:.0f}s', source='opensky')

        headers = {}
        token = self._get_access_token()
        if token:
            headers['Authorization'] = f'Bearer {token}'

        url = f'{self.base_url}{endpoint}'
        logger.debug(f'Fetching {url} params={params}')

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            self._record_rate_limit(response)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout as e:
            logger.error('OpenSky API timeout')
            raise FeedUnavailable('OpenSky API timeout', source='opensky') from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 429:
                retry_after = self.rate_limit_info.retry_after_seconds or 60
                self.rate_limit_info.blocked_until = self._clock() + retry_after
                logger.warning(f'OpenSky rate limit exceeded, backing off {retry_after}s')
            elif status == 404:
                # OpenSky answers 404 when it simply has no data
                logger.info(f'No OpenSky data for {endpoint}')
                return None
            else:
                logger.error(f'OpenSky API error: {status}')
            raise FeedUnavailable(f'OpenSky HTTP {status}', source='opensky') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'OpenSky request failed: {e}')
            raise FeedUnavailable(str(e), source='opensky') from e
        except ValueError as e:
            logger.error(f'OpenSky returned invalid JSON: {e}')
            raise FeedUnavailable('Invalid JSON from OpenSky', source='opensky') from e

    def get_states(self, bbox: BoundingBox) -> List[AircraftState]:
        """Fetch current aircraft states inside a bounding box."""
        data = self._get('/states/all', bbox.to_params()) or {}
        states_raw = data.get('states') or []

        logger.info(f'Received {len(states_raw)} state vectors from OpenSky')

        states = []
        for arr in states_raw:
            # Relays and recorded fixtures may serve keyed rows instead of arrays
            if isinstance(arr, Mapping):
                state = AircraftState.from_dict(arr)
            else:
                state = AircraftState.from_state_vector(arr)
            if state and state.has_position():
                states.append(state)

        logger.debug(f'Parsed {len(states)} valid state vectors with positions')
        return states

    def fetch_live_aircraft(self, lat: float, lon: float, radius_km: float) -> List[AircraftState]:
        """Fetch states within radius of a center point."""
        bbox = BoundingBox.from_center_radius(lat, lon, radius_km)
        return self.get_states(bbox)

    def fetch_track(self, icao24: str) -> List[TrackPoint]:
        """Fetch the current flight's track for one aircraft."""
        data = self._get('/tracks/all', {'icao24': icao24.lower(), 'time': 0}) or {}
        points = []
        for wp in data.get('path') or []:
            point = TrackPoint.from_waypoint(wp)
            if point:
                points.append(point)
        logger.debug(f'Track for {icao24}: {len(points)} waypoints')
        return points
