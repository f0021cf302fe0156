"""
Configuration management for FlightBoard.

Loads settings from environment variables with sensible defaults.
All tunable policy (poll intervals, cache lifetimes, the bearing
threshold) lives here so the engine modules never hard-code it.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class OpenSkyConfig:
    """OpenSky API configuration."""
    client_id: Optional[str] = os.getenv('OPENSKY_CLIENT_ID') or None
    client_secret: Optional[str] = os.getenv('OPENSKY_CLIENT_SECRET') or None
    base_url: str = os.getenv('OPENSKY_BASE_URL', 'https://opensky-network.org/api')
    auth_url: str = os.getenv(
        'OPENSKY_AUTH_URL',
        'https://auth.opensky-network.org/auth/realms/opensky-network'
        '/protocol/openid-connect/token',
    )
    timeout_seconds: float = float(os.getenv('OPENSKY_TIMEOUT_SECONDS', '30'))

    @property
    def is_authenticated(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class ScanConfig:
    """Two-speed polling of the tracked airport."""
    update_interval: float = float(os.getenv('UPDATE_INTERVAL_SECONDS', '3'))
    rescan_interval: float = float(os.getenv('RESCAN_INTERVAL_SECONDS', '120'))
    tick_interval: float = 1.0

    # Query radius is the airport radius scaled by this factor
    radius_factor: float = float(os.getenv('SCAN_RADIUS_FACTOR', '1.2'))
    include_on_ground: bool = _get_bool('SCAN_INCLUDE_ON_GROUND', False)


@dataclass(frozen=True)
class CacheConfig:
    """Cache lifetimes and sizes."""
    route_ttl_seconds: int = int(os.getenv('ROUTE_CACHE_TTL_SECONDS', '3600'))
    route_max_entries: int = int(os.getenv('ROUTE_CACHE_MAX_ENTRIES', '2000'))

    schedule_ttl_seconds: int = int(os.getenv('SCHEDULE_CACHE_TTL_SECONDS', '600'))
    # Stale schedules younger than this are still served unchanged
    schedule_refresh_floor_seconds: int = int(os.getenv('SCHEDULE_REFRESH_FLOOR_SECONDS', '300'))
    schedule_max_entries: int = 16

    token_safety_margin_seconds: int = 60

    selected_track_ttl_seconds: int = 300
    selected_track_max_entries: int = 50


@dataclass(frozen=True)
class ClassificationConfig:
    """Arrival/departure heuristics."""
    bearing_threshold_degrees: float = float(os.getenv('BEARING_THRESHOLD_DEGREES', '60'))
    # Below this distance the bearing to the airport is meaningless
    min_bearing_distance_km: float = 1.0


@dataclass(frozen=True)
class TrackConfig:
    """Trail history retention."""
    min_interval_seconds: float = 5.0
    max_points: int = int(os.getenv('TRACK_MAX_POINTS', '30'))
    max_age_seconds: int = int(os.getenv('TRACK_MAX_AGE_SECONDS', '1800'))
    max_buffers: int = int(os.getenv('TRACK_MAX_BUFFERS', '500'))
    sweep_interval_seconds: int = 60


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-client request budget."""
    window_seconds: int = 60
    max_requests: int = int(os.getenv('RATE_LIMIT_MAX_REQUESTS', '120'))
    max_clients: int = 10000


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    opensky: OpenSkyConfig
    scan: ScanConfig
    cache: CacheConfig
    classification: ClassificationConfig
    track: TrackConfig
    rate_limit: RateLimitConfig

    default_airport: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        opensky=OpenSkyConfig(),
        scan=ScanConfig(),
        cache=CacheConfig(),
        classification=ClassificationConfig(),
        track=TrackConfig(),
        rate_limit=RateLimitConfig(),
        default_airport=os.getenv('DEFAULT_AIRPORT', 'fukuoka'),
        debug=_get_bool('FLIGHTBOARD_DEBUG', False),
    )


# Singleton instance
config = load_config()
