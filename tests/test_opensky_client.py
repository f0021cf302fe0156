import pytest
import requests

from flightboard.exceptions import FeedUnavailable
from flightboard.ingestion.opensky_client import OpenSkyClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} error', response=self)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self):
        self.get_responses = []
        self.post_responses = []
        self.gets = []
        self.posts = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.gets.append({'url': url, 'params': params, 'headers': headers})
        response = self.get_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, data=None, timeout=None):
        self.posts.append({'url': url, 'data': data})
        return self.post_responses.pop(0)


STATE = [
    '86d4a1', 'JAL312  ', 'Japan', 1714765198, 1714765200,
    130.5, 33.4, 3657.6, False, 164.6, 350.0, -2.0,
]
GROUND_STATE = [
    '86d4a2', 'ANA245', 'Japan', 1714765198, 1714765200,
    130.45, 33.58, None, True, 3.0, 90.0, 0.0,
]


def _client(clock, session, authenticated=False):
    return OpenSkyClient(
        client_id='id' if authenticated else None,
        client_secret='secret' if authenticated else None,
        base_url='https://example.test/api',
        auth_url='https://auth.example.test/token',
        token_margin_seconds=60,
        session=session,
        clock=clock,
    )


def test_fetch_live_aircraft_parses_states(clock):
    session = FakeSession()
    session.get_responses.append(FakeResponse(payload={'time': 1714765200, 'states': [STATE, GROUND_STATE]}))
    client = _client(clock, session)

    states = client.fetch_live_aircraft(33.5859, 130.451, 120)

    assert [s.icao24 for s in states] == ['86d4a1', '86d4a2']
    assert states[0].callsign == 'JAL312'
    assert states[0].true_track == 350.0
    assert states[1].on_ground
    request = session.gets[0]
    assert request['url'] == 'https://example.test/api/states/all'
    assert request['params']['lamin'] < 33.5859 < request['params']['lamax']
    assert 'Authorization' not in request['headers']


def test_null_states_means_no_aircraft(clock):
    session = FakeSession()
    session.get_responses.append(FakeResponse(payload={'time': 1, 'states': None}))
    assert _client(clock, session).fetch_live_aircraft(33.5, 130.4, 50) == []


def test_keyed_state_rows_are_accepted(clock):
    session = FakeSession()
    session.get_responses.append(FakeResponse(payload={'time': 1, 'states': [
        {'icao24': '86D4A3', 'callsign': 'SKY11 ', 'latitude': 33.4, 'longitude': 130.5,
         'baro_altitude': 1200.0, 'velocity': 110.0, 'true_track': 20.0},
        {'icao24': '86d4a4', 'callsign': 'ANA1'},
        STATE,
    ]}))

    states = _client(clock, session).fetch_live_aircraft(33.5859, 130.451, 120)

    assert [s.icao24 for s in states] == ['86d4a3', '86d4a1']
    assert states[0].callsign == 'SKY11'
    assert states[0].altitude == 1200.0


def test_token_is_cached_until_margin(clock):
    session = FakeSession()
    session.post_responses = [
        FakeResponse(payload={'access_token': 'tok-1', 'expires_in': 300}),
        FakeResponse(payload={'access_token': 'tok-2', 'expires_in': 300}),
    ]
    session.get_responses = [FakeResponse(payload={'states': []}) for _ in range(3)]
    client = _client(clock, session, authenticated=True)

    client.fetch_live_aircraft(33.5, 130.4, 50)
    clock.advance(239)
    client.fetch_live_aircraft(33.5, 130.4, 50)
    clock.advance(1)
    client.fetch_live_aircraft(33.5, 130.4, 50)

    assert len(session.posts) == 2
    assert session.posts[0]['data']['grant_type'] == 'client_credentials'
    assert [g['headers']['Authorization'] for g in session.gets] == [
        'Bearer tok-1', 'Bearer tok-1', 'Bearer tok-2',
    ]


def test_token_failure_falls_back_to_anonymous(clock):
    session = FakeSession()
    session.post_responses = [FakeResponse(status_code=401, payload={})]
    session.get_responses = [FakeResponse(payload={'states': []})]
    client = _client(clock, session, authenticated=True)

    client.fetch_live_aircraft(33.5, 130.4, 50)
    assert 'Authorization' not in session.gets[0]['headers']


def test_rate_limit_backs_off(clock):
    session = FakeSession()
    session.get_responses = [
        FakeResponse(status_code=429, headers={'x-rate-limit-retry-after-seconds': '30'}),
        FakeResponse(payload={'states': []}),
    ]
    client = _client(clock, session)

    with pytest.raises(FeedUnavailable):
        client.fetch_live_aircraft(33.5, 130.4, 50)
    assert client.rate_limit_info.retry_after_seconds == 30

    clock.advance(10)
    with pytest.raises(FeedUnavailable):
        client.fetch_live_aircraft(33.5, 130.4, 50)
    assert len(session.gets) == 1

    clock.advance(20)
    assert client.fetch_live_aircraft(33.5, 130.4, 50) == []


def test_network_errors_become_feed_unavailable(clock):
    session = FakeSession()
    session.get_responses = [
        requests.exceptions.Timeout('slow'),
        requests.exceptions.ConnectionError('down'),
        FakeResponse(status_code=500),
        FakeResponse(payload=ValueError('not json')),
    ]
    client = _client(clock, session)

    for _ in range(4):
        with pytest.raises(FeedUnavailable) as exc_info:
            client.fetch_live_aircraft(33.5, 130.4, 50)
        assert exc_info.value.source == 'opensky'


def test_remaining_header_recorded(clock):
    session = FakeSession()
    session.get_responses = [
        FakeResponse(payload={'states': []}, headers={'x-rate-limit-remaining': '397'}),
    ]
    client = _client(clock, session)
    client.fetch_live_aircraft(33.5, 130.4, 50)
    assert client.rate_limit_info.remaining == 397


def test_fetch_track(clock):
    session = FakeSession()
    session.get_responses = [FakeResponse(payload={
        'icao24': '86d4a1',
        'path': [
            [1714765000, 33.2, 130.6, 3000.0, 350.0, False],
            [1714765100, 33.3, 130.55, None, 350.0, False],
            [1714765150, None, None, None, None, False],
        ],
    })]
    client = _client(clock, session)

    track = client.fetch_track('86D4A1')

    assert [p.time for p in track] == [1714765000, 1714765100]
    assert session.gets[0]['params'] == {'icao24': '86d4a1', 'time': 0}


def test_track_404_is_empty(clock):
    session = FakeSession()
    session.get_responses = [FakeResponse(status_code=404)]
    assert _client(clock, session).fetch_track('86d4a1') == []
