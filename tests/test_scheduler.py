import pytest

from flightboard.airports import AIRPORTS
from flightboard.exceptions import FeedUnavailable
from flightboard.tracking.scheduler import ScanScheduler, SchedulerState

from conftest import FUK_LAT, FUK_LON, FakePositionFeed, make_aircraft


def _scheduler(airport, feed, clock, **kwargs):
    return ScanScheduler(
        airport,
        feed,
        update_interval=3,
        rescan_interval=120,
        radius_factor=1.2,
        include_on_ground=False,
        clock=clock,
        **kwargs,
    )


def _positions(scheduler):
    return {a.icao24: (a.latitude, a.longitude) for a in scheduler.tracked.snapshot()}


def test_first_tick_rescans_with_scaled_radius(clock, fukuoka, position_feed):
    position_feed.push([make_aircraft('aaaaaa')])
    scheduler = _scheduler(fukuoka, position_feed, clock)

    assert scheduler.tick() == 'rescan'
    assert scheduler.state == SchedulerState.LOCKED
    assert position_feed.calls == [(FUK_LAT, FUK_LON, pytest.approx(120.0))]


def test_feed_gap_scenario(clock, fukuoka, position_feed):
    a, b, c, d = (make_aircraft(x) for x in ['aaaaaa', 'bbbbbb', 'cccccc', 'dddddd'])
    scheduler = _scheduler(fukuoka, position_feed, clock)

    position_feed.push([a, b, c])
    scheduler.tick()
    assert set(_positions(scheduler)) == {'aaaaaa', 'bbbbbb', 'cccccc'}
    c_before = _positions(scheduler)['cccccc']

    # Update reports A and B only, plus an untracked newcomer
    moved_a = make_aircraft('aaaaaa', lat=FUK_LAT - 0.4)
    moved_b = make_aircraft('bbbbbb', lat=FUK_LAT - 0.3)
    position_feed.push([moved_a, moved_b, d])
    clock.advance(3)
    assert scheduler.tick() == 'update'

    positions = _positions(scheduler)
    assert set(positions) == {'aaaaaa', 'bbbbbb', 'cccccc'}
    assert positions['aaaaaa'][0] == pytest.approx(FUK_LAT - 0.4)
    assert positions['bbbbbb'][0] == pytest.approx(FUK_LAT - 0.3)
    assert positions['cccccc'] == c_before

    # Next full rescan replaces the set wholesale
    position_feed.push([a, b, d])
    clock.advance(117)
    assert scheduler.tick() == 'rescan'
    assert set(_positions(scheduler)) == {'aaaaaa', 'bbbbbb', 'dddddd'}


def test_updates_never_change_membership(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push([make_aircraft('aaaaaa'), make_aircraft('bbbbbb')])
    scheduler.tick()

    for response in ([], [make_aircraft('cccccc')], [make_aircraft('aaaaaa')]):
        position_feed.push(response)
        clock.advance(3)
        assert scheduler.tick() == 'update'
        assert set(_positions(scheduler)) == {'aaaaaa', 'bbbbbb'}


def test_tracked_membership_ignores_address_case(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push([make_aircraft('aaaaaa')])
    scheduler.tick()

    assert 'AAAAAA' in scheduler.tracked
    assert 'aaaaaa' in scheduler.tracked
    assert scheduler.tracked.get('AAAAAA').icao24 == 'aaaaaa'
    assert 'bbbbbb' not in scheduler.tracked


def test_rescan_filters_ground_and_positionless(clock, fukuoka, position_feed):
    no_position = make_aircraft('cccccc')
    no_position.latitude = None
    position_feed.push([
        make_aircraft('aaaaaa'),
        make_aircraft('bbbbbb', on_ground=True),
        no_position,
    ])
    scheduler = _scheduler(fukuoka, position_feed, clock)
    scheduler.tick()
    assert set(_positions(scheduler)) == {'aaaaaa'}


def test_failed_or_empty_rescan_keeps_previous_set(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push([make_aircraft('aaaaaa')])
    scheduler.tick()

    position_feed.push(FeedUnavailable('down'))
    assert scheduler.rescan() is None
    position_feed.push([])
    assert scheduler.rescan() is None

    assert set(_positions(scheduler)) == {'aaaaaa'}
    assert scheduler.state == SchedulerState.LOCKED
    assert scheduler.stats['error_count'] == 1


def test_unlocked_retries_at_fast_cadence(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push([])
    assert scheduler.tick() == 'rescan'
    assert scheduler.state == SchedulerState.UNLOCKED

    clock.advance(1)
    assert scheduler.tick() is None

    position_feed.push([make_aircraft('aaaaaa')])
    clock.advance(2)
    assert scheduler.tick() == 'rescan'
    assert scheduler.state == SchedulerState.LOCKED


def test_update_is_noop_while_unlocked(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    assert scheduler.update_positions() is None
    assert position_feed.calls == []


def test_hidden_scheduler_freezes_timers(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push([make_aircraft('aaaaaa')])
    scheduler.tick()
    calls = len(position_feed.calls)

    clock.advance(2)
    assert scheduler.tick() is None

    scheduler.set_visible(False)
    clock.advance(500)
    assert scheduler.tick() is None
    assert len(position_feed.calls) == calls

    scheduler.set_visible(True)
    clock.advance(1)
    # 2 s before the pause + 1 s after it completes the fast phase
    assert scheduler.tick() == 'update'


def test_overlapping_fetch_is_skipped(clock, fukuoka):
    class ReentrantFeed(FakePositionFeed):
        nested = 'not called'

        def fetch_live_aircraft(self, lat, lon, radius_km):
            self.nested = scheduler.rescan()
            return super().fetch_live_aircraft(lat, lon, radius_km)

    feed = ReentrantFeed([[make_aircraft('aaaaaa')]])
    scheduler = _scheduler(fukuoka, feed, clock)
    scheduler.rescan()

    assert feed.nested is None
    assert len(feed.calls) == 1
    assert scheduler.stats['skipped_count'] == 1


def test_reset_discards_in_flight_response(clock, fukuoka):
    incheon = AIRPORTS['incheon']

    class SwitchingFeed(FakePositionFeed):
        def fetch_live_aircraft(self, lat, lon, radius_km):
            if not self.calls:
                scheduler.reset(incheon)
            return super().fetch_live_aircraft(lat, lon, radius_km)

    feed = SwitchingFeed([[make_aircraft('aaaaaa')], [make_aircraft('bbbbbb', lat=37.4, lon=126.4)]])
    scheduler = _scheduler(fukuoka, feed, clock)

    assert scheduler.rescan() is None
    assert len(scheduler.tracked) == 0
    assert scheduler.state == SchedulerState.UNLOCKED
    assert scheduler.stats['discarded_count'] == 1
    assert scheduler.generation == 1

    scheduler.rescan()
    assert set(_positions(scheduler)) == {'bbbbbb'}
    assert scheduler.tracked.airport_id == 'incheon'
    assert feed.calls[1][0] == pytest.approx(incheon.latitude)


def test_callback_errors_are_isolated(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    seen = []

    def broken(aircraft):
        raise RuntimeError('boom')

    scheduler.add_rescan_callback(broken)
    scheduler.add_rescan_callback(lambda aircraft: seen.append([a.icao24 for a in aircraft]))

    position_feed.push([make_aircraft('aaaaaa')])
    scheduler.tick()
    assert seen == [['aaaaaa']]


def test_unexpected_feed_error_does_not_escape(clock, fukuoka, position_feed):
    scheduler = _scheduler(fukuoka, position_feed, clock)
    position_feed.push(RuntimeError('bad payload'))
    assert scheduler.tick() == 'rescan'
    assert scheduler.stats['error_count'] == 1
