import numpy as np
import pytest

from flightboard.geo import (
    BoundingBox,
    angular_difference,
    haversine_distance,
    haversine_distances,
    initial_bearing,
)


def test_haversine_known_distance():
    # Haneda to Fukuoka is roughly 880 km
    distance = haversine_distance(35.5534, 139.7811, 33.5859, 130.451)
    assert 860 < distance < 900


def test_haversine_zero_distance():
    assert haversine_distance(33.0, 130.0, 33.0, 130.0) == pytest.approx(0.0)


def test_vectorized_matches_scalar():
    lats = [33.0, 34.5, 35.5534]
    lons = [130.0, 131.2, 139.7811]
    distances = haversine_distances(lats, lons, 33.5859, 130.451)
    expected = [haversine_distance(lat, lon, 33.5859, 130.451) for lat, lon in zip(lats, lons)]
    assert np.allclose(distances, expected)


def test_initial_bearing_cardinal_directions():
    assert initial_bearing(33.0, 130.0, 34.0, 130.0) == pytest.approx(0.0, abs=1e-6)
    assert initial_bearing(34.0, 130.0, 33.0, 130.0) == pytest.approx(180.0, abs=1e-6)
    assert initial_bearing(0.0, 130.0, 0.0, 131.0) == pytest.approx(90.0, abs=1e-6)
    assert initial_bearing(0.0, 131.0, 0.0, 130.0) == pytest.approx(270.0, abs=1e-6)


def test_bearing_is_normalized():
    bearing = initial_bearing(33.0, 131.0, 33.5, 130.0)
    assert 0.0 <= bearing < 360.0


def test_angular_difference_wraps():
    assert angular_difference(10, 350) == pytest.approx(20)
    assert angular_difference(350, 10) == pytest.approx(20)
    assert angular_difference(0, 180) == pytest.approx(180)
    assert angular_difference(90, 90) == pytest.approx(0)
    assert angular_difference(720 + 5, 355) == pytest.approx(10)


def test_bounding_box_contains_center():
    bbox = BoundingBox.from_center_radius(33.5859, 130.451, 120)
    assert bbox.contains(33.5859, 130.451)
    assert not bbox.contains(40.0, 130.451)
    params = bbox.to_params()
    assert params['lamin'] < 33.5859 < params['lamax']
    assert params['lomin'] < 130.451 < params['lomax']
