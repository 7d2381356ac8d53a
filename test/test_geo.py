import pytest

from geoquery.models.geo import Isochrone, Location
from geoquery.services.geo import (
    bbox_of,
    buffer_bbox,
    distance,
    estimate_travel_time,
    midpoint,
    point_in_isochrone,
    point_to_line_distance,
)


def test_distance_is_symmetric_and_zero_on_self():
    houston = Location(lat=29.76, lng=-95.37)
    austin = Location(lat=30.27, lng=-97.74)

    assert distance(houston, austin) == pytest.approx(distance(austin, houston))
    assert distance(houston, houston) == 0
    # ~235 km apart
    assert 230_000 < distance(houston, austin) < 240_000


def test_estimate_travel_time_uses_mode_speed():
    assert estimate_travel_time(1.4 * 60 * 1000, "walking") == pytest.approx(1000)
    assert estimate_travel_time(13.9 * 60, "driving") == pytest.approx(1.0)
    # Unknown modes fall back to walking speed
    assert estimate_travel_time(1.4 * 60, "teleport") == pytest.approx(1.0)


def test_point_in_isochrone_checks_every_polygon():
    square_a = [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]
    square_b = [[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]
    iso = Isochrone(polygons=[square_a, square_b], bbox=(0, 0, 6, 6))

    assert point_in_isochrone(Location(lat=0.5, lng=0.5), iso)
    assert point_in_isochrone(Location(lat=5.5, lng=5.5), iso)
    assert not point_in_isochrone(Location(lat=3, lng=3), iso)


def test_bbox_helpers():
    coords = [[-95.4, 29.7], [-95.3, 29.9], [-95.35, 29.8]]
    assert bbox_of(coords) == (-95.4, 29.7, -95.3, 29.9)

    buffered = buffer_bbox((-95.4, 29.7, -95.3, 29.9), 5000)
    assert buffered[0] < -95.4 and buffered[2] > -95.3
    assert buffered[1] == pytest.approx(29.7 - 5000 / 111000)

    with pytest.raises(ValueError):
        bbox_of([])


def test_point_to_line_distance_is_perpendicular():
    line = [[-95.37, 29.76], [-95.37, 29.86]]
    on_line = Location(lat=29.80, lng=-95.37)
    beside = Location(lat=29.80, lng=-95.36)

    assert point_to_line_distance(on_line, line) == pytest.approx(0, abs=1)
    # 0.01 degrees of longitude at ~29.8N is roughly 965 m
    assert 900 < point_to_line_distance(beside, line) < 1000


def test_midpoint_picks_middle_vertex():
    assert midpoint([]) is None
    mid = midpoint([[0, 0], [1, 1], [2, 2]])
    assert (mid.lat, mid.lng) == (1, 1)


def test_unset_location_falls_back():
    fallback = Location(lat=29.7604, lng=-95.3698)
    assert Location(lat=0, lng=0).or_fallback(fallback) == fallback
    here = Location(lat=1, lng=2)
    assert here.or_fallback(fallback) is here
