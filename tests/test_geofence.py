from datetime import time

import pytest

from session_attendance.services import geofence
from session_attendance.services.errors import AttendanceError
from session_attendance.services.geofence import (
    GeofencePolicy,
    classify_claim,
    classify_elapsed,
    haversine_distance,
    is_valid_coordinate,
    minutes_since,
)
from tests.conftest import ANCHOR, CLASS_DATE, at, offset_north


def classify(latitude, longitude, submitted_at, anchor=ANCHOR, policy=None):
    return classify_claim(
        session_date=CLASS_DATE,
        start_time=time(9, 0),
        end_time=time(10, 0),
        anchor_latitude=anchor[0],
        anchor_longitude=anchor[1],
        latitude=latitude,
        longitude=longitude,
        submitted_at=submitted_at,
        policy=policy
    )


def test_haversine_same_point_is_zero():
    assert haversine_distance(*ANCHOR, *ANCHOR) == 0


def test_haversine_one_degree_of_latitude():
    assert haversine_distance(0.0, 0.0, 1.0, 0.0) == pytest.approx(111194.93, rel=1e-6)


def test_haversine_is_symmetric():
    other = (12.9721, 77.5952)
    assert haversine_distance(*ANCHOR, *other) == pytest.approx(haversine_distance(*other, *ANCHOR))


def test_offset_helper_matches_haversine():
    assert haversine_distance(*ANCHOR, *offset_north(*ANCHOR, 10)) == pytest.approx(10.0, abs=1e-6)


@pytest.mark.parametrize('latitude, longitude, expected', [
    (0.0, 0.0, True),
    (-90, 180, True),
    (90.5, 0, False),
    (0, -180.1, False),
    (None, 10, False),
    ('abc', 10, False),
    (float('nan'), 10, False),
])
def test_is_valid_coordinate(latitude, longitude, expected):
    assert is_valid_coordinate(latitude, longitude) is expected


def test_minutes_since_floors():
    assert minutes_since(at(9), at(9, 10, 59)) == 10
    assert minutes_since(at(9), at(9, 11)) == 11
    assert minutes_since(at(9), at(8, 59, 30)) == -1


def test_classify_elapsed_thresholds():
    assert classify_elapsed(0) == ('on_time', 1.0)
    assert classify_elapsed(10) == ('on_time', 1.0)
    assert classify_elapsed(11) == ('late', 0.5)
    assert classify_elapsed(-5) == ('on_time', 1.0)


def test_accepts_on_time_within_radius():
    result = classify(*offset_north(*ANCHOR, 10), at(9, 7))
    assert result['success']
    assert result['status'] == 'on_time'
    assert result['credit_weight'] == 1.0
    assert result['distance_meters'] == pytest.approx(10.0, abs=0.01)
    assert result['minutes_since_start'] == 7


def test_tenth_minute_is_on_time_eleventh_is_late():
    point = offset_north(*ANCHOR, 5)
    assert classify(*point, at(9, 10, 59))['status'] == 'on_time'

    late = classify(*point, at(9, 11))
    assert late['status'] == 'late'
    assert late['credit_weight'] == 0.5
    assert late['minutes_since_start'] == 11


def test_early_submission_counts_as_minute_zero():
    result = classify(*ANCHOR, at(8, 55))
    assert result['status'] == 'on_time'
    assert result['minutes_since_start'] == 0


def test_radius_is_inclusive(monkeypatch):
    monkeypatch.setattr(geofence, 'haversine_distance', lambda *args: 15.0)
    assert classify(*ANCHOR, at(9, 5))['success']

    monkeypatch.setattr(geofence, 'haversine_distance', lambda *args: 15.1)
    result = classify(*ANCHOR, at(9, 5))
    assert not result['success']
    assert result['error_code'] == AttendanceError.TOO_FAR_FROM_ANCHOR
    assert result['distance_meters'] == 15


def test_too_far_reports_rounded_distance():
    result = classify(*offset_north(*ANCHOR, 20), at(9, 15))
    assert result['error_code'] == AttendanceError.TOO_FAR_FROM_ANCHOR
    assert result['distance_meters'] == 20
    assert result['radius_meters'] == 15.0
    assert '20 m away' in result['message']


def test_end_of_session_is_inclusive_to_the_second():
    point = offset_north(*ANCHOR, 5)
    assert classify(*point, at(10, 0, 0))['status'] == 'late'
    assert classify(*point, at(10, 0, 0, 900000))['success']

    result = classify(*point, at(10, 0, 1))
    assert result['error_code'] == AttendanceError.SESSION_ENDED
    assert result['ended_at'] == at(10).isoformat()


def test_ended_session_is_checked_before_distance():
    result = classify(*offset_north(*ANCHOR, 500), at(10, 5))
    assert result['error_code'] == AttendanceError.SESSION_ENDED


def test_missing_anchor_is_never_accepted():
    result = classify(*ANCHOR, at(9, 5), anchor=(None, None))
    assert result['error_code'] == AttendanceError.ANCHOR_UNAVAILABLE

    result = classify(*ANCHOR, at(9, 5), anchor=(ANCHOR[0], None))
    assert result['error_code'] == AttendanceError.ANCHOR_UNAVAILABLE


def test_invalid_claimant_location():
    result = classify(None, ANCHOR[1], at(9, 5))
    assert result['error_code'] == AttendanceError.INVALID_LOCATION


def test_custom_policy():
    policy = GeofencePolicy(radius_meters=50, on_time_minutes=5)
    result = classify(*offset_north(*ANCHOR, 40), at(9, 6), policy=policy)
    assert result['success']
    assert result['status'] == 'late'


def test_policy_from_config():
    policy = GeofencePolicy.from_config({'ATTENDANCE_RADIUS_METERS': 30, 'ATTENDANCE_ON_TIME_MINUTES': 15})
    assert policy.radius_meters == 30.0
    assert policy.on_time_minutes == 15

    defaults = GeofencePolicy.from_config({})
    assert defaults.radius_meters == 15.0
    assert defaults.on_time_minutes == 10
