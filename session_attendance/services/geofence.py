# services/geofence.py
"""
Geofence and timing classification for attendance claims.

Pure functions with no Flask or database dependencies. Given a session's anchor and
time window, a claimant's location sample and the server-side submission time, decide
whether the claim is accepted and whether it counts as on-time or late.
"""

import math
from datetime import datetime

from session_attendance.services.errors import AttendanceError, failure

EARTH_RADIUS_METERS = 6371000.0

DEFAULT_RADIUS_METERS = 15.0
DEFAULT_ON_TIME_MINUTES = 10

STATUS_ON_TIME = 'on_time'
STATUS_LATE = 'late'

ON_TIME_WEIGHT = 1.0
LATE_WEIGHT = 0.5


class GeofencePolicy:
    """Thresholds applied by the classifier."""

    def __init__(self, radius_meters=DEFAULT_RADIUS_METERS, on_time_minutes=DEFAULT_ON_TIME_MINUTES):
        self.radius_meters = float(radius_meters)
        self.on_time_minutes = int(on_time_minutes)

    @classmethod
    def from_config(cls, config):
        """Build a policy from a Flask config mapping."""
        return cls(
            radius_meters=config.get('ATTENDANCE_RADIUS_METERS', DEFAULT_RADIUS_METERS),
            on_time_minutes=config.get('ATTENDANCE_ON_TIME_MINUTES', DEFAULT_ON_TIME_MINUTES)
        )

    def __repr__(self):
        return f'<GeofencePolicy radius={self.radius_meters}m on_time={self.on_time_minutes}min>'


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in meters between two (lat, lon) points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def is_valid_coordinate(latitude, longitude):
    """Check a latitude/longitude pair is present, finite and in range."""
    if latitude is None or longitude is None:
        return False
    try:
        latitude = float(latitude)
        longitude = float(longitude)
    except (TypeError, ValueError):
        return False
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def minutes_since(start, moment):
    """Whole minutes elapsed from ``start`` to ``moment``, floored; negative before start."""
    return math.floor((moment - start).total_seconds() / 60)


def classify_elapsed(elapsed_minutes, policy=None):
    """Map elapsed minutes to (status, credit weight). Early submissions count as minute zero."""
    policy = policy or GeofencePolicy()
    if max(elapsed_minutes, 0) <= policy.on_time_minutes:
        return STATUS_ON_TIME, ON_TIME_WEIGHT
    return STATUS_LATE, LATE_WEIGHT


def classify_claim(session_date, start_time, end_time, anchor_latitude, anchor_longitude,
                   latitude, longitude, submitted_at, policy=None):
    """
    Evaluate a claim against a session's timing and geofence.

    Timing is checked before distance so a stale submission against an ended
    session is reported as ended rather than as a distance failure.

    Args:
        session_date: Calendar date of the session
        start_time: Session start (time of day)
        end_time: Session end (time of day)
        anchor_latitude: Presenter anchor latitude
        anchor_longitude: Presenter anchor longitude
        latitude: Claimant latitude
        longitude: Claimant longitude
        submitted_at: Server-side submission datetime
        policy: GeofencePolicy, defaults to 15 m / 10 minutes

    Returns:
        dict: ``success`` plus status, credit_weight, distance_meters and
        minutes_since_start on acceptance; error_code and message otherwise
    """
    policy = policy or GeofencePolicy()

    starts_at = datetime.combine(session_date, start_time)
    ends_at = datetime.combine(session_date, end_time)
    submitted_at = submitted_at.replace(microsecond=0)

    # 1. Timing
    if submitted_at > ends_at:
        return failure(
            AttendanceError.SESSION_ENDED,
            f'Session ended at {ends_at.strftime("%H:%M")}',
            ended_at=ends_at.isoformat()
        )

    # 2. Anchor must be verifiable; never fall back to an unverified accept
    if not is_valid_coordinate(anchor_latitude, anchor_longitude):
        return failure(
            AttendanceError.ANCHOR_UNAVAILABLE,
            'Cannot verify location for this session, try again'
        )

    if not is_valid_coordinate(latitude, longitude):
        return failure(
            AttendanceError.INVALID_LOCATION,
            'A valid latitude and longitude are required'
        )

    # 3. Distance, inclusive of the radius itself
    distance = haversine_distance(float(anchor_latitude), float(anchor_longitude),
                                  float(latitude), float(longitude))
    if distance > policy.radius_meters:
        rounded = int(round(distance))
        return failure(
            AttendanceError.TOO_FAR_FROM_ANCHOR,
            f'{rounded} m away, must be within {policy.radius_meters:g} m',
            distance_meters=rounded,
            radius_meters=policy.radius_meters
        )

    # 4. Status
    elapsed = minutes_since(starts_at, submitted_at)
    status, weight = classify_elapsed(elapsed, policy)

    return {
        'success': True,
        'status': status,
        'credit_weight': weight,
        'distance_meters': round(distance, 2),
        'minutes_since_start': max(elapsed, 0)
    }
