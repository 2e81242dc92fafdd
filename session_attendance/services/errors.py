# services/errors.py
"""
Error codes shared by the attendance services.

Every expected outcome is returned to the caller as a result dict carrying one of
these codes; only storage failures escape as exceptions.
"""


class AttendanceError:
    """Attendance-specific error codes."""
    INVALID_TIME_RANGE = 'invalid_time_range'
    CODE_GENERATION_EXHAUSTED = 'code_generation_exhausted'
    SESSION_NOT_FOUND = 'session_not_found'
    SESSION_ENDED = 'session_ended'
    SESSION_CLOSED = 'session_closed'
    NOT_ENROLLED = 'not_enrolled'
    ANCHOR_UNAVAILABLE = 'anchor_unavailable'
    TOO_FAR_FROM_ANCHOR = 'too_far_from_anchor'
    ALREADY_CLAIMED = 'already_claimed'
    FORBIDDEN = 'forbidden'
    INVALID_LOCATION = 'invalid_location'
    VALIDATION_ERROR = 'validation_error'
    STORAGE_UNAVAILABLE = 'storage_unavailable'


# HTTP status used by the controllers for each error code
ERROR_HTTP_STATUS = {
    AttendanceError.INVALID_TIME_RANGE: 400,
    AttendanceError.INVALID_LOCATION: 400,
    AttendanceError.VALIDATION_ERROR: 400,
    AttendanceError.FORBIDDEN: 403,
    AttendanceError.NOT_ENROLLED: 403,
    AttendanceError.SESSION_NOT_FOUND: 404,
    AttendanceError.SESSION_ENDED: 409,
    AttendanceError.SESSION_CLOSED: 409,
    AttendanceError.TOO_FAR_FROM_ANCHOR: 422,
    AttendanceError.ANCHOR_UNAVAILABLE: 422,
    AttendanceError.ALREADY_CLAIMED: 200,
    AttendanceError.CODE_GENERATION_EXHAUSTED: 503,
    AttendanceError.STORAGE_UNAVAILABLE: 503,
}


def failure(error_code, message, **detail):
    """Build a rejected result dict."""
    result = {
        'success': False,
        'error_code': error_code,
        'message': message
    }
    result.update(detail)
    return result


def http_status_for(result):
    """HTTP status for a service result dict."""
    if result.get('success'):
        return 200
    return ERROR_HTTP_STATUS.get(result.get('error_code'), 400)
