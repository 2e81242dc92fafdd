# services/session_registry.py
"""
Session Registry: opens, closes and looks up presenter sessions.

Each session gets a short human-typeable code that is unique per calendar date. The
unique (code, session_date) index decides collisions, so concurrent openers never
block each other; a losing insert simply regenerates its code and tries again.
"""

import logging
import secrets
import string
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from session_attendance.extensions import db
from session_attendance.models.class_session import ClassSession
from session_attendance.services.directory_service import DirectoryService
from session_attendance.services.errors import AttendanceError, failure
from session_attendance.services.geofence import is_valid_coordinate

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_session_code(length=6):
    """Random uppercase alphanumeric code."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code):
    return (code or '').strip().upper()


class SessionRegistryService:
    """Service class for class session lifecycle operations."""

    @staticmethod
    def open_session(course_id, presenter_id, session_date, start_time, end_time,
                     anchor_latitude, anchor_longitude, room_label=None, topic=None):
        """
        Open a new attendance session for a course.

        Args:
            course_id: Course the session belongs to
            presenter_id: User opening the session
            session_date: Calendar date of the session
            start_time: Start time of day
            end_time: End time of day, strictly after start
            anchor_latitude: Presenter location latitude
            anchor_longitude: Presenter location longitude
            room_label: Optional room name shown to participants
            topic: Optional topic text

        Returns:
            dict: success flag with session_id, code and session data, or an error code
        """
        logger = logging.getLogger('session_registry')

        if end_time <= start_time:
            return failure(
                AttendanceError.INVALID_TIME_RANGE,
                'End time must be after start time'
            )

        if not is_valid_coordinate(anchor_latitude, anchor_longitude):
            return failure(
                AttendanceError.ANCHOR_UNAVAILABLE,
                'A valid anchor location is required to open a session'
            )

        if not DirectoryService.owns_course(presenter_id, course_id):
            logger.warning(f"Presenter {presenter_id} tried to open a session for course {course_id}")
            return failure(
                AttendanceError.FORBIDDEN,
                'Only the course instructor can open a session'
            )

        code_length = current_app.config.get('SESSION_CODE_LENGTH', 6)
        max_attempts = current_app.config.get('SESSION_CODE_MAX_ATTEMPTS', 5)

        for attempt in range(1, max_attempts + 1):
            code = generate_session_code(code_length)

            session = ClassSession(
                code=code,
                course_id=course_id,
                presenter_id=presenter_id,
                session_date=session_date,
                start_time=start_time,
                end_time=end_time,
                anchor_latitude=float(anchor_latitude),
                anchor_longitude=float(anchor_longitude),
                room_label=room_label,
                topic=topic,
                is_open=True
            )
            db.session.add(session)

            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                if not SessionRegistryService._code_taken(code, session_date):
                    # Some other constraint failed; a new code will not help
                    logger.error(f"Storage error opening session for course {course_id} on {session_date}",
                                 exc_info=True)
                    raise
                logger.info(f"Session code collision on {session_date} (attempt {attempt}/{max_attempts})")
                continue
            except SQLAlchemyError:
                db.session.rollback()
                logger.error(f"Storage error opening session for course {course_id} on {session_date}",
                             exc_info=True)
                raise

            logger.info(f"Opened session {session.id} code={session.code} for course {course_id} "
                        f"on {session_date} {start_time}-{end_time}")
            return {
                'success': True,
                'message': 'Session opened',
                'session_id': session.id,
                'code': session.code,
                'session': session.to_dict()
            }

        logger.error(f"Could not generate a unique session code for course {course_id} on {session_date}")
        return failure(
            AttendanceError.CODE_GENERATION_EXHAUSTED,
            'Could not generate a unique session code, please try again'
        )

    @staticmethod
    def close_session(session_id, presenter_id):
        """Close a session; only its presenter may do so. Closing twice is a no-op."""
        logger = logging.getLogger('session_registry')

        session = db.session.get(ClassSession, session_id)
        if not session:
            return failure(AttendanceError.SESSION_NOT_FOUND, 'Session not found')

        if session.presenter_id != presenter_id:
            logger.warning(f"User {presenter_id} attempted to close session {session_id} they do not own")
            return failure(AttendanceError.FORBIDDEN, 'Only the presenter can close this session')

        if session.is_open:
            session.is_open = False
            session.closed_at = datetime.now()
            db.session.commit()
            logger.info(f"Closed session {session_id}")

        return {
            'success': True,
            'message': 'Session closed',
            'session': session.to_dict()
        }

    @staticmethod
    def get_session(session_id):
        session = db.session.get(ClassSession, session_id)
        if not session:
            return failure(AttendanceError.SESSION_NOT_FOUND, 'Session not found')
        return {'success': True, 'session': session.to_dict()}

    @staticmethod
    def find_by_code(code, on_date, include_closed=False):
        """
        Find the open session with the given code on a calendar date.

        Codes are matched case-insensitively and may be reused on other dates.
        With ``include_closed`` a closed session is returned too, so callers can
        report it as closed rather than missing.

        Returns:
            dict: success flag with the ClassSession under ``session_obj``
        """
        code = normalize_code(code)
        session = None
        if code:
            query = db.session.query(ClassSession).filter_by(code=code, session_date=on_date)
            if not include_closed:
                query = query.filter_by(is_open=True)
            session = query.first()

        if not session:
            return failure(
                AttendanceError.SESSION_NOT_FOUND,
                f'No session with code {code or "(blank)"} today'
            )

        return {
            'success': True,
            'session': session.to_dict(),
            'session_obj': session
        }

    @staticmethod
    def list_open_for_courses(course_ids, as_of=None):
        """
        Sessions for the given courses whose [start, end] window contains ``as_of``.

        Returns:
            list: ClassSession instances ordered by start time
        """
        as_of = (as_of or datetime.now()).replace(microsecond=0)
        course_ids = list(course_ids or [])
        if not course_ids:
            return []

        sessions = (
            db.session.query(ClassSession)
            .filter(
                ClassSession.course_id.in_(course_ids),
                ClassSession.session_date == as_of.date(),
                ClassSession.is_open.is_(True),
                ClassSession.start_time <= as_of.time(),
                ClassSession.end_time >= as_of.time()
            )
            .order_by(ClassSession.start_time)
            .all()
        )
        return sessions

    @staticmethod
    def list_for_presenter(presenter_id, on_date=None):
        query = db.session.query(ClassSession).filter_by(presenter_id=presenter_id)
        if on_date:
            query = query.filter_by(session_date=on_date)
        return query.order_by(ClassSession.session_date.desc(), ClassSession.start_time).all()

    @staticmethod
    def close_expired_sessions(as_of=None, dry_run=False):
        """
        Flip the open flag on sessions whose end time has passed.

        Returns:
            list: sessions that were (or in a dry run would be) closed
        """
        logger = logging.getLogger('session_registry')
        as_of = (as_of or datetime.now()).replace(microsecond=0)

        candidates = (
            db.session.query(ClassSession)
            .filter(
                ClassSession.is_open.is_(True),
                ClassSession.session_date <= as_of.date()
            )
            .all()
        )
        expired = [s for s in candidates if s.ends_at < as_of]

        if dry_run or not expired:
            return expired

        for session in expired:
            session.is_open = False
            session.closed_at = as_of
        db.session.commit()

        logger.info(f"Closed {len(expired)} expired sessions as of {as_of.isoformat()}")
        return expired

    @staticmethod
    def _code_taken(code, session_date):
        return (
            db.session.query(ClassSession.id)
            .filter_by(code=code, session_date=session_date)
            .first()
        ) is not None
