import math
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from flask import g
from flask.testing import FlaskClient

from session_attendance import create_app
from session_attendance.extensions import db as _db
from session_attendance.models import User, Course, Enrollment, RoleType, EnrollmentStatus
from session_attendance.services.session_registry import SessionRegistryService

ANCHOR = (12.9716, 77.5946)
CLASS_DATE = date(2026, 3, 2)


def offset_north(latitude, longitude, meters):
    """Point ``meters`` due north of the given coordinate."""
    return latitude + math.degrees(meters / 6371000.0), longitude


def at(hour, minute=0, second=0, microsecond=0, on=CLASS_DATE):
    return datetime.combine(on, time(hour, minute, second, microsecond))


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


class PortalClient(FlaskClient):
    """Requests share the test's app context, so drop the user Flask-Login cached on ``g``."""

    def open(self, *args, **kwargs):
        g.pop('_login_user', None)
        return super().open(*args, **kwargs)


@pytest.fixture
def client(app):
    app.test_client_class = PortalClient
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def directory(db):
    presenter = User(email='instructor@campus.test', full_name='Ada Instructor', role=RoleType.PRESENTER)
    other_presenter = User(email='lecturer@campus.test', full_name='Grace Lecturer', role=RoleType.PRESENTER)
    student = User(email='student@campus.test', full_name='Sam Student', role=RoleType.PARTICIPANT)
    classmate = User(email='classmate@campus.test', full_name='Kim Classmate', role=RoleType.PARTICIPANT)
    outsider = User(email='outsider@campus.test', full_name='Lee Outsider', role=RoleType.PARTICIPANT)
    dropped = User(email='dropped@campus.test', full_name='Max Dropped', role=RoleType.PARTICIPANT)
    db.session.add_all([presenter, other_presenter, student, classmate, outsider, dropped])
    db.session.flush()

    course = Course(course_code='CS101', course_name='Introduction to Programming', instructor_id=presenter.id)
    other_course = Course(course_code='MA201', course_name='Linear Algebra', instructor_id=other_presenter.id)
    db.session.add_all([course, other_course])
    db.session.flush()

    db.session.add_all([
        Enrollment(student_id=student.id, course_id=course.id, status=EnrollmentStatus.ACTIVE),
        Enrollment(student_id=classmate.id, course_id=course.id, status=EnrollmentStatus.ACTIVE),
        Enrollment(student_id=dropped.id, course_id=course.id, status=EnrollmentStatus.DROPPED),
        Enrollment(student_id=student.id, course_id=other_course.id, status=EnrollmentStatus.ACTIVE),
    ])
    db.session.commit()

    return SimpleNamespace(
        presenter=presenter,
        other_presenter=other_presenter,
        student=student,
        classmate=classmate,
        outsider=outsider,
        dropped=dropped,
        course=course,
        other_course=other_course
    )


@pytest.fixture
def open_session(directory):
    """Factory opening a CS101 session; defaults to 09:00-10:00 on CLASS_DATE at ANCHOR."""

    def _open(session_date=CLASS_DATE, start=time(9, 0), end=time(10, 0), course=None, presenter=None,
              anchor=ANCHOR, **kwargs):
        result = SessionRegistryService.open_session(
            course_id=(course or directory.course).id,
            presenter_id=(presenter or directory.presenter).id,
            session_date=session_date,
            start_time=start,
            end_time=end,
            anchor_latitude=anchor[0],
            anchor_longitude=anchor[1],
            **kwargs
        )
        assert result['success'], result
        return result

    return _open


@pytest.fixture
def freeze_check_in_clock(monkeypatch):
    """Pin the server clock used by the check-in route."""
    from session_attendance.controllers import check_in

    def _freeze(moment):
        class FrozenDatetime(datetime):
            @classmethod
            def now(cls, tz=None):
                return moment

        monkeypatch.setattr(check_in, 'datetime', FrozenDatetime)

    return _freeze


def auth(user):
    return {'X-Portal-User': user.id}
