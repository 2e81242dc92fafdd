from datetime import time

from session_attendance.models import AttendanceClaim
from session_attendance.services.claim_ledger import ClaimLedgerService
from session_attendance.services.discovery_service import DiscoveryService
from tests.conftest import ANCHOR, at


def test_poll_lists_running_sessions(open_session, directory):
    opened = open_session(room_label='B-204')

    views = DiscoveryService.poll(directory.student.id, as_of=at(9, 5))

    assert len(views) == 1
    view = views[0]
    assert view['id'] == opened['session_id']
    assert view['code'] == opened['code']
    assert view['room_label'] == 'B-204'
    assert view['already_claimed'] is False
    assert view['claimed_status'] is None
    assert view['minutes_since_start'] == 5
    assert view['is_late_window'] is False
    assert view['on_time_minutes_remaining'] == 6


def test_poll_marks_late_window(open_session, directory):
    open_session()

    view = DiscoveryService.poll(directory.student.id, as_of=at(9, 11))[0]
    assert view['is_late_window'] is True
    assert view['on_time_minutes_remaining'] == 0


def test_tenth_minute_still_has_on_time_left(open_session, directory):
    open_session()

    view = DiscoveryService.poll(directory.student.id, as_of=at(9, 10, 30))[0]
    assert view['is_late_window'] is False
    assert view['on_time_minutes_remaining'] == 1


def test_poll_reflects_existing_claim(open_session, directory):
    opened = open_session()
    ClaimLedgerService.submit_claim(opened['session_id'], directory.student.id, *ANCHOR, submitted_at=at(9, 2))

    view = DiscoveryService.poll(directory.student.id, as_of=at(9, 30))[0]
    assert view['already_claimed'] is True
    assert view['claimed_status'] == 'on_time'

    other = DiscoveryService.poll(directory.classmate.id, as_of=at(9, 30))[0]
    assert other['already_claimed'] is False


def test_poll_only_shows_enrolled_courses(open_session, directory):
    open_session()
    open_session(course=directory.other_course, presenter=directory.other_presenter, start=time(9, 30))

    assert len(DiscoveryService.poll(directory.student.id, as_of=at(9, 45))) == 2
    assert len(DiscoveryService.poll(directory.classmate.id, as_of=at(9, 45))) == 1
    assert DiscoveryService.poll(directory.outsider.id, as_of=at(9, 45)) == []
    assert DiscoveryService.poll(directory.dropped.id, as_of=at(9, 45)) == []


def test_poll_course_filter(open_session, directory):
    open_session()
    open_session(course=directory.other_course, presenter=directory.other_presenter)

    views = DiscoveryService.poll(directory.student.id, course_ids=[directory.other_course.id], as_of=at(9, 15))
    assert [v['course_id'] for v in views] == [directory.other_course.id]

    # filtering never widens past enrollment
    assert DiscoveryService.poll(directory.classmate.id, course_ids=[directory.other_course.id],
                                 as_of=at(9, 15)) == []


def test_poll_window_boundaries(open_session, directory):
    open_session()

    assert DiscoveryService.poll(directory.student.id, as_of=at(8, 59)) == []
    assert len(DiscoveryService.poll(directory.student.id, as_of=at(10, 0, 0))) == 1
    assert DiscoveryService.poll(directory.student.id, as_of=at(10, 0, 1)) == []


def test_poll_never_writes(open_session, directory):
    open_session()

    for minute in range(0, 60, 5):
        DiscoveryService.poll(directory.student.id, as_of=at(9, minute))

    assert AttendanceClaim.query.count() == 0
