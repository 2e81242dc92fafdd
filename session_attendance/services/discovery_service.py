# services/discovery_service.py
"""
Active-session discovery for participants.

Participants' clients poll this periodically. Every poll is a fresh read projection
over the registry and the ledger: nothing is written and nothing is cached.
"""

import logging
from datetime import datetime

from flask import current_app

from session_attendance.extensions import db
from session_attendance.models.attendance_claim import AttendanceClaim
from session_attendance.services.directory_service import DirectoryService
from session_attendance.services.geofence import GeofencePolicy, minutes_since
from session_attendance.services.session_registry import SessionRegistryService


class DiscoveryService:

    @staticmethod
    def poll(participant_id, course_ids=None, as_of=None):
        """
        List sessions currently running for the participant's enrolled courses.

        Args:
            participant_id: Polling participant
            course_ids: Optional subset of courses to consider
            as_of: Evaluation time, defaults to now

        Returns:
            list: session dicts annotated with already_claimed, claimed_status,
            minutes_since_start, is_late_window and on_time_minutes_remaining
        """
        as_of = (as_of or datetime.now()).replace(microsecond=0)
        policy = GeofencePolicy.from_config(current_app.config)

        enrolled = DirectoryService.active_course_ids(participant_id)
        if course_ids:
            enrolled &= set(course_ids)

        sessions = SessionRegistryService.list_open_for_courses(enrolled, as_of=as_of)
        if not sessions:
            return []

        claims = (
            db.session.query(AttendanceClaim.session_id, AttendanceClaim.status)
            .filter(
                AttendanceClaim.participant_id == participant_id,
                AttendanceClaim.session_id.in_([s.id for s in sessions])
            )
            .all()
        )
        claimed = {row.session_id: row.status for row in claims}

        views = []
        for session in sessions:
            elapsed = max(minutes_since(session.starts_at, as_of), 0)
            view = session.to_dict()
            view.update({
                'already_claimed': session.id in claimed,
                'claimed_status': claimed.get(session.id),
                'minutes_since_start': elapsed,
                'is_late_window': elapsed > policy.on_time_minutes,
                # minutes until the first late minute; minute ``on_time_minutes`` still counts
                'on_time_minutes_remaining': max(policy.on_time_minutes + 1 - elapsed, 0)
            })
            views.append(view)

        logging.getLogger('discovery_service').debug(
            f"Poll for {participant_id} at {as_of.isoformat()}: {len(views)} open sessions")
        return views
