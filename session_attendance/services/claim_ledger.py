# services/claim_ledger.py
"""
Claim Ledger: records accepted attendance claims, at most one per (session, participant).

The unique index on attendance_claim(session_id, participant_id) is the only
concurrency guard. Two racing submissions both pass the pre-insert duplicate check,
exactly one insert commits, and the loser's IntegrityError is reported as
already_claimed together with the winner's status.
"""

import logging
from datetime import datetime, time

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from session_attendance.extensions import db
from session_attendance.models.attendance_claim import AttendanceClaim, CheckInMethod, ClaimStatus
from session_attendance.models.class_session import ClassSession
from session_attendance.services.directory_service import DirectoryService
from session_attendance.services.errors import AttendanceError, failure
from session_attendance.services.geofence import GeofencePolicy, classify_claim
from session_attendance.services.session_registry import SessionRegistryService


class ClaimLedgerService:
    """Service class for submitting and reading attendance claims."""

    @staticmethod
    def submit_claim(session_id, participant_id, latitude, longitude, submitted_at=None,
                     client_timestamp=None, accuracy_meters=None,
                     check_in_method=CheckInMethod.SESSION_ID):
        """
        Verify and record a participant's attendance claim.

        Args:
            session_id: Target session id
            participant_id: Claiming user id
            latitude: Claimant latitude
            longitude: Claimant longitude
            submitted_at: Server receive time; authoritative for classification
            client_timestamp: Device clock reading, stored for audit only
            accuracy_meters: Reported location accuracy, stored for audit only
            check_in_method: 'code', 'qr_code' or 'session_id'

        Returns:
            dict: On success status, distance_meters, minutes_since_start and the claim.
            On rejection error_code and message, plus status/claim for already_claimed.

        Raises:
            SQLAlchemyError: storage failures other than the uniqueness violation
        """
        logger = logging.getLogger('claim_ledger')
        submitted_at = submitted_at or datetime.now()

        # 1. Resolve session
        session = db.session.get(ClassSession, session_id)
        if not session:
            logger.warning(f"Claim rejected: session {session_id} not found")
            return failure(AttendanceError.SESSION_NOT_FOUND, 'Session not found')

        if not session.is_open:
            logger.warning(f"Claim rejected: session {session_id} is closed")
            return failure(
                AttendanceError.SESSION_CLOSED,
                'This session has been closed by the presenter',
                session_id=session.id
            )

        # 2. Enrollment
        if not DirectoryService.is_actively_enrolled(participant_id, session.course_id):
            logger.warning(f"Claim rejected: {participant_id} not enrolled in course {session.course_id}")
            return failure(
                AttendanceError.NOT_ENROLLED,
                'You are not enrolled in this course',
                session_id=session.id
            )

        # 3. Existing claim
        existing = ClaimLedgerService._find_claim(session.id, participant_id)
        if existing:
            logger.info(f"Duplicate claim: {participant_id} already claimed session {session.id}")
            return ClaimLedgerService._already_claimed(existing)

        # 4. Classification
        policy = GeofencePolicy.from_config(current_app.config)
        verdict = classify_claim(
            session_date=session.session_date,
            start_time=session.start_time,
            end_time=session.end_time,
            anchor_latitude=session.anchor_latitude,
            anchor_longitude=session.anchor_longitude,
            latitude=latitude,
            longitude=longitude,
            submitted_at=submitted_at,
            policy=policy
        )
        if not verdict['success']:
            logger.warning(f"Claim rejected for {participant_id} on session {session.id}: "
                           f"{verdict['error_code']} ({verdict['message']})")
            verdict['session_id'] = session.id
            return verdict

        # 5. Insert; the unique index arbitrates concurrent submissions
        claim = AttendanceClaim(
            session_id=session.id,
            participant_id=participant_id,
            status=verdict['status'],
            credit_weight=verdict['credit_weight'],
            submitted_at=submitted_at,
            client_timestamp=client_timestamp,
            distance_meters=verdict['distance_meters'],
            minutes_since_start=verdict['minutes_since_start'],
            check_in_method=check_in_method,
            latitude=float(latitude),
            longitude=float(longitude),
            accuracy_meters=accuracy_meters
        )
        db.session.add(claim)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            winner = ClaimLedgerService._find_claim(session.id, participant_id)
            if winner is None:
                # Constraint failed for another reason; treat as a storage failure
                raise
            logger.info(f"Lost claim race: {participant_id} on session {session.id}")
            return ClaimLedgerService._already_claimed(winner)
        except SQLAlchemyError:
            db.session.rollback()
            logger.error(f"Storage error recording claim for {participant_id} on session {session.id}",
                         exc_info=True)
            raise

        logger.info(f"Claim accepted: {participant_id} on session {session.id} "
                    f"status={claim.status} distance={verdict['distance_meters']}m "
                    f"elapsed={claim.minutes_since_start}min")

        return {
            'success': True,
            'message': 'Attendance recorded' if claim.status == ClaimStatus.ON_TIME else 'Attendance recorded as late',
            'status': claim.status,
            'credit_weight': claim.credit_weight,
            'distance_meters': verdict['distance_meters'],
            'minutes_since_start': claim.minutes_since_start,
            'claim': claim.to_dict()
        }

    @staticmethod
    def submit_claim_by_code(code, participant_id, latitude, longitude, submitted_at=None,
                             client_timestamp=None, accuracy_meters=None,
                             check_in_method=CheckInMethod.CODE):
        """Resolve a session by its code for the submission date, then submit."""
        submitted_at = submitted_at or datetime.now()

        # Closed sessions resolve too; submit_claim reports them as session_closed
        lookup = SessionRegistryService.find_by_code(code, submitted_at.date(), include_closed=True)
        if not lookup['success']:
            logging.getLogger('claim_ledger').warning(
                f"Claim rejected: no session with code {code!r} for {participant_id}")
            return lookup

        return ClaimLedgerService.submit_claim(
            session_id=lookup['session_obj'].id,
            participant_id=participant_id,
            latitude=latitude,
            longitude=longitude,
            submitted_at=submitted_at,
            client_timestamp=client_timestamp,
            accuracy_meters=accuracy_meters,
            check_in_method=check_in_method
        )

    @staticmethod
    def list_claims_for_session(session_id):
        return (
            db.session.query(AttendanceClaim)
            .filter_by(session_id=session_id)
            .order_by(AttendanceClaim.submitted_at)
            .all()
        )

    @staticmethod
    def list_claims_for_participant(participant_id, start_date=None, end_date=None):
        """Claims for a participant, optionally bounded by inclusive submission dates."""
        query = db.session.query(AttendanceClaim).filter_by(participant_id=participant_id)
        if start_date:
            query = query.filter(AttendanceClaim.submitted_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(AttendanceClaim.submitted_at <= datetime.combine(end_date, time.max))
        return query.order_by(AttendanceClaim.submitted_at).all()

    @staticmethod
    def _find_claim(session_id, participant_id):
        return (
            db.session.query(AttendanceClaim)
            .filter_by(session_id=session_id, participant_id=participant_id)
            .first()
        )

    @staticmethod
    def _already_claimed(claim):
        return failure(
            AttendanceError.ALREADY_CLAIMED,
            f'Attendance already recorded at {claim.submitted_at.strftime("%H:%M:%S")}',
            status=claim.status,
            session_id=claim.session_id,
            claim=claim.to_dict()
        )
