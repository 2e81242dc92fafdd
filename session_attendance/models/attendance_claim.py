# models/attendance_claim.py
from sqlalchemy import Index, event

from session_attendance.extensions import db
from session_attendance.services.geofence import STATUS_ON_TIME, STATUS_LATE
from .base import BaseModel


class ClaimStatus:
    """Claim status constants."""
    ON_TIME = STATUS_ON_TIME
    LATE = STATUS_LATE


class CheckInMethod:
    CODE = 'code'
    QR_CODE = 'qr_code'
    SESSION_ID = 'session_id'


class AttendanceClaim(BaseModel):
    """One accepted attendance claim for a (session, participant) pair. Immutable once written."""

    __tablename__ = 'attendance_claim'

    session_id = db.Column(db.String(36), db.ForeignKey('class_session.id'), nullable=False, index=True)
    participant_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    credit_weight = db.Column(db.Float, nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=False)
    client_timestamp = db.Column(db.DateTime, nullable=True)
    distance_meters = db.Column(db.Float, nullable=False)
    minutes_since_start = db.Column(db.Integer, nullable=False)
    check_in_method = db.Column(db.String(20), default=CheckInMethod.SESSION_ID, nullable=False)

    # Raw location sample retained for audit
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    accuracy_meters = db.Column(db.Float, nullable=True)

    session = db.relationship('ClassSession', back_populates='claims')
    participant = db.relationship('User', foreign_keys=[participant_id])

    __table_args__ = (
        # At most one claim per participant per session; concurrent inserts
        # race on this index and the loser sees an IntegrityError
        Index('uq_attendance_claim_session_participant', 'session_id', 'participant_id', unique=True),

        Index('idx_attendance_claim_participant_submitted', 'participant_id', 'submitted_at'),
        Index('idx_attendance_claim_session_status', 'session_id', 'status'),
    )

    def __repr__(self):
        return f'<AttendanceClaim {self.participant_id} @ {self.session_id} ({self.status})>'


@event.listens_for(AttendanceClaim, 'before_update')
def refuse_claim_update(mapper, connection, target):
    raise ValueError(f"Attendance claim {target.id} is immutable")
