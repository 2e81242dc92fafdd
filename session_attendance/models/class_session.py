# models/class_session.py
from datetime import datetime

from sqlalchemy import Index
from sqlalchemy.orm import validates

from session_attendance.extensions import db
from .base import BaseModel


class ClassSession(BaseModel):
    """A presenter-opened, time-boxed and location-anchored class meeting."""

    __tablename__ = 'class_session'

    code = db.Column(db.String(12), nullable=False)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id'), nullable=False, index=True)
    presenter_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    session_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    anchor_latitude = db.Column(db.Float, nullable=True)
    anchor_longitude = db.Column(db.Float, nullable=True)
    room_label = db.Column(db.String(50), nullable=True)
    topic = db.Column(db.String(255), nullable=True)
    is_open = db.Column(db.Boolean, default=True, nullable=False)
    closed_at = db.Column(db.DateTime, nullable=True)

    course = db.relationship('Course')
    presenter = db.relationship('User', foreign_keys=[presenter_id])
    claims = db.relationship('AttendanceClaim', back_populates='session', lazy='dynamic')

    __table_args__ = (
        # Codes are scoped to a calendar date; this index is also the
        # arbitration point for concurrent code generation
        Index('uq_class_session_code_date', 'code', 'session_date', unique=True),

        Index('idx_class_session_date_open', 'session_date', 'is_open'),
        Index('idx_class_session_course_date', 'course_id', 'session_date'),
        Index('idx_class_session_presenter_date', 'presenter_id', 'session_date'),
    )

    @validates('anchor_latitude', 'anchor_longitude')
    def validate_anchor(self, key, value):
        current = getattr(self, key)
        if current is not None and value != current:
            raise ValueError(f"{key} cannot be changed once the session is anchored")
        return value

    @property
    def starts_at(self):
        return datetime.combine(self.session_date, self.start_time)

    @property
    def ends_at(self):
        return datetime.combine(self.session_date, self.end_time)

    def to_dict(self):
        result = super().to_dict()
        result['starts_at'] = self.starts_at.isoformat()
        result['ends_at'] = self.ends_at.isoformat()
        return result

    def __repr__(self):
        return f'<ClassSession {self.code} {self.session_date} {self.start_time}-{self.end_time}>'
