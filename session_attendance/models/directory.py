# models/directory.py
"""
Portal directory tables: users, courses and enrollments.
They are owned by the wider portal; the attendance core only reads them.
"""

from flask_login import UserMixin
from sqlalchemy import Index

from session_attendance.extensions import db
from .base import BaseModel


class RoleType:
    """Define role types as constants."""
    PRESENTER = 'presenter'
    PARTICIPANT = 'participant'
    ADMIN = 'admin'


class EnrollmentStatus:
    """Enrollment status constants."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    DROPPED = 'dropped'


class User(UserMixin, BaseModel):
    """Portal user as seen by the attendance core."""

    __tablename__ = 'users'

    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(160), nullable=False)
    role = db.Column(db.String(20), default=RoleType.PARTICIPANT, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('idx_user_role_active', 'role', 'is_active'),
    )

    def is_presenter(self):
        return self.role in (RoleType.PRESENTER, RoleType.ADMIN)

    def is_participant(self):
        return self.role == RoleType.PARTICIPANT

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class Course(BaseModel):
    __tablename__ = 'courses'

    course_code = db.Column(db.String(20), nullable=False)
    course_name = db.Column(db.String(200), nullable=False)
    instructor_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    instructor = db.relationship('User', foreign_keys=[instructor_id])
    enrollments = db.relationship('Enrollment', back_populates='course', lazy='dynamic')

    __table_args__ = (
        Index('uq_course_code', 'course_code', unique=True),
    )

    def __repr__(self):
        return f'<Course {self.course_code}>'


class Enrollment(BaseModel):
    __tablename__ = 'enrollments'

    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id'), nullable=False, index=True)
    status = db.Column(db.String(20), default=EnrollmentStatus.ACTIVE, nullable=False)

    student = db.relationship('User', foreign_keys=[student_id])
    course = db.relationship('Course', back_populates='enrollments')

    __table_args__ = (
        Index('uq_enrollment_student_course', 'student_id', 'course_id', unique=True),
        Index('idx_enrollment_student_status', 'student_id', 'status'),
    )

    @property
    def is_active(self):
        return self.status == EnrollmentStatus.ACTIVE

    def __repr__(self):
        return f'<Enrollment {self.student_id} in {self.course_id} ({self.status})>'
