# models/__init__.py
from .base import BaseModel
from .directory import User, Course, Enrollment, RoleType, EnrollmentStatus
from .class_session import ClassSession
from .attendance_claim import AttendanceClaim, ClaimStatus, CheckInMethod

__all__ = [
    'BaseModel',
    'User',
    'Course',
    'Enrollment',
    'RoleType',
    'EnrollmentStatus',
    'ClassSession',
    'AttendanceClaim',
    'ClaimStatus',
    'CheckInMethod'
]
