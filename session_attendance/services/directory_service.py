# services/directory_service.py
"""
Read-only lookups against the portal directory (courses and enrollments).
"""

from session_attendance.extensions import db
from session_attendance.models.directory import Course, Enrollment, EnrollmentStatus


class DirectoryService:
    """Point queries the attendance core consults; it never writes here."""

    @staticmethod
    def is_actively_enrolled(participant_id, course_id):
        """Whether the participant holds an active enrollment in the course."""
        enrollment = (
            db.session.query(Enrollment.id)
            .filter_by(student_id=participant_id, course_id=course_id, status=EnrollmentStatus.ACTIVE)
            .first()
        )
        return enrollment is not None

    @staticmethod
    def owns_course(presenter_id, course_id):
        """Whether the presenter is the instructor of record for the course."""
        course = db.session.get(Course, course_id)
        return course is not None and course.instructor_id == presenter_id

    @staticmethod
    def active_course_ids(participant_id):
        """Ids of every course the participant is actively enrolled in."""
        rows = (
            db.session.query(Enrollment.course_id)
            .filter_by(student_id=participant_id, status=EnrollmentStatus.ACTIVE)
            .all()
        )
        return {row.course_id for row in rows}
