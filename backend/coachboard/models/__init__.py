"""SQLAlchemy ORM models."""

from coachboard.models.student import Student
from coachboard.models.class_ import Class, ClassEnrollment
from coachboard.models.lesson import Lesson
from coachboard.models.insight import Insight
from coachboard.models.teacher_action import TeacherAction
from coachboard.models.assignment_student import AssignmentStudent
from coachboard.models.badge import Badge

__all__ = [
    "Student",
    "Class",
    "ClassEnrollment",
    "Lesson",
    "Insight",
    "TeacherAction",
    "AssignmentStudent",
    "Badge",
]
