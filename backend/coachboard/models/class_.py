"""Class and ClassEnrollment models.

A student may sit in several classes; the earliest enrollment is treated as
their home class when an insight needs a class_id.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from coachboard.database import Base


class Class(Base):
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    teacher_id = Column(String(36), nullable=False, index=True)
    subject = Column(String(100), nullable=True)
    grade_level = Column(String(20), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    enrollments = relationship("ClassEnrollment", back_populates="class_", cascade="all, delete-orphan")
    lessons = relationship("Lesson", back_populates="class_")


class ClassEnrollment(Base):
    __tablename__ = "class_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=False, index=True)
    joined_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    student = relationship("Student", back_populates="enrollments")
    class_ = relationship("Class", back_populates="enrollments")
