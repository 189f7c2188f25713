"""Per-student assignment progress: attempts, scores and support usage."""

import uuid

from sqlalchemy import Column, String, DateTime, Float, Integer, ForeignKey, UniqueConstraint

from coachboard.database import Base


class AssignmentStudent(Base):
    __tablename__ = "assignment_students"
    __table_args__ = (
        UniqueConstraint("student_id", "assignment_id", name="uq_assignment_student"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    assignment_id = Column(String(36), ForeignKey("lessons.id"), nullable=False, index=True)

    attempts = Column(Integer, nullable=False, default=0)
    current_attempt = Column(Integer, nullable=False, default=0)
    score = Column(Float, nullable=True)
    highest_score = Column(Float, nullable=True)
    total_time_spent = Column(Integer, nullable=True)  # seconds
    hints_used = Column(Integer, nullable=False, default=0)
    questions_answered = Column(Integer, nullable=False, default=0)  # across all completed attempts
    coach_session_count = Column(Integer, nullable=False, default=0)

    started_at = Column(DateTime, nullable=True)
    first_completed_at = Column(DateTime, nullable=True)
    last_completed_at = Column(DateTime, nullable=True)
