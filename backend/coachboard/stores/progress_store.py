"""Progress store: one AssignmentStudent record per (student, assignment)."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from coachboard.clock import utcnow
from coachboard.ids import new_id
from coachboard.models.assignment_student import AssignmentStudent

logger = logging.getLogger(__name__)


def load(db: Session, student_id: str, assignment_id: str) -> Optional[AssignmentStudent]:
    return (
        db.query(AssignmentStudent)
        .filter(
            AssignmentStudent.student_id == student_id,
            AssignmentStudent.assignment_id == assignment_id,
        )
        .first()
    )


def save(db: Session, record: AssignmentStudent) -> AssignmentStudent:
    """Upsert by (student_id, assignment_id)."""
    if not record.id:
        existing = load(db, record.student_id, record.assignment_id)
        record.id = existing.id if existing else new_id()
    merged = db.merge(record)
    db.commit()
    db.refresh(merged)
    return merged


def _new_record(student_id: str, assignment_id: str) -> AssignmentStudent:
    return AssignmentStudent(
        id=new_id(),
        student_id=student_id,
        assignment_id=assignment_id,
        attempts=0,
        current_attempt=0,
        hints_used=0,
        questions_answered=0,
        coach_session_count=0,
    )


def start_attempt(db: Session, student_id: str, assignment_id: str) -> AssignmentStudent:
    record = load(db, student_id, assignment_id)
    now = utcnow()
    if not record:
        record = _new_record(student_id, assignment_id)
        record.attempts = 1
        record.current_attempt = 1
        record.started_at = now
    else:
        record.attempts = (record.attempts or 0) + 1
        record.current_attempt = record.attempts
        if not record.started_at:
            record.started_at = now
    return save(db, record)


def complete_attempt(
    db: Session,
    student_id: str,
    assignment_id: str,
    score: float,
    time_spent: Optional[int] = None,
    questions: int = 0,
) -> AssignmentStudent:
    """Record a finished attempt; highest_score only ever rises."""
    record = load(db, student_id, assignment_id)
    now = utcnow()
    if not record:
        record = _new_record(student_id, assignment_id)
        record.attempts = 1
        record.current_attempt = 1
        record.highest_score = score
        record.first_completed_at = now
    else:
        # A completion with no recorded start still counts as an attempt
        if not record.attempts:
            record.attempts = 1
            record.current_attempt = 1
        record.highest_score = max(record.highest_score or 0, score)
        if not record.first_completed_at:
            record.first_completed_at = now
    record.score = score
    record.last_completed_at = now

    if time_spent is not None:
        record.total_time_spent = (record.total_time_spent or 0) + time_spent
    record.questions_answered = (record.questions_answered or 0) + questions

    return save(db, record)


def record_hint_usage(db: Session, student_id: str, assignment_id: str, hints_used: int) -> AssignmentStudent:
    record = load(db, student_id, assignment_id) or _new_record(student_id, assignment_id)
    record.hints_used = (record.hints_used or 0) + hints_used
    return save(db, record)


def record_coach_session(db: Session, student_id: str, assignment_id: str) -> AssignmentStudent:
    record = load(db, student_id, assignment_id) or _new_record(student_id, assignment_id)
    record.coach_session_count = (record.coach_session_count or 0) + 1
    return save(db, record)


def reassign(db: Session, student_id: str, assignment_id: str) -> AssignmentStudent:
    """Open a fresh attempt, clearing the latest result but keeping the best one."""
    record = load(db, student_id, assignment_id) or _new_record(student_id, assignment_id)
    record.attempts = (record.attempts or 0) + 1
    record.current_attempt = record.attempts
    record.last_completed_at = None
    record.score = None
    logger.info(
        "Reassigned %s to student %s (attempt %d)",
        assignment_id, student_id, record.attempts,
    )
    return save(db, record)


def get_by_assignment(db: Session, assignment_id: str) -> list[AssignmentStudent]:
    return (
        db.query(AssignmentStudent)
        .filter(AssignmentStudent.assignment_id == assignment_id)
        .all()
    )


def get_by_student(db: Session, student_id: str) -> list[AssignmentStudent]:
    return (
        db.query(AssignmentStudent)
        .filter(AssignmentStudent.student_id == student_id)
        .all()
    )
