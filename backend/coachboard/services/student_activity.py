"""Student activity: records attempts and coach usage, then runs the insight rules."""

import logging

from sqlalchemy.orm import Session

from coachboard.errors import NotFoundError
from coachboard.schemas.activity import CompletionRequest, CoachInteractionRequest
from coachboard.schemas.insight import PerformanceEvent
from coachboard.services import insight_generator
from coachboard.services.dashboard_aggregator import hint_usage_rate, understanding_level
from coachboard.stores import progress_store, roster_store

logger = logging.getLogger(__name__)


def _require(db: Session, student_id: str, assignment_id: str):
    student = roster_store.get_student(db, student_id)
    if not student:
        raise NotFoundError("Student", student_id)
    lesson = roster_store.get_lesson(db, assignment_id)
    if not lesson:
        raise NotFoundError("Assignment", assignment_id)
    return student, lesson


def _class_for(db: Session, student, lesson) -> str:
    return roster_store.primary_class_id(db, student.id) or lesson.class_id or ""


def record_completion(db: Session, req: CompletionRequest) -> dict:
    """Store a finished attempt and raise whatever insights it warrants."""
    student, lesson = _require(db, req.student_id, req.assignment_id)

    existing = progress_store.load(db, student.id, lesson.id)
    previous = None
    if existing:
        previous = existing.highest_score if existing.highest_score is not None else existing.score

    progress_store.complete_attempt(
        db, student.id, lesson.id, req.score, req.time_spent_seconds, questions=lesson.prompt_count or 0,
    )
    if req.hints_used > 0:
        progress_store.record_hint_usage(db, student.id, lesson.id, req.hints_used)
    for _ in range(req.coach_sessions_used):
        progress_store.record_coach_session(db, student.id, lesson.id)
    record = progress_store.load(db, student.id, lesson.id)

    rate = hint_usage_rate(req.hints_used, lesson.prompt_count)
    level = understanding_level(req.score, rate)

    event = PerformanceEvent(
        student_id=student.id,
        assignment_id=lesson.id,
        subject=lesson.subject,
        class_id=_class_for(db, student, lesson),
        prompt_count=lesson.prompt_count,
        score=req.score,
        hint_usage_rate=rate,
        coach_sessions_used=req.coach_sessions_used,
        attempts=record.attempts,
        previous_highest_score=previous,
        student_name=student.name,
        assignment_title=lesson.title,
    )
    insights = insight_generator.generate_insights(db, event)
    logger.info(
        "Student %s completed %s with %s%% (attempt %d, %d new insights)",
        student.id, lesson.id, req.score, record.attempts, len(insights),
    )

    return {
        "record": record,
        "insights": insights,
        "understanding_level": level,
        "attempt_number": record.attempts,
        "is_improvement": previous is not None and req.score > previous,
        "improvement_amount": req.score - previous if previous is not None else 0.0,
    }


def record_coach_interaction(db: Session, req: CoachInteractionRequest) -> dict:
    student, lesson = _require(db, req.student_id, req.assignment_id)
    record = progress_store.record_coach_session(db, student.id, lesson.id)
    insights = insight_generator.generate_coach_insights(
        db,
        student.id,
        lesson.id,
        req.intent,
        record.coach_session_count,
        class_id=_class_for(db, student, lesson),
        subject=lesson.subject,
        student_name=student.name,
        assignment_title=lesson.title,
    )
    return {"record": record, "intent": req.intent, "insights": insights}


def start_retry(db: Session, student_id: str, assignment_id: str) -> dict:
    student, lesson = _require(db, student_id, assignment_id)
    existing = progress_store.load(db, student.id, lesson.id)
    previous_attempts = existing.attempts if existing else 0
    previous_score = None
    if existing:
        previous_score = existing.highest_score if existing.highest_score is not None else existing.score
    record = progress_store.start_attempt(db, student.id, lesson.id)
    return {"record": record, "previous_attempts": previous_attempts, "previous_score": previous_score}
