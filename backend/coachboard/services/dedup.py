"""Active-insight lookups that keep one open insight per (student, assignment, type)."""

from typing import Optional

from sqlalchemy.orm import Session

from coachboard.models.insight import Insight, ACTIVE_STATUSES
from coachboard.stores import insight_store


def find_existing(
    db: Session,
    student_id: str,
    assignment_id: Optional[str],
    insight_type: str,
    class_id: Optional[str] = None,
) -> Optional[Insight]:
    """Return the active insight for the triple, if any.

    Only pending_review and monitoring insights count; resolved ones never
    block a new insight from being raised.
    """
    return insight_store.find_active(
        db, student_id, assignment_id, insight_type, ACTIVE_STATUSES, class_id=class_id,
    )


def exists(db: Session, student_id: str, assignment_id: Optional[str], insight_type: str) -> bool:
    return find_existing(db, student_id, assignment_id, insight_type) is not None


def active_types(db: Session, student_id: str, assignment_id: Optional[str]) -> set[str]:
    """Insight types that already have an active insight for (student, assignment)."""
    q = db.query(Insight.insight_type).filter(
        Insight.student_id == student_id,
        Insight.status.in_(ACTIVE_STATUSES),
    )
    if assignment_id is None:
        q = q.filter(Insight.assignment_id.is_(None))
    else:
        q = q.filter(Insight.assignment_id == assignment_id)
    return {row[0] for row in q.distinct().all()}
