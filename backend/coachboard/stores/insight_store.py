"""Insight store: persistence and filtered, sorted, paged queries."""

from typing import Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from coachboard.models.insight import Insight, PRIORITY_RANK, TYPE_PRIORITY_ORDER
from coachboard.schemas.insight import InsightFilter, InsightSort

_priority_rank = case(PRIORITY_RANK, value=Insight.priority, else_=-1)
_type_rank = case(
    {t: i for i, t in enumerate(TYPE_PRIORITY_ORDER)},
    value=Insight.insight_type,
    else_=-1,
)

_SORT_COLUMNS = {
    "created_at": Insight.created_at,
    "priority": _priority_rank,
    "confidence": Insight.confidence,
    "type": _type_rank,
}


def save(db: Session, insight: Insight) -> Insight:
    """Insert or replace an insight by id."""
    merged = db.merge(insight)
    db.commit()
    db.refresh(merged)
    return merged


def load(db: Session, insight_id: str) -> Optional[Insight]:
    return db.query(Insight).filter(Insight.id == insight_id).first()


def delete(db: Session, insight_id: str) -> bool:
    insight = load(db, insight_id)
    if not insight:
        return False
    db.delete(insight)
    db.commit()
    return True


def _apply_filter(query, filters: InsightFilter):
    if filters.student_id:
        query = query.filter(Insight.student_id == filters.student_id)
    if filters.class_id:
        query = query.filter(Insight.class_id == filters.class_id)
    if filters.assignment_id:
        query = query.filter(Insight.assignment_id == filters.assignment_id)
    if filters.subject:
        query = query.filter(Insight.subject == filters.subject)
    if filters.types:
        query = query.filter(Insight.insight_type.in_(filters.types))
    if filters.priorities:
        query = query.filter(Insight.priority.in_(filters.priorities))
    if filters.statuses:
        query = query.filter(Insight.status.in_(filters.statuses))
    if filters.min_confidence is not None:
        query = query.filter(Insight.confidence >= filters.min_confidence)
    if filters.created_after:
        query = query.filter(Insight.created_at >= filters.created_after)
    if filters.created_before:
        query = query.filter(Insight.created_at <= filters.created_before)
    if filters.reviewed_by:
        query = query.filter(Insight.reviewed_by == filters.reviewed_by)
    return query


def query(
    db: Session,
    filters: Optional[InsightFilter] = None,
    sort: Optional[InsightSort] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    """Filter, sort and page insights.

    Without an explicit sort the most important insights come first:
    priority, then insight type (check_in > challenge_opportunity >
    celebrate_progress > monitor), then confidence, all descending.
    """
    page = max(page, 1)
    page_size = max(page_size, 1)

    q = _apply_filter(db.query(Insight), filters or InsightFilter())
    total = q.count()

    if sort:
        column = _SORT_COLUMNS[sort.field]
        order = column.asc() if sort.direction == "asc" else column.desc()
        q = q.order_by(order, Insight.id)
    else:
        q = q.order_by(
            _priority_rank.desc(),
            _type_rank.desc(),
            Insight.confidence.desc(),
            Insight.created_at.desc(),
        )

    insights = q.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "insights": insights,
        "total": total,
        "page": page,
        "page_size": page_size,
        "has_more": page * page_size < total,
    }


def find_active(
    db: Session,
    student_id: str,
    assignment_id: Optional[str],
    insight_type: str,
    statuses: tuple[str, ...],
    class_id: Optional[str] = None,
) -> Optional[Insight]:
    q = db.query(Insight).filter(
        Insight.student_id == student_id,
        Insight.insight_type == insight_type,
        Insight.status.in_(statuses),
    )
    if assignment_id is None:
        q = q.filter(Insight.assignment_id.is_(None))
    else:
        q = q.filter(Insight.assignment_id == assignment_id)
    if class_id:
        q = q.filter(Insight.class_id == class_id)
    return q.order_by(Insight.created_at.desc()).first()


def list_by_status(db: Session, statuses: tuple[str, ...]) -> list[Insight]:
    return db.query(Insight).filter(Insight.status.in_(statuses)).all()


def get_by_student(db: Session, student_id: str) -> list[Insight]:
    return (
        db.query(Insight)
        .filter(Insight.student_id == student_id)
        .order_by(Insight.created_at.desc())
        .all()
    )


def get_by_assignment(db: Session, assignment_id: str) -> list[Insight]:
    return (
        db.query(Insight)
        .filter(Insight.assignment_id == assignment_id)
        .order_by(Insight.created_at.desc())
        .all()
    )


def get_by_class(db: Session, class_id: str) -> list[Insight]:
    return (
        db.query(Insight)
        .filter(Insight.class_id == class_id)
        .order_by(Insight.created_at.desc())
        .all()
    )
