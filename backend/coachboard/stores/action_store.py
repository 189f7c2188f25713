"""Teacher action store: append-only audit trail of responses to insights."""

from sqlalchemy.orm import Session

from coachboard.models.teacher_action import TeacherAction


def save(db: Session, action: TeacherAction) -> TeacherAction:
    merged = db.merge(action)
    db.commit()
    db.refresh(merged)
    return merged


def get_by_insight(db: Session, insight_id: str) -> list[TeacherAction]:
    return (
        db.query(TeacherAction)
        .filter(TeacherAction.insight_id == insight_id)
        .order_by(TeacherAction.created_at.desc())
        .all()
    )


def get_by_teacher(db: Session, teacher_id: str) -> list[TeacherAction]:
    return (
        db.query(TeacherAction)
        .filter(TeacherAction.teacher_id == teacher_id)
        .order_by(TeacherAction.created_at.desc())
        .all()
    )


def get_recent(db: Session, limit: int = 20) -> list[TeacherAction]:
    return (
        db.query(TeacherAction)
        .order_by(TeacherAction.created_at.desc())
        .limit(limit)
        .all()
    )


def referenced_insight_ids(db: Session) -> set[str]:
    """Ids of every insight that at least one action points at."""
    rows = db.query(TeacherAction.insight_id).distinct().all()
    return {row[0] for row in rows}
