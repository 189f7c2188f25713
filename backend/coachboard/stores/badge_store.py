"""Badge store and badge type catalog."""

from typing import Optional

from sqlalchemy.orm import Session

from coachboard.models.badge import Badge, BADGE_TYPES, DEFAULT_BADGE_TYPE


def is_badge_type(value: Optional[str]) -> bool:
    return value in BADGE_TYPES


def normalize_badge_type(value: Optional[str]) -> str:
    """Unknown or missing badge types fall back to the default badge."""
    return value if is_badge_type(value) else DEFAULT_BADGE_TYPE


def badge_type_name(badge_type: str) -> str:
    return BADGE_TYPES.get(badge_type, BADGE_TYPES[DEFAULT_BADGE_TYPE])


def save(db: Session, badge: Badge) -> Badge:
    merged = db.merge(badge)
    db.commit()
    db.refresh(merged)
    return merged


def get_by_student(db: Session, student_id: str) -> list[Badge]:
    return (
        db.query(Badge)
        .filter(Badge.student_id == student_id)
        .order_by(Badge.issued_at.desc())
        .all()
    )
