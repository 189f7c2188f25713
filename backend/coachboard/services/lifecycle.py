"""Insight lifecycle: the only place an insight's status changes.

    pending_review -> monitoring | action_taken | dismissed
    monitoring     -> action_taken | dismissed
    action_taken, dismissed, expired are terminal

Requests outside the table are logged and ignored; the record comes back
unchanged. Expiry is reachable only through expire_overdue().
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from coachboard.clock import utcnow, ensure_utc
from coachboard.config import settings
from coachboard.errors import NotFoundError
from coachboard.models.insight import Insight, RESOLVED_STATUSES
from coachboard.stores import action_store, insight_store

logger = logging.getLogger(__name__)

TRANSITIONS = {
    "pending_review": ("monitoring", "action_taken", "dismissed"),
    "monitoring": ("action_taken", "dismissed"),
    "action_taken": (),
    "dismissed": (),
    "expired": (),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def _load_or_raise(db: Session, insight_id: str) -> Insight:
    insight = insight_store.load(db, insight_id)
    if not insight:
        raise NotFoundError("Insight", insight_id)
    return insight


def update_status(
    db: Session,
    insight_id: str,
    status: str,
    actor_id: Optional[str] = None,
) -> Insight:
    """Move an insight to a new status if the transition is allowed."""
    insight = _load_or_raise(db, insight_id)
    if not can_transition(insight.status, status):
        logger.warning(
            "Ignoring transition %s -> %s for insight %s",
            insight.status, status, insight_id,
        )
        return insight

    old_status = insight.status
    insight.status = status
    insight.reviewed_at = utcnow()
    if actor_id:
        insight.reviewed_by = actor_id
    insight = insight_store.save(db, insight)
    logger.info(
        "Insight %s: %s -> %s (by %s)",
        insight_id, old_status, status, actor_id or "system",
    )
    return insight


def mark_action_taken(db: Session, insight_id: str, actor_id: str) -> Insight:
    return update_status(db, insight_id, "action_taken", actor_id)


def dismiss(db: Session, insight_id: str, actor_id: str, reason: Optional[str] = None) -> Insight:
    if reason:
        logger.info("Dismissing insight %s: %s", insight_id, reason)
    return update_status(db, insight_id, "dismissed", actor_id)


def set_monitoring(db: Session, insight_id: str, actor_id: str) -> Insight:
    return update_status(db, insight_id, "monitoring", actor_id)


# ── Maintenance ──────────────────────────────────────────────────────────────

def expiry_days(priority: str) -> int:
    if priority == "high":
        return settings.HIGH_PRIORITY_EXPIRY_DAYS
    return settings.DEFAULT_EXPIRY_DAYS


def expires_at(insight: Insight) -> datetime:
    """When a still-pending insight stops being actionable."""
    return ensure_utc(insight.created_at) + timedelta(days=expiry_days(insight.priority))


def expire_overdue(db: Session, now: Optional[datetime] = None) -> int:
    """Expire every pending_review insight past its deadline. Returns the count."""
    now = ensure_utc(now) or utcnow()
    pending = insight_store.list_by_status(db, ("pending_review",))
    expired = 0
    for insight in pending:
        if expires_at(insight) < now:
            insight.status = "expired"
            insight.reviewed_at = now
            expired += 1
    if expired:
        db.commit()
    logger.info("Expiry sweep: %d of %d pending insights expired", expired, len(pending))
    return expired


def archive_resolved(db: Session, days_old: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """Delete long-resolved insights that no teacher action points at."""
    if days_old is None:
        days_old = settings.AUTO_ARCHIVE_DAYS
    now = ensure_utc(now) or utcnow()
    cutoff = now - timedelta(days=days_old)
    referenced = action_store.referenced_insight_ids(db)

    archived = 0
    for insight in insight_store.list_by_status(db, RESOLVED_STATUSES):
        resolved_at = ensure_utc(insight.reviewed_at or insight.created_at)
        if resolved_at >= cutoff or insight.id in referenced:
            continue
        if insight_store.delete(db, insight.id):
            archived += 1
    logger.info("Archived %d resolved insights older than %d days", archived, days_old)
    return archived
