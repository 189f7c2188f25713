"""Action recorder: links teacher responses to insights as an audit trail.

Every teacher action lands on an insight. When the caller names none, the
active insight of the matching type is reused, or a resolved "monitor"
anchor is created so the action still has somewhere to point.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from coachboard.clock import utcnow
from coachboard.config import settings
from coachboard.errors import NotFoundError
from coachboard.ids import new_id
from coachboard.models.badge import Badge
from coachboard.models.insight import Insight
from coachboard.models.teacher_action import TeacherAction
from coachboard.schemas.action import ActionRequest
from coachboard.services import dedup, lifecycle
from coachboard.stores import action_store, badge_store, insight_store, progress_store, roster_store

logger = logging.getLogger(__name__)

# Which active insight an action without an explicit insight attaches to
ANCHOR_TYPES = {
    "reassign": "check_in",
    "schedule_checkin": "check_in",
    "award_badge": "celebrate_progress",
}
DEFAULT_ANCHOR_TYPE = "monitor"

# Status a reused insight moves to; actions not listed leave it alone
STATUS_EFFECTS = {
    "mark_reviewed": "action_taken",
    "award_badge": "action_taken",
    "draft_message": "action_taken",
    "reassign": "monitoring",
    "schedule_checkin": "monitoring",
}


def anchor_type_for(action_type: str) -> str:
    return ANCHOR_TYPES.get(action_type, DEFAULT_ANCHOR_TYPE)


def _stamp_note(note: str) -> str:
    return f"[{utcnow().date().isoformat()}] {note}"


def _synthesize_anchor(
    db: Session,
    req: ActionRequest,
    student_id: str,
    assignment_id: Optional[str],
    class_id: str,
    subject: Optional[str],
) -> Insight:
    now = utcnow()
    insight = Insight(
        id=new_id(),
        student_id=student_id,
        assignment_id=assignment_id,
        class_id=class_id,
        subject=subject,
        insight_type="monitor",
        priority="low",
        confidence=1.0,
        summary=f"Teacher recorded {req.action_type.replace('_', ' ')}",
        status="action_taken",
        created_at=now,
        reviewed_at=now,
        reviewed_by=req.teacher_id,
    )
    insight.evidence = [f"Teacher {req.teacher_id} acted without a pending insight"]
    insight.suggested_actions = []
    insight = insight_store.save(db, insight)
    logger.info("Created anchor insight %s for %s on student %s", insight.id, req.action_type, student_id)
    return insight


def record_action(db: Session, req: ActionRequest) -> dict:
    """Record one teacher action and apply its side effects.

    Returns {"action", "insight", "badge", "progress"}; badge and progress
    are None unless the action created or changed them.
    """
    # ── Validate everything before the first write ──────────────────────────
    insight = None
    if req.insight_id:
        insight = insight_store.load(db, req.insight_id)
        if not insight:
            raise NotFoundError("Insight", req.insight_id)

    if insight is not None:
        # The insight decides whose record the action touches
        if req.student_id and req.student_id != insight.student_id:
            raise ValueError(f"Insight {insight.id} belongs to student {insight.student_id}, not {req.student_id}")
        if req.assignment_id and req.assignment_id != insight.assignment_id:
            raise ValueError(f"Insight {insight.id} is not on assignment {req.assignment_id}")
        student_id = insight.student_id
        assignment_id = insight.assignment_id
    else:
        student_id = req.student_id
        assignment_id = req.assignment_id

    student = roster_store.get_student(db, student_id)
    if not student:
        raise NotFoundError("Student", student_id)

    lesson = None
    if assignment_id:
        lesson = roster_store.get_lesson(db, assignment_id)
        if not lesson:
            raise NotFoundError("Assignment", assignment_id)

    if req.action_type == "reassign" and not assignment_id:
        raise ValueError("reassign requires an assignment_id")
    if req.action_type == "add_note" and not (req.note and req.note.strip()):
        raise ValueError("add_note requires a note")

    class_id = req.class_id or (insight.class_id if insight else None)

    # ── Resolve the insight the action lands on ─────────────────────────────
    reused = True
    if insight is None:
        insight = dedup.find_existing(
            db, student_id, assignment_id, anchor_type_for(req.action_type), class_id=req.class_id,
        )
    if insight is None:
        reused = False
        insight = _synthesize_anchor(
            db, req, student_id, assignment_id,
            class_id or roster_store.primary_class_id(db, student_id),
            lesson.subject if lesson else None,
        )

    # ── Side effects that shape the audit note ──────────────────────────────
    note = req.note
    badge = None
    if req.action_type == "award_badge":
        badge_type = badge_store.normalize_badge_type(req.badge_type)
        if req.badge_type and badge_type != req.badge_type:
            logger.warning("Unknown badge type %r, awarding %s", req.badge_type, badge_type)
        badge = badge_store.save(db, Badge(
            id=new_id(),
            student_id=student_id,
            awarded_by=req.teacher_id,
            badge_type=badge_type,
            message=req.badge_message,
            assignment_id=assignment_id,
            insight_id=insight.id,
            issued_at=utcnow(),
        ))
        note = f"Awarded {badge_store.badge_type_name(badge_type)} badge"
        if req.badge_message:
            note += f": {req.badge_message}"
        if req.note:
            note += f" ({req.note})"
        note += f" [Badge: {badge.id}]"
    elif req.action_type == "add_note":
        note = _stamp_note(req.note.strip())

    action = action_store.save(db, TeacherAction(
        id=new_id(),
        insight_id=insight.id,
        teacher_id=req.teacher_id,
        action_type=req.action_type,
        note=note,
        message_to_student=req.message_to_student,
        created_at=utcnow(),
    ))
    logger.info(
        "Recorded %s by %s on insight %s (student %s)",
        req.action_type, req.teacher_id, insight.id, student_id,
    )

    progress = None
    if req.action_type == "add_note":
        roster_store.append_student_note(db, student_id, note)
    elif req.action_type == "reassign":
        progress = progress_store.reassign(db, student_id, assignment_id)

    target = STATUS_EFFECTS.get(req.action_type)
    if reused and target:
        insight = lifecycle.update_status(db, insight.id, target, req.teacher_id)

    return {"action": action, "insight": insight, "badge": badge, "progress": progress}


# ── Review shortcuts ─────────────────────────────────────────────────────────

def mark_insight_reviewed(
    db: Session,
    insight_id: str,
    teacher_id: str,
    status: str = "action_taken",
    note: Optional[str] = None,
) -> dict:
    """Move an insight to a reviewed status and log a mark_reviewed action.

    Raises ValueError when the insight cannot move to that status, so no
    audit record is written for a review that changed nothing.
    """
    insight = insight_store.load(db, insight_id)
    if not insight:
        raise NotFoundError("Insight", insight_id)
    if not lifecycle.can_transition(insight.status, status):
        raise ValueError(f"Insight {insight_id} cannot move from {insight.status} to {status}")

    insight = lifecycle.update_status(db, insight_id, status, teacher_id)
    action = action_store.save(db, TeacherAction(
        id=new_id(),
        insight_id=insight_id,
        teacher_id=teacher_id,
        action_type="mark_reviewed",
        note=note,
        created_at=utcnow(),
    ))
    return {"action": action, "insight": insight, "badge": None, "progress": None}


def dismiss_insight(db: Session, insight_id: str, teacher_id: str, reason: Optional[str] = None) -> dict:
    return mark_insight_reviewed(
        db, insight_id, teacher_id, status="dismissed", note=reason or "Dismissed without action",
    )


def monitor_insight(db: Session, insight_id: str, teacher_id: str, note: Optional[str] = None) -> dict:
    return mark_insight_reviewed(db, insight_id, teacher_id, status="monitoring", note=note)


def mark_all_reviewed_for_assignment(db: Session, assignment_id: str, teacher_id: str) -> int:
    pending = [i for i in insight_store.get_by_assignment(db, assignment_id) if i.status == "pending_review"]
    for insight in pending:
        mark_insight_reviewed(db, insight.id, teacher_id)
    logger.info("Marked %d insights reviewed on assignment %s", len(pending), assignment_id)
    return len(pending)


def dismiss_all_for_student(db: Session, student_id: str, teacher_id: str, reason: Optional[str] = None) -> int:
    pending = [i for i in insight_store.get_by_student(db, student_id) if i.status == "pending_review"]
    for insight in pending:
        dismiss_insight(db, insight.id, teacher_id, reason)
    logger.info("Dismissed %d insights for student %s", len(pending), student_id)
    return len(pending)


# ── Queries ──────────────────────────────────────────────────────────────────

def get_insight_actions(db: Session, insight_id: str) -> list[TeacherAction]:
    return action_store.get_by_insight(db, insight_id)


def get_teacher_actions(db: Session, teacher_id: str) -> list[TeacherAction]:
    return action_store.get_by_teacher(db, teacher_id)


def get_recent_actions(db: Session, limit: Optional[int] = None) -> list[TeacherAction]:
    return action_store.get_recent(db, limit or settings.MAX_RECENT_ACTIONS)
