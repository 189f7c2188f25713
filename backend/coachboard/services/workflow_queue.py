"""Workflow queue: the teacher's "what should I do next?" list.

Items are projections of insights, rebuilt on every call and never stored.
Taking action on an item goes through the action recorder and the lifecycle
manager like any other teacher response.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from coachboard.config import settings
from coachboard.errors import NotFoundError
from coachboard.models.class_ import Class
from coachboard.models.insight import Insight, INSIGHT_STATUSES, PRIORITY_RANK
from coachboard.models.lesson import Lesson
from coachboard.schemas.action import ActionRequest
from coachboard.schemas.workflow import ActionableItem, TakeActionRequest, WorkflowStats
from coachboard.services import action_recorder, lifecycle
from coachboard.stores import insight_store, roster_store

logger = logging.getLogger(__name__)

ITEM_ID_PREFIX = "action-"
UNKNOWN_STUDENT = "Unknown student"

SUGGESTED_ACTION_TYPES = {
    "check_in": "check_in",
    "challenge_opportunity": "challenge",
    "celebrate_progress": "celebrate",
    "monitor": "monitor",
}

TEACHER_ACTION_FOR = {
    "check_in": "schedule_checkin",
    "challenge": "draft_message",
    "celebrate": "award_badge",
    "reassign": "reassign",
    "monitor": "add_note",
    "support_group": "add_note",
}

ITEM_TITLES = {
    "check_in": "Check in with student",
    "challenge_opportunity": "Offer extension challenge",
    "celebrate_progress": "Celebrate student progress",
    "monitor": "Monitor student progress",
}

ITEM_STATUSES = {
    "action_taken": "completed",
    "dismissed": "dismissed",
    "expired": "expired",
}

URGENCY_ORDER = {"immediate": 0, "soon": 1, "when_available": 2}


def item_id_for(insight_id: str) -> str:
    return f"{ITEM_ID_PREFIX}{insight_id}"


def insight_id_from(item_id: str) -> str:
    if item_id.startswith(ITEM_ID_PREFIX):
        return item_id[len(ITEM_ID_PREFIX):]
    return item_id


def suggested_action_type(insight_type: str) -> str:
    return SUGGESTED_ACTION_TYPES.get(insight_type, "monitor")


def teacher_action_for(suggested_type: str) -> str:
    return TEACHER_ACTION_FOR.get(suggested_type, "mark_reviewed")


def urgency_for(insight_type: str, priority: str) -> str:
    if insight_type == "check_in" and priority == "high":
        return "immediate"
    if insight_type == "check_in" or priority == "high":
        return "soon"
    return "when_available"


def item_status_for(insight_status: str) -> str:
    return ITEM_STATUSES.get(insight_status, "pending")


def sort_items(items: list[ActionableItem]) -> list[ActionableItem]:
    """Most urgent first, then highest priority; ties keep their input order."""
    return sorted(
        items,
        key=lambda i: (URGENCY_ORDER[i.urgency], -PRIORITY_RANK.get(i.priority, -1)),
    )


def build_items(
    db: Session,
    insights: list[Insight],
    include_resolved: bool = False,
) -> list[ActionableItem]:
    if not insights:
        return []

    names = roster_store.student_names(db, (i.student_id for i in insights))
    lesson_ids = {i.assignment_id for i in insights if i.assignment_id}
    titles = {}
    if lesson_ids:
        titles = dict(db.query(Lesson.id, Lesson.title).filter(Lesson.id.in_(lesson_ids)).all())
    class_ids = {i.class_id for i in insights if i.class_id}
    class_names = {}
    if class_ids:
        class_names = dict(db.query(Class.id, Class.name).filter(Class.id.in_(class_ids)).all())

    items = []
    for insight in insights:
        status = item_status_for(insight.status)
        if status != "pending" and not include_resolved:
            continue
        items.append(ActionableItem(
            id=item_id_for(insight.id),
            student_id=insight.student_id,
            student_name=names.get(insight.student_id, UNKNOWN_STUDENT),
            assignment_id=insight.assignment_id,
            assignment_title=titles.get(insight.assignment_id),
            class_id=insight.class_id or None,
            class_name=class_names.get(insight.class_id),
            insight_id=insight.id,
            insight_type=insight.insight_type,
            action_type=suggested_action_type(insight.insight_type),
            title=ITEM_TITLES.get(insight.insight_type, "Review insight"),
            description=insight.summary,
            evidence=insight.evidence,
            suggested_actions=insight.suggested_actions,
            priority=insight.priority,
            urgency=urgency_for(insight.insight_type, insight.priority),
            status=status,
            created_at=insight.created_at,
            expires_at=lifecycle.expires_at(insight),
        ))
    return sort_items(items)


# ── Queries ──────────────────────────────────────────────────────────────────

def get_actionable_items(
    db: Session,
    limit: Optional[int] = None,
    include_resolved: bool = False,
) -> list[ActionableItem]:
    statuses = INSIGHT_STATUSES if include_resolved else ("pending_review",)
    items = build_items(db, insight_store.list_by_status(db, statuses), include_resolved)
    return items[: limit or settings.MAX_ACTIONABLE_ITEMS]


def get_student_items(db: Session, student_id: str) -> list[ActionableItem]:
    insights = [i for i in insight_store.get_by_student(db, student_id) if i.is_active]
    return build_items(db, insights)


def get_assignment_items(db: Session, assignment_id: str) -> list[ActionableItem]:
    insights = [i for i in insight_store.get_by_assignment(db, assignment_id) if i.status == "pending_review"]
    return build_items(db, insights)


def get_item(db: Session, item_id: str) -> ActionableItem:
    insight = insight_store.load(db, insight_id_from(item_id))
    if not insight:
        raise NotFoundError("Actionable item", item_id)
    return build_items(db, [insight], include_resolved=True)[0]


# ── Taking action ────────────────────────────────────────────────────────────

def _load_open_insight(db: Session, item_id: str) -> Insight:
    # A concurrent caller may have resolved it already; that is reported, not retried
    insight = insight_store.load(db, insight_id_from(item_id))
    if not insight or not insight.is_active:
        raise NotFoundError("Actionable item", item_id)
    return insight


def _execute(db: Session, insight: Insight, action_type: str, req: TakeActionRequest) -> dict:
    note = req.note
    if action_type == "add_note" and not note:
        note = f"{ITEM_TITLES.get(insight.insight_type, 'Review insight')}: {insight.summary}"
    result = action_recorder.record_action(db, ActionRequest(
        teacher_id=req.teacher_id,
        action_type=action_type,
        insight_id=insight.id,
        note=note,
        message_to_student=req.message_to_student,
        badge_type=req.badge_type,
        badge_message=req.badge_message,
    ))
    if result["insight"].status != "action_taken":
        result["insight"] = lifecycle.mark_action_taken(db, insight.id, req.teacher_id)
    return result


def approve(db: Session, item_id: str, req: TakeActionRequest) -> dict:
    """Carry out the item's suggested action and close the insight."""
    insight = _load_open_insight(db, item_id)
    action_type = teacher_action_for(suggested_action_type(insight.insight_type))
    result = _execute(db, insight, action_type, req)
    logger.info("Approved %s as %s", item_id, action_type)
    return {"item_status": "approved", "item": get_item(db, item_id), **result}


def modify(db: Session, item_id: str, req: TakeActionRequest) -> dict:
    """Like approve, but the teacher picks the action type or a badge."""
    insight = _load_open_insight(db, item_id)
    if req.action_type:
        action_type = req.action_type
    elif req.badge_type:
        action_type = "award_badge"
    else:
        action_type = teacher_action_for(suggested_action_type(insight.insight_type))
    result = _execute(db, insight, action_type, req)
    logger.info("Modified %s as %s", item_id, action_type)
    return {"item_status": "modified", "item": get_item(db, item_id), **result}


def dismiss(db: Session, item_id: str, req: TakeActionRequest) -> dict:
    insight = _load_open_insight(db, item_id)
    result = action_recorder.dismiss_insight(db, insight.id, req.teacher_id, req.note)
    logger.info("Dismissed %s", item_id)
    return {"item_status": "dismissed", "item": get_item(db, item_id), **result}


def approve_all_for_assignment(db: Session, assignment_id: str, teacher_id: str) -> int:
    approved = 0
    for item in get_assignment_items(db, assignment_id):
        try:
            approve(db, item.id, TakeActionRequest(teacher_id=teacher_id))
        except ValueError as e:
            logger.warning("Could not approve %s: %s", item.id, e)
            continue
        approved += 1
    return approved


def dismiss_all_for_student(db: Session, student_id: str, teacher_id: str, reason: Optional[str] = None) -> int:
    items = get_student_items(db, student_id)
    for item in items:
        dismiss(db, item.id, TakeActionRequest(teacher_id=teacher_id, note=reason))
    return len(items)


def workflow_stats(db: Session) -> WorkflowStats:
    stats = WorkflowStats()
    for item in build_items(db, insight_store.list_by_status(db, INSIGHT_STATUSES), include_resolved=True):
        if item.status == "pending":
            stats.pending += 1
            setattr(stats.by_urgency, item.urgency, getattr(stats.by_urgency, item.urgency) + 1)
        elif item.status == "completed":
            stats.approved += 1
        elif item.status == "dismissed":
            stats.dismissed += 1
        elif item.status == "expired":
            stats.expired += 1
        stats.by_type[item.insight_type] = stats.by_type.get(item.insight_type, 0) + 1
    return stats
