"""Insight generator: turns performance events into deduplicated insights.

Rules run independently in a fixed order and every rule that qualifies
fires. The rule evaluation itself is pure: it sees the event and the set of
insight types already active for (student, assignment), and returns unsaved
Insight records. generate_insights() wraps it with the dedup read and the
writes, serialized per (student, assignment).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.orm import Session

from coachboard.clock import utcnow
from coachboard.config import settings
from coachboard.ids import new_id
from coachboard.models.insight import Insight
from coachboard.schemas.insight import PerformanceEvent
from coachboard.services import dedup
from coachboard.stores import insight_store

logger = logging.getLogger(__name__)

SUGGESTED_ACTIONS = {
    "check_in": [
        "Have a brief conversation to understand any difficulties",
        "Review specific questions where hints were used",
        "Consider providing additional practice materials",
    ],
    "celebrate_progress": [
        "Recognize the improvement with positive feedback",
        "Consider awarding a badge",
        "Discuss what strategies helped them improve",
    ],
    "challenge_opportunity": [
        "Offer extension or enrichment activities",
        "Consider peer tutoring opportunities",
        "Assign more challenging content",
    ],
    "monitor": [
        "Continue to monitor progress",
        "Check in if score doesn't improve",
    ],
}

COACH_SUPPORT_ACTIONS = [
    "Check in to understand what concepts are challenging",
    "Review coach conversation logs if available",
    "Consider providing targeted instruction",
]

COACH_ENRICHMENT_ACTIONS = [
    "Recognize their curiosity",
    "Offer additional challenge materials",
    "Consider peer tutoring opportunities",
]

HIGH_PRIORITY_SCORE = 30
HIGH_PRIORITY_IMPROVEMENT = 30


class KeyedLock:
    """One re-entrant lock per key, held only while someone is using it.

    Entries are reference-counted and dropped when the last holder leaves,
    so the map never outgrows the number of keys currently in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict = {}  # key -> [RLock, holders]

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Default for callers that don't bring their own; it holds no entries while idle
_generation_locks = KeyedLock()


def _num(value: float) -> str:
    return f"{value:g}"


def _pct(rate: float) -> str:
    return str(round(rate * 100))


def _new_insight(
    student_id: str,
    assignment_id: Optional[str],
    class_id: str,
    subject: Optional[str],
    insight_type: str,
    priority: str,
    confidence: float,
    summary: str,
    evidence: list[str],
    suggested_actions: list[str],
) -> Insight:
    insight = Insight(
        id=new_id(),
        student_id=student_id,
        assignment_id=assignment_id,
        class_id=class_id or "",
        subject=subject,
        insight_type=insight_type,
        priority=priority,
        confidence=confidence,
        summary=summary,
        status="pending_review",
        created_at=utcnow(),
    )
    insight.evidence = evidence
    insight.suggested_actions = suggested_actions
    return insight


def evaluate_rules(event: PerformanceEvent, active_types: set[str], cfg=settings) -> list[Insight]:
    """Apply the completion rules to one event. No I/O."""
    name = event.student_name or "Student"
    title = event.assignment_title or event.assignment_id or "this assignment"
    score = event.score
    rate = event.hint_usage_rate
    created: list[Insight] = []

    def make(insight_type, priority, confidence, summary, evidence):
        return _new_insight(
            event.student_id, event.assignment_id, event.class_id, event.subject,
            insight_type, priority, confidence, summary, evidence,
            SUGGESTED_ACTIONS[insight_type],
        )

    # Struggling, or leaning heavily on hints without reaching the developing band
    struggling = score < cfg.STRUGGLING_THRESHOLD
    heavy_hints = rate > cfg.HEAVY_HINT_USAGE
    if (struggling or (heavy_hints and score < cfg.DEVELOPING_THRESHOLD)) and "check_in" not in active_types:
        evidence = []
        if struggling:
            evidence.append(f"Score of {_num(score)}% is below expected threshold")
        if heavy_hints:
            evidence.append(f"Used hints on {_pct(rate)}% of questions")
        if event.coach_sessions_used >= cfg.HEAVY_COACH_USAGE:
            evidence.append(f"{event.coach_sessions_used} coach sessions used")
        created.append(make(
            "check_in",
            "high" if score < HIGH_PRIORITY_SCORE else "medium",
            0.85,
            f'{name} may need support on "{title}"',
            evidence,
        ))

    # Significant jump over the previous best
    previous = event.previous_highest_score
    if previous is not None:
        delta = score - previous
        if delta >= cfg.SIGNIFICANT_IMPROVEMENT and "celebrate_progress" not in active_types:
            created.append(make(
                "celebrate_progress",
                "high" if delta >= HIGH_PRIORITY_IMPROVEMENT else "medium",
                0.9,
                f'{name} showed significant improvement on "{title}"',
                [
                    f"Score improved by {_num(delta)} points",
                    f"New score: {_num(score)}%",
                    f"Previous best: {_num(previous)}%",
                ],
            ))

    # Excelling with almost no support
    if (
        score >= cfg.EXCELLING_THRESHOLD
        and rate <= cfg.MINIMAL_HINT_USAGE
        and "challenge_opportunity" not in active_types
    ):
        created.append(make(
            "challenge_opportunity",
            "medium",
            0.85,
            f'{name} excelled on "{title}" - ready for challenge',
            [
                f"Scored {_num(score)}% with minimal support",
                f"Used hints on only {_pct(rate)}% of questions",
                "Completed on first attempt" if event.attempts == 1
                else f"Completed in {event.attempts} attempts",
            ],
        ))

    # Repeated attempts stuck in the developing band. Judged against the
    # active set as it was before this event, same as the check_in rule.
    if (
        event.attempts > 2
        and cfg.STRUGGLING_THRESHOLD <= score < cfg.DEVELOPING_THRESHOLD
        and "check_in" not in active_types
        and "monitor" not in active_types
    ):
        improved = previous is not None and score > previous
        created.append(make(
            "monitor",
            "low",
            0.75,
            f'{name} is making steady progress on "{title}"',
            [
                f"{event.attempts} attempts completed",
                f"Current score: {_num(score)}%",
                f"Improved by {_num(score - previous)} points" if improved
                else "Score similar to previous attempt",
            ],
        ))

    return created


def evaluate_coach_rules(
    student_id: str,
    assignment_id: Optional[str],
    intent: str,
    total_sessions: int,
    active_types: set[str],
    class_id: str = "",
    subject: Optional[str] = None,
    student_name: Optional[str] = None,
    assignment_title: Optional[str] = None,
    cfg=settings,
) -> list[Insight]:
    """Apply the coach-usage rules after a coach session is recorded. No I/O."""
    name = student_name or "Student"
    title = assignment_title or assignment_id or "this assignment"
    created: list[Insight] = []

    if (
        intent == "support"
        and total_sessions >= cfg.HEAVY_COACH_USAGE
        and "check_in" not in active_types
    ):
        created.append(_new_insight(
            student_id, assignment_id, class_id, subject,
            "check_in", "medium", 0.8,
            f'{name} is frequently using coach support on "{title}"',
            [
                f"{total_sessions} coach sessions used",
                "Pattern: support-seeking behavior",
                "May benefit from additional teacher support",
            ],
            COACH_SUPPORT_ACTIONS,
        ))

    if (
        intent == "enrichment"
        and total_sessions >= cfg.ENRICHMENT_COACH_THRESHOLD
        and "challenge_opportunity" not in active_types
    ):
        created.append(_new_insight(
            student_id, assignment_id, class_id, subject,
            "challenge_opportunity", "low", 0.75,
            f"{name} is actively exploring deeper content",
            [
                f"{total_sessions} coach sessions seeking more information",
                "Pattern: enrichment-seeking behavior",
                "Shows curiosity and engagement",
            ],
            COACH_ENRICHMENT_ACTIONS,
        ))

    return created


def _persist(db: Session, drafts: list[Insight]) -> list[Insight]:
    saved = []
    for draft in drafts:
        # Re-check right before the insert; the snapshot may be stale if an
        # earlier draft in this batch or another caller raised the same type.
        if dedup.exists(db, draft.student_id, draft.assignment_id, draft.insight_type):
            continue
        insight = insight_store.save(db, draft)
        logger.info(
            "Created %s insight %s (priority=%s) for student %s on %s",
            insight.insight_type, insight.id, insight.priority,
            insight.student_id, insight.assignment_id,
        )
        saved.append(insight)
    return saved


def generate_insights(db: Session, event: PerformanceEvent, locks: Optional[KeyedLock] = None) -> list[Insight]:
    """Evaluate the completion rules for an event and store the new insights."""
    locks = _generation_locks if locks is None else locks
    with locks.hold((event.student_id, event.assignment_id)):
        active = dedup.active_types(db, event.student_id, event.assignment_id)
        return _persist(db, evaluate_rules(event, active))


def generate_coach_insights(
    db: Session,
    student_id: str,
    assignment_id: Optional[str],
    intent: str,
    total_sessions: int,
    class_id: str = "",
    subject: Optional[str] = None,
    student_name: Optional[str] = None,
    assignment_title: Optional[str] = None,
    locks: Optional[KeyedLock] = None,
) -> list[Insight]:
    locks = _generation_locks if locks is None else locks
    with locks.hold((student_id, assignment_id)):
        active = dedup.active_types(db, student_id, assignment_id)
        drafts = evaluate_coach_rules(
            student_id, assignment_id, intent, total_sessions, active,
            class_id=class_id, subject=subject,
            student_name=student_name, assignment_title=assignment_title,
        )
        return _persist(db, drafts)
