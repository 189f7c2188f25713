"""Dashboard aggregator: per-assignment rosters and the educator insight view.

Read-only: nothing here creates or changes an insight.
"""

from typing import Optional

from sqlalchemy.orm import Session

from coachboard.clock import utcnow, ensure_utc
from coachboard.config import settings
from coachboard.errors import NotFoundError
from coachboard.models.assignment_student import AssignmentStudent
from coachboard.models.insight import Insight, INSIGHT_PRIORITIES, INSIGHT_TYPES, PRIORITY_RANK
from coachboard.models.lesson import Lesson
from coachboard.models.student import Student
from coachboard.schemas.action import TeacherActionResponse
from coachboard.schemas.dashboard import (
    ArchiveCheck,
    AssignmentDashboard,
    AvailableAction,
    ClassInsightSummary,
    EducatorInsightDashboard,
    InsightSummary,
    StudentAttention,
    StudentInsightSummary,
    StudentRow,
)
from coachboard.schemas.insight import InsightFilter, InsightResponse
from coachboard.stores import action_store, badge_store, insight_store, progress_store, roster_store

LEVEL_ORDER = {"needs_support": 0, "developing": 1, "strong": 2}
REVIEWED_STATUSES = ("action_taken", "dismissed")


def understanding_level(score: Optional[float], hint_usage_rate: float, cfg=settings) -> str:
    """Classify understanding from score and hint reliance together."""
    if score is None:
        return "developing"
    if hint_usage_rate > cfg.MODERATE_HINT_RATE:
        return "developing" if score >= cfg.STRONG_SCORE else "needs_support"
    if score >= cfg.STRONG_SCORE:
        return "strong"
    if score >= cfg.DEVELOPING_SCORE:
        return "developing"
    return "needs_support"


def hint_usage_rate(hints_used: Optional[int], questions: Optional[int]) -> float:
    """Hints per question answered, capped at 1."""
    if not questions:
        return 0.0
    return min((hints_used or 0) / questions, 1.0)


def questions_answered(record: AssignmentStudent, prompt_count: Optional[int]) -> int:
    """Questions answered over every attempt, the denominator for accumulated hints.

    Records written without a question tally fall back to one full lesson per attempt.
    """
    if record.questions_answered:
        return record.questions_answered
    return (prompt_count or 0) * max(record.attempts or 0, 1)


def progress_status(record: Optional[AssignmentStudent]) -> str:
    if record is None:
        return "not_started"
    if record.last_completed_at:
        return "completed"
    if record.started_at:
        return "in_progress"
    return "not_started"


def review_status(insights: list[Insight]) -> str:
    statuses = {i.status for i in insights}
    if "pending_review" in statuses:
        return "pending"
    if "monitoring" in statuses:
        return "monitoring"
    if statuses & set(REVIEWED_STATUSES):
        return "reviewed"
    return "pending"


def available_actions(record: Optional[AssignmentStudent], level: str, review: str, has_pending: bool) -> list[AvailableAction]:
    completed = bool(record and record.last_completed_at)
    actions = []
    if completed and review == "pending":
        actions.append(AvailableAction(
            action_type="mark_reviewed", label="Mark Reviewed",
            description="Mark this student's work as reviewed",
            is_recommended=not has_pending,
        ))
    actions.append(AvailableAction(
        action_type="add_note", label="Add Note",
        description="Add a private note about this student",
    ))
    if completed and level == "needs_support":
        actions.append(AvailableAction(
            action_type="reassign", label="Reassign",
            description="Push assignment back to student for another attempt",
            is_recommended=True,
        ))
    if completed and level == "strong":
        actions.append(AvailableAction(
            action_type="award_badge", label="Award Badge",
            description="Recognize this student's excellent work",
            is_recommended=True,
        ))
    actions.append(AvailableAction(
        action_type="draft_message", label="Send Message",
        description="Draft a message to this student",
        is_recommended=has_pending,
    ))
    if has_pending:
        actions.append(AvailableAction(
            action_type="dismiss", label="Dismiss",
            description="Dismiss pending insights without action",
        ))
    return actions


def _roster(db: Session, lesson: Lesson, records: list[AssignmentStudent]) -> list[Student]:
    if lesson.class_id:
        students = roster_store.list_class_students(db, lesson.class_id)
    else:
        students = roster_store.list_students(db)
    seen = {s.id for s in students}
    for record in records:
        if record.student_id in seen:
            continue
        student = roster_store.get_student(db, record.student_id)
        if student:
            students.append(student)
            seen.add(student.id)
    return students


def _build_row(
    db: Session,
    student: Student,
    lesson: Lesson,
    record: Optional[AssignmentStudent],
    insights: list[Insight],
) -> StudentRow:
    rate = 0.0
    score = None
    if record:
        rate = hint_usage_rate(record.hints_used, questions_answered(record, lesson.prompt_count))
        score = record.highest_score if record.highest_score is not None else record.score
    level = understanding_level(score, rate)
    review = review_status(insights)
    active = [i for i in insights if i.is_active]
    has_pending = any(i.status == "pending_review" for i in insights)

    class_id = roster_store.primary_class_id(db, student.id)
    class_name = "Unassigned"
    if class_id:
        cls = roster_store.get_class(db, class_id)
        class_name = cls.name if cls else "Unknown"

    return StudentRow(
        student_id=student.id,
        student_name=student.name,
        class_id=class_id,
        class_name=class_name,
        progress_status=progress_status(record),
        understanding_level=level,
        score=record.score if record else None,
        highest_score=record.highest_score if record else None,
        attempts=record.attempts if record else 0,
        hints_used=record.hints_used if record else 0,
        hint_usage_rate=rate,
        coach_session_count=record.coach_session_count if record else 0,
        last_completed_at=record.last_completed_at if record else None,
        review_status=review,
        active_insights=[
            InsightSummary(
                insight_id=i.id,
                insight_type=i.insight_type,
                priority=i.priority,
                status=i.status,
                summary=i.summary,
                created_at=i.created_at,
            )
            for i in active
        ],
        available_actions=available_actions(record, level, review, has_pending),
    )


def _sort_rows(rows: list[StudentRow]) -> list[StudentRow]:
    return sorted(rows, key=lambda r: (LEVEL_ORDER[r.understanding_level], r.student_name.lower()))


def archive_blockers(rows: list[StudentRow], insights: list[Insight]) -> list[str]:
    """Reasons an assignment cannot be archived yet; empty when it can."""
    blockers = []
    pending = sum(1 for i in insights if i.status == "pending_review")
    if pending:
        blockers.append(f"{pending} pending insight(s) need review")

    reviewed_students = {i.student_id for i in insights if i.status in REVIEWED_STATUSES}
    unreviewed = [
        r for r in rows
        if r.progress_status == "completed"
        and r.understanding_level == "needs_support"
        and r.student_id not in reviewed_students
    ]
    if unreviewed:
        blockers.append(f"{len(unreviewed)} student(s) need attention and haven't been reviewed")
    return blockers


def _load_assignment(db: Session, assignment_id: str):
    lesson = roster_store.get_lesson(db, assignment_id)
    if not lesson:
        raise NotFoundError("Assignment", assignment_id)
    records = progress_store.get_by_assignment(db, assignment_id)
    insights = insight_store.get_by_assignment(db, assignment_id)
    by_student: dict[str, list[Insight]] = {}
    for insight in insights:
        by_student.setdefault(insight.student_id, []).append(insight)
    records_by_student = {r.student_id: r for r in records}
    rows = [
        _build_row(db, s, lesson, records_by_student.get(s.id), by_student.get(s.id, []))
        for s in _roster(db, lesson, records)
    ]
    return lesson, _sort_rows(rows), insights


def get_student_rows(db: Session, assignment_id: str) -> list[StudentRow]:
    return _load_assignment(db, assignment_id)[1]


def check_archive(db: Session, assignment_id: str) -> ArchiveCheck:
    _, rows, insights = _load_assignment(db, assignment_id)
    blockers = archive_blockers(rows, insights)
    return ArchiveCheck(assignment_id=assignment_id, can_archive=not blockers, blockers=blockers)


def get_assignment_dashboard(db: Session, assignment_id: str) -> AssignmentDashboard:
    lesson, rows, insights = _load_assignment(db, assignment_id)
    blockers = archive_blockers(rows, insights)

    scores = [r.score for r in rows if r.progress_status == "completed" and r.score is not None]
    dashboard = AssignmentDashboard(
        assignment_id=lesson.id,
        assignment_title=lesson.title,
        subject=lesson.subject,
        total_students=len(rows),
        average_score=round(sum(scores) / len(scores)) if scores else None,
        highest_score=max(scores) if scores else None,
        lowest_score=min(scores) if scores else None,
        students=rows,
        can_archive=not blockers,
        archive_blockers=blockers,
        generated_at=utcnow(),
    )
    for row in rows:
        if row.progress_status == "completed":
            dashboard.completed += 1
        elif row.progress_status == "in_progress":
            dashboard.in_progress += 1
        else:
            dashboard.not_started += 1

        if row.understanding_level == "strong":
            dashboard.strong += 1
        elif row.understanding_level == "developing":
            dashboard.developing += 1
        else:
            dashboard.needs_support += 1

        if row.review_status == "reviewed":
            dashboard.reviewed += 1
        else:
            dashboard.pending_review += 1
    return dashboard


def get_educator_dashboard(db: Session) -> EducatorInsightDashboard:
    """Pending insight counts, who needs attention, and what to celebrate."""
    pending = insight_store.list_by_status(db, ("pending_review",))
    page = insight_store.query(
        db,
        InsightFilter(statuses=["pending_review"]),
        page_size=settings.MAX_DASHBOARD_INSIGHTS,
    )

    by_type: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    attention: dict[str, list[Insight]] = {}
    for insight in pending:
        by_type[insight.insight_type] = by_type.get(insight.insight_type, 0) + 1
        by_priority[insight.priority] = by_priority.get(insight.priority, 0) + 1
        if insight.insight_type in ("check_in", "monitor"):
            attention.setdefault(insight.student_id, []).append(insight)

    names = roster_store.student_names(db, attention.keys())
    students = [
        StudentAttention(
            student_id=student_id,
            student_name=names.get(student_id, "Unknown student"),
            highest_priority=max((i.priority for i in items), key=lambda p: PRIORITY_RANK.get(p, -1)),
            insight_count=len(items),
            insight_types=sorted({i.insight_type for i in items}),
        )
        for student_id, items in attention.items()
    ]
    students.sort(key=lambda s: (-PRIORITY_RANK.get(s.highest_priority, -1), -s.insight_count, s.student_name))

    celebrations = [i for i in pending if i.insight_type == "celebrate_progress"]

    return EducatorInsightDashboard(
        total_pending=len(pending),
        pending_by_type=by_type,
        pending_by_priority=by_priority,
        top_insights=[InsightResponse.model_validate(i) for i in page["insights"]],
        students_needing_attention=students,
        celebration_opportunities=[InsightResponse.model_validate(i) for i in celebrations],
        recent_actions=[
            TeacherActionResponse.model_validate(a)
            for a in action_store.get_recent(db, settings.MAX_RECENT_ACTIONS)
        ],
        generated_at=utcnow(),
    )


# ── Per-student and per-class summaries ──────────────────────────────────────

def _last_created(insights: list[Insight]):
    return max((ensure_utc(i.created_at) for i in insights), default=None)


def get_student_summary(db: Session, student_id: str) -> StudentInsightSummary:
    """Every insight ever raised for a student, resolved ones included."""
    student = roster_store.get_student(db, student_id)
    if not student:
        raise NotFoundError("Student", student_id)
    insights = insight_store.get_by_student(db, student_id)

    by_type = dict.fromkeys(INSIGHT_TYPES, 0)
    by_priority = dict.fromkeys(INSIGHT_PRIORITIES, 0)
    for insight in insights:
        by_type[insight.insight_type] = by_type.get(insight.insight_type, 0) + 1
        by_priority[insight.priority] = by_priority.get(insight.priority, 0) + 1

    return StudentInsightSummary(
        student_id=student.id,
        student_name=student.name,
        total_insights=len(insights),
        pending_count=sum(1 for i in insights if i.status == "pending_review"),
        by_type=by_type,
        by_priority=by_priority,
        last_insight_at=_last_created(insights),
        badges_earned=len(badge_store.get_by_student(db, student_id)),
    )


def get_class_summary(db: Session, class_id: str) -> ClassInsightSummary:
    cls = roster_store.get_class(db, class_id)
    if not cls:
        raise NotFoundError("Class", class_id)
    insights = insight_store.get_by_class(db, class_id)

    by_type = dict.fromkeys(INSIGHT_TYPES, 0)
    for insight in insights:
        by_type[insight.insight_type] = by_type.get(insight.insight_type, 0) + 1

    return ClassInsightSummary(
        class_id=cls.id,
        class_name=cls.name,
        total_insights=len(insights),
        pending_count=sum(1 for i in insights if i.status == "pending_review"),
        by_type=by_type,
        students_with_insights=len({i.student_id for i in insights}),
        total_students=len(roster_store.list_class_students(db, class_id)),
        last_insight_at=_last_created(insights),
    )
