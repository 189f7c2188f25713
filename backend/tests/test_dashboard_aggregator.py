"""Tests for understanding levels, assignment rosters and archive checks."""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from coachboard.clock import utcnow
from coachboard.errors import NotFoundError
from coachboard.ids import new_id
from coachboard.models.badge import Badge
from coachboard.models.student import Student
from coachboard.schemas.action import ActionRequest
from coachboard.schemas.activity import CompletionRequest
from coachboard.services import action_recorder, dashboard_aggregator, student_activity
from coachboard.services.dashboard_aggregator import understanding_level, hint_usage_rate
from coachboard.stores import badge_store, progress_store


class TestUnderstandingLevel:
    """Score and hint reliance are judged together."""

    @pytest.mark.parametrize("score,rate,expected", [
        (None, 0.0, "developing"),
        (None, 0.9, "developing"),
        (85, 0.6, "developing"),
        (70, 0.6, "needs_support"),
        (80, 0.5, "strong"),
        (80, 0.2, "strong"),
        (60, 0.0, "developing"),
        (59, 0.0, "needs_support"),
    ])
    def test_levels(self, score, rate, expected):
        """Score and hint rate map to the expected understanding level."""
        assert understanding_level(score, rate) == expected

    def test_hint_rate(self):
        """Hints divided by questions answered, zero when nothing was answered."""
        assert hint_usage_rate(3, 10) == 0.3
        assert hint_usage_rate(3, 0) == 0.0
        assert hint_usage_rate(None, 5) == 0.0

    def test_hint_rate_capped(self):
        """More hints than questions still reads as a rate of 1."""
        assert hint_usage_rate(15, 10) == 1.0


@pytest.fixture
def graded(db, classroom):
    """Ada struggled, Ben excelled, Cleo has not started."""
    progress_store.complete_attempt(db, classroom.ada.id, classroom.lesson.id, 30)
    progress_store.complete_attempt(db, classroom.ben.id, classroom.lesson.id, 90)
    progress_store.record_hint_usage(db, classroom.ben.id, classroom.lesson.id, 1)
    return classroom


class TestAssignmentRoster:
    def test_rows_sorted_by_tier_then_name(self, db, graded):
        """Rows run needs_support, developing, strong, then not started."""
        rows = dashboard_aggregator.get_student_rows(db, graded.lesson.id)
        assert [(r.student_name, r.understanding_level) for r in rows] == [
            ("Ada", "needs_support"),
            ("Cleo", "developing"),
            ("Ben", "strong"),
        ]

    def test_row_details(self, db, graded):
        """Rows carry progress, hint rate, class name and allowed actions."""
        rows = {r.student_name: r for r in dashboard_aggregator.get_student_rows(db, graded.lesson.id)}
        ben = rows["Ben"]
        assert ben.progress_status == "completed"
        assert ben.hint_usage_rate == pytest.approx(0.1)
        assert ben.class_name == "Period 1"
        assert "award_badge" in [a.action_type for a in ben.available_actions]
        assert rows["Cleo"].progress_status == "not_started"
        assert "reassign" in [a.action_type for a in rows["Ada"].available_actions]

    def test_students_with_records_outside_class_included(self, db, graded):
        """A student with progress but no enrollment shows as Unassigned."""
        dan = Student(id=new_id(), name="Dan")
        db.add(dan)
        db.commit()
        progress_store.start_attempt(db, dan.id, graded.lesson.id)
        rows = dashboard_aggregator.get_student_rows(db, graded.lesson.id)
        dan_row = next(r for r in rows if r.student_name == "Dan")
        assert dan_row.progress_status == "in_progress"
        assert dan_row.class_name == "Unassigned"

    def test_review_status_from_insights(self, db, graded, make_insight):
        """Review status follows the student's insights on the assignment."""
        make_insight(graded.ada.id, graded.lesson.id, "check_in", status="monitoring")
        make_insight(graded.ben.id, graded.lesson.id, "challenge_opportunity", status="action_taken")
        make_insight(graded.cleo.id, graded.lesson.id, "monitor")
        rows = {r.student_name: r for r in dashboard_aggregator.get_student_rows(db, graded.lesson.id)}
        assert rows["Ada"].review_status == "monitoring"
        assert rows["Ben"].review_status == "reviewed"
        assert rows["Cleo"].review_status == "pending"
        assert len(rows["Ada"].active_insights) == 1
        assert rows["Ben"].active_insights == []

    def test_summary_counts(self, db, graded):
        """Totals, score range and level counts cover completed students."""
        dashboard = dashboard_aggregator.get_assignment_dashboard(db, graded.lesson.id)
        assert dashboard.total_students == 3
        assert dashboard.completed == 2
        assert dashboard.not_started == 1
        assert dashboard.average_score == 60
        assert dashboard.highest_score == 90
        assert dashboard.lowest_score == 30
        assert (dashboard.strong, dashboard.developing, dashboard.needs_support) == (1, 1, 1)

    def test_unknown_assignment(self, db):
        """An unknown assignment raises NotFoundError."""
        with pytest.raises(NotFoundError):
            dashboard_aggregator.get_assignment_dashboard(db, "missing")

    def test_lesson_without_class_uses_all_students(self, db, graded):
        """Lessons without a class list every student."""
        graded.lesson.class_id = None
        db.add(Student(id=new_id(), name="Eve"))
        db.commit()
        names = [r.student_name for r in dashboard_aggregator.get_student_rows(db, graded.lesson.id)]
        assert sorted(names) == ["Ada", "Ben", "Cleo", "Eve"]


class TestArchiveCheck:
    def test_blocked_by_unreviewed_struggling_student(self, db, graded):
        """A struggling student nobody reviewed blocks archiving."""
        check = dashboard_aggregator.check_archive(db, graded.lesson.id)
        assert check.can_archive is False
        assert check.blockers == ["1 student(s) need attention and haven't been reviewed"]

    def test_blocked_by_pending_insights(self, db, graded, make_insight):
        """Pending insights on the assignment block archiving."""
        make_insight(graded.ada.id, graded.lesson.id, "check_in", status="action_taken")
        make_insight(graded.ben.id, graded.lesson.id, "challenge_opportunity")
        check = dashboard_aggregator.check_archive(db, graded.lesson.id)
        assert check.blockers == ["1 pending insight(s) need review"]

    def test_eligible_once_reviewed(self, db, graded):
        """Archiving is allowed once every blocker is cleared."""
        action_recorder.record_action(db, ActionRequest(
            teacher_id="teacher-1", action_type="mark_reviewed",
            student_id=graded.ada.id, assignment_id=graded.lesson.id,
        ))
        check = dashboard_aggregator.check_archive(db, graded.lesson.id)
        assert check.can_archive is True
        assert check.blockers == []


class TestEducatorDashboard:
    def test_pending_overview(self, db, classroom, make_insight):
        """Pending counts, top insights and attention lists come from open work."""
        make_insight(classroom.ada.id, classroom.lesson.id, "check_in", priority="high")
        make_insight(classroom.ada.id, None, "monitor", priority="low")
        make_insight(classroom.ben.id, classroom.lesson.id, "celebrate_progress", priority="medium")
        make_insight(classroom.cleo.id, classroom.lesson.id, "check_in", status="dismissed")
        action_recorder.dismiss_insight(db, make_insight(classroom.cleo.id).id, "teacher-1")

        dashboard = dashboard_aggregator.get_educator_dashboard(db)
        assert dashboard.total_pending == 3
        assert dashboard.pending_by_type == {"check_in": 1, "monitor": 1, "celebrate_progress": 1}
        assert dashboard.pending_by_priority == {"high": 1, "low": 1, "medium": 1}
        assert [i.insight_type for i in dashboard.top_insights] == ["check_in", "celebrate_progress", "monitor"]
        assert len(dashboard.students_needing_attention) == 1
        ada = dashboard.students_needing_attention[0]
        assert ada.student_name == "Ada"
        assert ada.highest_priority == "high"
        assert ada.insight_count == 2
        assert len(dashboard.celebration_opportunities) == 1
        assert len(dashboard.recent_actions) == 1


class TestHintRateAcrossAttempts:
    """Accumulated hints are measured against every question answered."""

    def test_three_completions_keep_per_attempt_rate(self, db, classroom):
        """Three attempts with 4 of 10 questions hinted read as 40%, not 120%."""
        for _ in range(3):
            student_activity.record_completion(db, CompletionRequest(
                student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=85, hints_used=4,
            ))
        record = progress_store.load(db, classroom.ada.id, classroom.lesson.id)
        assert record.hints_used == 12
        assert record.questions_answered == 30

        ada = next(r for r in dashboard_aggregator.get_student_rows(db, classroom.lesson.id) if r.student_name == "Ada")
        assert ada.hint_usage_rate == pytest.approx(0.4)
        assert ada.understanding_level == "strong"

    def test_records_without_tally_use_attempts(self, db, classroom):
        """Without a question tally each attempt counts as one full lesson."""
        progress_store.start_attempt(db, classroom.ada.id, classroom.lesson.id)
        progress_store.start_attempt(db, classroom.ada.id, classroom.lesson.id)
        progress_store.complete_attempt(db, classroom.ada.id, classroom.lesson.id, 85)
        progress_store.record_hint_usage(db, classroom.ada.id, classroom.lesson.id, 10)

        ada = next(r for r in dashboard_aggregator.get_student_rows(db, classroom.lesson.id) if r.student_name == "Ada")
        assert ada.hint_usage_rate == pytest.approx(0.5)
        assert ada.understanding_level == "strong"


class TestInsightSummaries:
    """Per-student and per-class insight counts."""

    def test_student_summary(self, db, classroom, make_insight):
        """Counts every insight for the student, resolved ones included."""
        make_insight(classroom.ada.id, classroom.lesson.id, "check_in", priority="high")
        make_insight(classroom.ada.id, classroom.lesson.id, "monitor", priority="low", status="dismissed")
        latest = make_insight(classroom.ada.id, None, "celebrate_progress")
        make_insight(classroom.ben.id, classroom.lesson.id, "check_in")
        badge_store.save(db, Badge(
            id=new_id(), student_id=classroom.ada.id, awarded_by="teacher-1",
            badge_type="progress_star", issued_at=utcnow(),
        ))

        summary = dashboard_aggregator.get_student_summary(db, classroom.ada.id)
        assert summary.student_name == "Ada"
        assert summary.total_insights == 3
        assert summary.pending_count == 2
        assert summary.by_type == {
            "check_in": 1, "celebrate_progress": 1, "challenge_opportunity": 0, "monitor": 1,
        }
        assert summary.by_priority == {"low": 1, "medium": 1, "high": 1}
        assert summary.last_insight_at.replace(tzinfo=None) == latest.created_at.replace(tzinfo=None)
        assert summary.badges_earned == 1

    def test_student_without_insights(self, db, classroom):
        """A quiet student has zero counts and no last insight time."""
        summary = dashboard_aggregator.get_student_summary(db, classroom.cleo.id)
        assert summary.total_insights == 0
        assert summary.last_insight_at is None

    def test_class_summary(self, db, classroom, make_insight):
        """Insights tagged with the class are counted per type and per student."""
        class_id = classroom.class_.id
        make_insight(classroom.ada.id, classroom.lesson.id, "check_in", class_id=class_id)
        make_insight(classroom.ada.id, classroom.lesson.id, "monitor", class_id=class_id, status="action_taken")
        make_insight(classroom.ben.id, classroom.lesson.id, "challenge_opportunity", class_id=class_id)
        make_insight(classroom.cleo.id, classroom.lesson.id, "check_in", class_id="other-class")

        summary = dashboard_aggregator.get_class_summary(db, class_id)
        assert summary.class_name == "Period 1"
        assert summary.total_insights == 3
        assert summary.pending_count == 2
        assert summary.by_type["check_in"] == 1
        assert summary.students_with_insights == 2
        assert summary.total_students == 3
        assert summary.last_insight_at is not None

    def test_unknown_student_or_class(self, db):
        """Unknown ids are reported as not found."""
        with pytest.raises(NotFoundError):
            dashboard_aggregator.get_student_summary(db, "missing")
        with pytest.raises(NotFoundError):
            dashboard_aggregator.get_class_summary(db, "missing")
