"""Tests for the insight rules and their deduplicated persistence."""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from coachboard.models.insight import Insight
from coachboard.schemas.insight import PerformanceEvent
from coachboard.services.insight_generator import (
    KeyedLock,
    evaluate_rules,
    evaluate_coach_rules,
    generate_insights,
    generate_coach_insights,
)


def _event(**kw):
    base = dict(student_id="s-1", assignment_id="a-1", class_id="c-1", score=75, student_name="Ada",
                assignment_title="Fractions")
    base.update(kw)
    return PerformanceEvent(**base)


def _types(insights):
    return [i.insight_type for i in insights]


class TestCheckInRule:
    """Struggling students get a check_in."""

    def test_low_score_creates_one_check_in(self):
        """A score under 40 with nothing active yields exactly one check_in."""
        result = evaluate_rules(_event(score=35), set())
        assert _types(result) == ["check_in"]
        assert result[0].priority == "medium"
        assert result[0].confidence == 0.85
        assert result[0].status == "pending_review"

    def test_very_low_score_is_high_priority(self):
        """A score of 25 gives a high-priority check_in."""
        result = evaluate_rules(_event(score=25), set())
        assert result[0].priority == "high"

    def test_priority_boundary_at_thirty(self):
        """Priority is high iff the score is below 30."""
        assert evaluate_rules(_event(score=29.9), set())[0].priority == "high"
        assert evaluate_rules(_event(score=30), set())[0].priority == "medium"

    def test_heavy_hints_below_developing(self):
        """Heavy hints under 70 trigger a check_in with hint evidence."""
        result = evaluate_rules(_event(score=65, hint_usage_rate=0.7), set())
        assert _types(result) == ["check_in"]
        assert "Used hints on 70% of questions" in result[0].evidence

    def test_heavy_hints_with_good_score_no_check_in(self):
        """Heavy hints alone do not trigger at 75."""
        assert evaluate_rules(_event(score=75, hint_usage_rate=0.9), set()) == []

    def test_evidence_lines(self):
        """Evidence lists score, hint use and coach sessions in order."""
        result = evaluate_rules(_event(score=35, hint_usage_rate=0.8, coach_sessions_used=6), set())
        assert result[0].evidence == [
            "Score of 35% is below expected threshold",
            "Used hints on 80% of questions",
            "6 coach sessions used",
        ]

    def test_summary_and_suggested_actions(self):
        """The summary names student and assignment."""
        result = evaluate_rules(_event(score=35), set())
        assert result[0].summary == 'Ada may need support on "Fractions"'
        assert result[0].suggested_actions[0] == "Have a brief conversation to understand any difficulties"

    def test_skipped_when_check_in_active(self):
        """An active check_in suppresses another."""
        assert evaluate_rules(_event(score=20), {"check_in"}) == []


class TestCelebrateRule:
    """Big improvements get celebrated."""

    def test_large_improvement_is_high(self):
        """Previous best 50, new score 85: one high-priority celebration."""
        result = evaluate_rules(_event(score=85, previous_highest_score=50), set())
        assert _types(result) == ["celebrate_progress"]
        assert result[0].priority == "high"
        assert result[0].confidence == 0.9
        assert result[0].evidence == [
            "Score improved by 35 points",
            "New score: 85%",
            "Previous best: 50%",
        ]

    def test_threshold_improvement_is_medium(self):
        """A 20 point gain is a medium celebration."""
        result = evaluate_rules(_event(score=80, previous_highest_score=60), set())
        assert _types(result) == ["celebrate_progress"]
        assert result[0].priority == "medium"

    def test_small_improvement_ignored(self):
        """A 15 point gain is not celebrated."""
        assert evaluate_rules(_event(score=85, previous_highest_score=70), set()) == []

    def test_first_attempt_never_celebrated(self):
        """Without a previous best there is nothing to celebrate."""
        assert evaluate_rules(_event(score=85), set()) == []

    def test_dedup_per_type(self):
        """An active celebration suppresses another."""
        assert evaluate_rules(_event(score=85, previous_highest_score=50), {"celebrate_progress"}) == []


class TestChallengeRule:
    """Excelling without support suggests a challenge."""

    def test_excelling_without_hints(self):
        """Score 95 with no hints: one medium challenge naming minimal support."""
        result = evaluate_rules(_event(score=95, hint_usage_rate=0.0), set())
        assert _types(result) == ["challenge_opportunity"]
        assert result[0].priority == "medium"
        assert result[0].confidence == 0.85
        assert "Scored 95% with minimal support" in result[0].evidence
        assert "Completed on first attempt" in result[0].evidence

    def test_attempt_count_in_evidence(self):
        """Later attempts are counted in the evidence."""
        result = evaluate_rules(_event(score=92, attempts=2), set())
        assert "Completed in 2 attempts" in result[0].evidence

    def test_too_many_hints(self):
        """A 20% hint rate rules out a challenge."""
        assert evaluate_rules(_event(score=95, hint_usage_rate=0.2), set()) == []

    def test_hint_boundary_is_inclusive(self):
        """Score 90 with a 10% hint rate still qualifies."""
        assert _types(evaluate_rules(_event(score=90, hint_usage_rate=0.1), set())) == ["challenge_opportunity"]


class TestMonitorRule:
    """Repeated attempts stuck in the developing band are monitored."""

    def test_repeated_attempts_in_band(self):
        """Three attempts at 55 give a low-priority monitor."""
        result = evaluate_rules(_event(score=55, attempts=3), set())
        assert _types(result) == ["monitor"]
        assert result[0].priority == "low"
        assert result[0].confidence == 0.75
        assert result[0].evidence == [
            "3 attempts completed",
            "Current score: 55%",
            "Score similar to previous attempt",
        ]

    def test_improvement_line(self):
        """Gains since the previous best are noted."""
        result = evaluate_rules(_event(score=60, attempts=3, previous_highest_score=50), set())
        assert "Improved by 10 points" in result[0].evidence

    def test_two_attempts_not_enough(self):
        """Two attempts do not trigger monitoring."""
        assert evaluate_rules(_event(score=55, attempts=2), set()) == []

    def test_blocked_by_active_check_in(self):
        """An active check_in suppresses monitoring."""
        assert evaluate_rules(_event(score=55, attempts=3), {"check_in"}) == []

    def test_check_in_from_same_event_does_not_block(self):
        """Both rules read the active set from before the event."""
        result = evaluate_rules(_event(score=50, attempts=3, hint_usage_rate=0.7), set())
        assert _types(result) == ["check_in", "monitor"]


class TestMultipleRules:
    """Rules are independent; all that qualify fire."""

    def test_celebrate_and_challenge_together(self):
        """A jump to 95 both celebrates and challenges."""
        result = evaluate_rules(_event(score=95, previous_highest_score=30), set())
        assert _types(result) == ["celebrate_progress", "challenge_opportunity"]

    def test_nothing_for_steady_performance(self):
        """A steady 75 triggers nothing."""
        assert evaluate_rules(_event(score=75), set()) == []


class TestCoachRules:
    """Coach usage patterns."""

    def test_heavy_support_seeking(self):
        """Five support sessions give a medium check_in."""
        result = evaluate_coach_rules("s-1", "a-1", "support", 5, set(), student_name="Ada",
                                      assignment_title="Fractions")
        assert _types(result) == ["check_in"]
        assert result[0].priority == "medium"
        assert result[0].confidence == 0.8
        assert result[0].evidence[0] == "5 coach sessions used"

    def test_light_support_seeking(self):
        """Four support sessions are not enough."""
        assert evaluate_coach_rules("s-1", "a-1", "support", 4, set()) == []

    def test_enrichment_seeking(self):
        """Three enrichment sessions give a low-priority challenge."""
        result = evaluate_coach_rules("s-1", "a-1", "enrichment", 3, set())
        assert _types(result) == ["challenge_opportunity"]
        assert result[0].priority == "low"
        assert result[0].confidence == 0.75

    def test_mixed_intent_never_fires(self):
        """Mixed intent never produces an insight."""
        assert evaluate_coach_rules("s-1", "a-1", "mixed", 10, set()) == []


class TestGenerateInsights:
    """Persisted generation with dedup."""

    def test_idempotent(self, db, classroom):
        """Two identical events leave one active insight per triggered type."""
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id,
                       score=95, previous_highest_score=40)
        first = generate_insights(db, event)
        second = generate_insights(db, event)

        assert sorted(_types(first)) == ["celebrate_progress", "challenge_opportunity"]
        assert second == []
        assert db.query(Insight).count() == 2

    def test_existing_check_in_blocks(self, db, classroom, make_insight):
        """A stored pending check_in blocks a new one."""
        make_insight(classroom.ada.id, classroom.lesson.id, "check_in")
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=20)
        assert generate_insights(db, event) == []

    def test_resolved_check_in_does_not_block(self, db, classroom, make_insight):
        """A resolved check_in leaves room for a new one."""
        make_insight(classroom.ada.id, classroom.lesson.id, "check_in", status="action_taken")
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=20)
        result = generate_insights(db, event)
        assert _types(result) == ["check_in"]
        assert result[0].priority == "high"

    def test_other_assignment_does_not_block(self, db, classroom, make_insight):
        """Dedup is scoped to the assignment."""
        make_insight(classroom.ada.id, "other-lesson", "check_in")
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=20)
        assert _types(generate_insights(db, event)) == ["check_in"]

    def test_persisted_lists_round_trip(self, db, classroom):
        """Evidence and suggested actions survive a reload."""
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=35)
        created = generate_insights(db, event)[0]
        db.expire_all()
        stored = db.query(Insight).filter(Insight.id == created.id).one()
        assert stored.evidence == ["Score of 35% is below expected threshold"]
        assert len(stored.suggested_actions) == 3

    def test_coach_generation_dedups(self, db, classroom):
        """Repeated coach events create one insight."""
        args = (db, classroom.ada.id, classroom.lesson.id, "support", 6)
        assert len(generate_coach_insights(*args)) == 1
        assert generate_coach_insights(*args) == []


class _RecordingLocks(KeyedLock):
    def __init__(self):
        super().__init__()
        self.keys = []

    def hold(self, key):
        self.keys.append(key)
        return super().hold(key)


class TestKeyedLock:
    """Per-key locks exist only while held."""

    def test_entry_dropped_after_release(self):
        """Holding a key creates its entry; leaving drops it again."""
        locks = KeyedLock()
        with locks.hold(("s-1", "a-1")):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_reentrant_hold(self):
        """The same thread can hold a key twice; it is dropped after the outer exit."""
        locks = KeyedLock()
        with locks.hold("k"):
            with locks.hold("k"):
                assert len(locks) == 1
            assert len(locks) == 1
        assert len(locks) == 0

    def test_dropped_after_error(self):
        """An exception inside the block still releases the key."""
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            with locks.hold("k"):
                raise RuntimeError("boom")
        assert len(locks) == 0

    def test_generation_uses_given_locks(self, db, classroom):
        """Callers can supply the lock holder; it is empty again afterwards."""
        locks = _RecordingLocks()
        event = _event(student_id=classroom.ada.id, assignment_id=classroom.lesson.id, score=20)
        generate_insights(db, event, locks=locks)
        generate_coach_insights(db, classroom.ada.id, classroom.lesson.id, "enrichment", 3, locks=locks)
        assert locks.keys == [(classroom.ada.id, classroom.lesson.id)] * 2
        assert len(locks) == 0
