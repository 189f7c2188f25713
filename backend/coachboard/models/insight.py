"""Insight model: a system-generated observation about a student's work."""

import json
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Text, Index

from coachboard.database import Base

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ("check_in", "celebrate_progress", "challenge_opportunity", "monitor")
INSIGHT_PRIORITIES = ("low", "medium", "high")
INSIGHT_STATUSES = ("pending_review", "monitoring", "action_taken", "dismissed", "expired")

# Statuses that count toward the one-active-insight-per-(student, assignment, type) rule
ACTIVE_STATUSES = ("pending_review", "monitoring")
RESOLVED_STATUSES = ("action_taken", "dismissed", "expired")

# Least to most important; used as the secondary sort key
TYPE_PRIORITY_ORDER = ("monitor", "celebrate_progress", "challenge_opportunity", "check_in")
PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2}


def _load_list(raw, field: str, insight_id: str) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        logger.error("Corrupted %s payload on insight %s; reading as empty", field, insight_id)
        return []
    if not isinstance(value, list):
        logger.error("Unexpected %s payload on insight %s; reading as empty", field, insight_id)
        return []
    return [str(v) for v in value]


class Insight(Base):
    __tablename__ = "insights"
    __table_args__ = (
        Index("ix_insights_dedup", "student_id", "assignment_id", "insight_type", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    assignment_id = Column(String(36), ForeignKey("lessons.id"), nullable=True, index=True)
    class_id = Column(String(36), nullable=False, default="")
    subject = Column(String(100), nullable=True)
    insight_type = Column(String(30), nullable=False)  # check_in | celebrate_progress | challenge_opportunity | monitor
    priority = Column(String(10), nullable=False)  # low | medium | high
    confidence = Column(Float, nullable=False, default=0.0)
    summary = Column(Text, nullable=False)
    evidence_json = Column("evidence", Text, nullable=True)                    # JSON array of strings
    suggested_actions_json = Column("suggested_actions", Text, nullable=True)  # JSON array of strings
    status = Column(String(20), nullable=False, default="pending_review")  # pending_review | monitoring | action_taken | dismissed | expired
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), nullable=True)

    @property
    def evidence(self) -> list[str]:
        return _load_list(self.evidence_json, "evidence", self.id)

    @evidence.setter
    def evidence(self, value) -> None:
        self.evidence_json = json.dumps(list(value or []))

    @property
    def suggested_actions(self) -> list[str]:
        return _load_list(self.suggested_actions_json, "suggested_actions", self.id)

    @suggested_actions.setter
    def suggested_actions(self, value) -> None:
        self.suggested_actions_json = json.dumps(list(value or []))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
