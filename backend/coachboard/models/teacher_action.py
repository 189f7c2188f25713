"""Teacher action model: immutable audit record of a response to an insight."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Text

from coachboard.database import Base

TEACHER_ACTION_TYPES = (
    "mark_reviewed",
    "add_note",
    "reassign",
    "award_badge",
    "schedule_checkin",
    "draft_message",
    "other",
)


class TeacherAction(Base):
    __tablename__ = "teacher_actions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    insight_id = Column(String(36), ForeignKey("insights.id"), nullable=False, index=True)
    teacher_id = Column(String(36), nullable=False, index=True)
    action_type = Column(String(30), nullable=False)  # mark_reviewed | add_note | reassign | award_badge | ...
    note = Column(Text, nullable=True)
    message_to_student = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
