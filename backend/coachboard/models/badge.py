"""Badge model: recognition a teacher awards to a student."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Text

from coachboard.database import Base

BADGE_TYPES = {
    "progress_star": "Progress Star",
    "mastery_badge": "Mastery Badge",
    "effort_award": "Effort Award",
    "helper_badge": "Helper Badge",
    "persistence": "Persistence",
    "curiosity": "Curiosity",
    "focus_badge": "Focus Badge",
    "creativity_badge": "Creativity Badge",
    "collaboration_badge": "Collaboration Badge",
    "custom": "Custom Badge",
}
DEFAULT_BADGE_TYPE = "progress_star"


class Badge(Base):
    __tablename__ = "badges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    awarded_by = Column(String(36), nullable=False)
    badge_type = Column(String(30), nullable=False, default=DEFAULT_BADGE_TYPE)
    message = Column(Text, nullable=True)
    assignment_id = Column(String(36), ForeignKey("lessons.id"), nullable=True)
    insight_id = Column(String(36), ForeignKey("insights.id"), nullable=True)
    issued_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
