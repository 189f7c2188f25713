"""Lesson model: an assignment students attempt with the AI coach."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship

from coachboard.database import Base


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(500), nullable=False)
    subject = Column(String(100), nullable=True)
    prompt_count = Column(Integer, nullable=False, default=0)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    class_ = relationship("Class", back_populates="lessons")
