"""Student model: roster entry with teacher-only free-text notes."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.orm import relationship

from coachboard.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    # Private teacher notes (IEP, ESL, accommodations...). Append-only, one
    # "[YYYY-MM-DD] text" entry per line.
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    enrollments = relationship("ClassEnrollment", back_populates="student")
