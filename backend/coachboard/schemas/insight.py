"""Insight request/response schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

InsightType = Literal["check_in", "celebrate_progress", "challenge_opportunity", "monitor"]
InsightPriority = Literal["low", "medium", "high"]
InsightStatus = Literal["pending_review", "monitoring", "action_taken", "dismissed", "expired"]


class InsightFilter(BaseModel):
    student_id: Optional[str] = None
    class_id: Optional[str] = None
    assignment_id: Optional[str] = None
    subject: Optional[str] = None
    types: Optional[list[InsightType]] = None
    priorities: Optional[list[InsightPriority]] = None
    statuses: Optional[list[InsightStatus]] = None
    min_confidence: Optional[float] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    reviewed_by: Optional[str] = None


class InsightSort(BaseModel):
    field: Literal["created_at", "priority", "confidence", "type"] = "created_at"
    direction: Literal["asc", "desc"] = "desc"


class InsightResponse(BaseModel):
    id: str
    student_id: str
    assignment_id: Optional[str]
    class_id: str
    subject: Optional[str]
    insight_type: str
    priority: str
    confidence: float
    summary: str
    evidence: list[str] = []
    suggested_actions: list[str] = []
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime]
    reviewed_by: Optional[str]

    class Config:
        from_attributes = True


class InsightPage(BaseModel):
    insights: list[InsightResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class StatusUpdate(BaseModel):
    status: InsightStatus
    actor_id: Optional[str] = None


class TransitionRequest(BaseModel):
    actor_id: str
    reason: Optional[str] = None


class SweepResponse(BaseModel):
    expired: int = 0
    archived: int = 0


class PerformanceEvent(BaseModel):
    """Measurements from one completed attempt, fed to the insight rules."""

    student_id: str
    assignment_id: Optional[str] = None
    subject: Optional[str] = None
    class_id: str = ""
    prompt_count: int = 0
    score: float = Field(ge=0, le=100)
    hint_usage_rate: float = Field(default=0.0, ge=0, le=1)
    coach_sessions_used: int = 0
    attempts: int = 1
    previous_highest_score: Optional[float] = None
    student_name: Optional[str] = None
    assignment_title: Optional[str] = None
