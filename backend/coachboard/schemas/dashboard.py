"""Dashboard response schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from coachboard.schemas.action import TeacherActionResponse
from coachboard.schemas.insight import InsightResponse

UnderstandingLevel = Literal["strong", "developing", "needs_support"]
ProgressStatus = Literal["not_started", "in_progress", "completed"]
ReviewStatus = Literal["pending", "monitoring", "reviewed"]


class InsightSummary(BaseModel):
    insight_id: str
    insight_type: str
    priority: str
    status: str
    summary: str
    created_at: datetime


class AvailableAction(BaseModel):
    action_type: str
    label: str
    description: str
    is_recommended: bool = False


class StudentRow(BaseModel):
    student_id: str
    student_name: str
    class_id: str = ""
    class_name: str = "Unassigned"
    progress_status: ProgressStatus
    understanding_level: UnderstandingLevel
    score: Optional[float] = None
    highest_score: Optional[float] = None
    attempts: int = 0
    hints_used: int = 0
    hint_usage_rate: float = 0.0
    coach_session_count: int = 0
    last_completed_at: Optional[datetime] = None
    review_status: ReviewStatus = "pending"
    active_insights: list[InsightSummary] = []
    available_actions: list[AvailableAction] = []


class ArchiveCheck(BaseModel):
    assignment_id: str
    can_archive: bool
    blockers: list[str] = []


class AssignmentDashboard(BaseModel):
    assignment_id: str
    assignment_title: str
    subject: Optional[str] = None
    total_students: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    average_score: Optional[float] = None
    highest_score: Optional[float] = None
    lowest_score: Optional[float] = None
    strong: int = 0
    developing: int = 0
    needs_support: int = 0
    reviewed: int = 0
    pending_review: int = 0
    students: list[StudentRow] = []
    can_archive: bool = False
    archive_blockers: list[str] = []
    generated_at: datetime


class StudentAttention(BaseModel):
    student_id: str
    student_name: str
    highest_priority: str
    insight_count: int
    insight_types: list[str] = []


class EducatorInsightDashboard(BaseModel):
    total_pending: int = 0
    pending_by_type: dict[str, int] = {}
    pending_by_priority: dict[str, int] = {}
    top_insights: list[InsightResponse] = []
    students_needing_attention: list[StudentAttention] = []
    celebration_opportunities: list[InsightResponse] = []
    recent_actions: list[TeacherActionResponse] = []
    generated_at: datetime


class StudentInsightSummary(BaseModel):
    student_id: str
    student_name: str
    total_insights: int = 0
    pending_count: int = 0
    by_type: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    last_insight_at: Optional[datetime] = None
    badges_earned: int = 0


class ClassInsightSummary(BaseModel):
    class_id: str
    class_name: str
    total_insights: int = 0
    pending_count: int = 0
    by_type: dict[str, int] = {}
    students_with_insights: int = 0
    total_students: int = 0
    last_insight_at: Optional[datetime] = None
