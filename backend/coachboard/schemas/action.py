"""Teacher action request/response schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, model_validator

from coachboard.schemas.insight import InsightResponse

ActionType = Literal[
    "mark_reviewed",
    "add_note",
    "reassign",
    "award_badge",
    "schedule_checkin",
    "draft_message",
    "other",
]


class ActionRequest(BaseModel):
    teacher_id: str
    action_type: ActionType
    insight_id: Optional[str] = None
    student_id: Optional[str] = None
    assignment_id: Optional[str] = None
    class_id: Optional[str] = None
    note: Optional[str] = None
    message_to_student: Optional[str] = None
    badge_type: Optional[str] = None
    badge_message: Optional[str] = None

    @model_validator(mode="after")
    def _needs_a_target(self):
        if not self.insight_id and not self.student_id:
            raise ValueError("insight_id or student_id is required")
        return self


class ReviewRequest(BaseModel):
    teacher_id: str
    status: Literal["action_taken", "monitoring", "dismissed"] = "action_taken"
    note: Optional[str] = None


class BulkReviewRequest(BaseModel):
    teacher_id: str
    reason: Optional[str] = None


class TeacherActionResponse(BaseModel):
    id: str
    insight_id: str
    teacher_id: str
    action_type: str
    note: Optional[str]
    message_to_student: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class BadgeResponse(BaseModel):
    id: str
    student_id: str
    awarded_by: str
    badge_type: str
    message: Optional[str]
    assignment_id: Optional[str]
    insight_id: Optional[str]
    issued_at: datetime

    class Config:
        from_attributes = True


class ActionResult(BaseModel):
    action: TeacherActionResponse
    insight: InsightResponse
    badge: Optional[BadgeResponse] = None


class BulkResult(BaseModel):
    count: int
