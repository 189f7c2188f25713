"""Workflow queue schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from coachboard.schemas.action import ActionType, BadgeResponse, TeacherActionResponse

SuggestedActionType = Literal["check_in", "challenge", "celebrate", "reassign", "monitor", "support_group"]
Urgency = Literal["immediate", "soon", "when_available"]
ItemStatus = Literal["pending", "completed", "dismissed", "expired"]


class ActionableItem(BaseModel):
    id: str
    student_id: str
    student_name: str
    assignment_id: Optional[str] = None
    assignment_title: Optional[str] = None
    class_id: Optional[str] = None
    class_name: Optional[str] = None
    insight_id: str
    insight_type: str
    action_type: SuggestedActionType
    title: str
    description: str
    evidence: list[str] = []
    suggested_actions: list[str] = []
    priority: str
    urgency: Urgency
    status: ItemStatus
    created_at: datetime
    expires_at: datetime


class TakeActionRequest(BaseModel):
    teacher_id: str
    note: Optional[str] = None
    message_to_student: Optional[str] = None
    # modify only
    action_type: Optional[ActionType] = None
    badge_type: Optional[str] = None
    badge_message: Optional[str] = None


class TakeActionResult(BaseModel):
    item_status: Literal["approved", "modified", "dismissed"]
    item: ActionableItem
    action: TeacherActionResponse
    badge: Optional[BadgeResponse] = None


class UrgencyCounts(BaseModel):
    immediate: int = 0
    soon: int = 0
    when_available: int = 0


class WorkflowStats(BaseModel):
    pending: int = 0
    approved: int = 0
    dismissed: int = 0
    expired: int = 0
    by_urgency: UrgencyCounts = Field(default_factory=UrgencyCounts)
    by_type: dict[str, int] = {}
