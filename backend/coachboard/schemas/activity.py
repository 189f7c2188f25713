"""Student activity request/response schemas."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from coachboard.schemas.insight import InsightResponse


class CompletionRequest(BaseModel):
    student_id: str
    assignment_id: str
    score: float = Field(ge=0, le=100)
    hints_used: int = Field(default=0, ge=0)
    coach_sessions_used: int = Field(default=0, ge=0)
    time_spent_seconds: Optional[int] = Field(default=None, ge=0)


class CoachInteractionRequest(BaseModel):
    student_id: str
    assignment_id: str
    intent: Literal["support", "enrichment", "mixed"] = "support"


class RetryRequest(BaseModel):
    student_id: str
    assignment_id: str


class ProgressResponse(BaseModel):
    student_id: str
    assignment_id: str
    attempts: int
    current_attempt: int
    score: Optional[float]
    highest_score: Optional[float]
    total_time_spent: Optional[int]
    hints_used: int
    questions_answered: int = 0
    coach_session_count: int

    class Config:
        from_attributes = True


class CompletionResult(BaseModel):
    record: ProgressResponse
    insights: list[InsightResponse] = []
    understanding_level: str
    attempt_number: int
    is_improvement: bool = False
    improvement_amount: float = 0.0


class CoachInteractionResult(BaseModel):
    record: ProgressResponse
    intent: str
    insights: list[InsightResponse] = []


class RetryResult(BaseModel):
    record: ProgressResponse
    previous_attempts: int
    previous_score: Optional[float] = None
