"""Activity router: attempt completions, coach sessions and retries."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from coachboard.database import get_db
from coachboard.errors import NotFoundError
from coachboard.schemas.activity import (
    CompletionRequest,
    CoachInteractionRequest,
    RetryRequest,
    CompletionResult,
    CoachInteractionResult,
    RetryResult,
    ProgressResponse,
)
from coachboard.schemas.insight import InsightResponse
from coachboard.services import student_activity

router = APIRouter(prefix="/api/activity", tags=["activity"])


@router.post("/completions", response_model=CompletionResult, status_code=201)
def record_completion(req: CompletionRequest, db: Session = Depends(get_db)):
    """Record a completed attempt and return any insights it raised."""
    try:
        result = student_activity.record_completion(db, req)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CompletionResult(
        record=ProgressResponse.model_validate(result["record"]),
        insights=[InsightResponse.model_validate(i) for i in result["insights"]],
        understanding_level=result["understanding_level"],
        attempt_number=result["attempt_number"],
        is_improvement=result["is_improvement"],
        improvement_amount=result["improvement_amount"],
    )


@router.post("/coach-sessions", response_model=CoachInteractionResult, status_code=201)
def record_coach_session(req: CoachInteractionRequest, db: Session = Depends(get_db)):
    try:
        result = student_activity.record_coach_interaction(db, req)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CoachInteractionResult(
        record=ProgressResponse.model_validate(result["record"]),
        intent=result["intent"],
        insights=[InsightResponse.model_validate(i) for i in result["insights"]],
    )


@router.post("/retries", response_model=RetryResult, status_code=201)
def start_retry(req: RetryRequest, db: Session = Depends(get_db)):
    try:
        result = student_activity.start_retry(db, req.student_id, req.assignment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RetryResult(
        record=ProgressResponse.model_validate(result["record"]),
        previous_attempts=result["previous_attempts"],
        previous_score=result["previous_score"],
    )
