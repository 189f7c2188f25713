"""Teacher actions router: record responses to insights and read the audit trail."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from coachboard.database import get_db
from coachboard.errors import NotFoundError
from coachboard.schemas.action import (
    ActionRequest,
    ReviewRequest,
    BulkReviewRequest,
    ActionResult,
    BulkResult,
    BadgeResponse,
    TeacherActionResponse,
)
from coachboard.schemas.insight import InsightResponse
from coachboard.services import action_recorder

router = APIRouter(prefix="/api/actions", tags=["actions"])


def _to_result(result: dict) -> ActionResult:
    return ActionResult(
        action=TeacherActionResponse.model_validate(result["action"]),
        insight=InsightResponse.model_validate(result["insight"]),
        badge=BadgeResponse.model_validate(result["badge"]) if result["badge"] else None,
    )


@router.post("", response_model=ActionResult, status_code=201)
def record_action(req: ActionRequest, db: Session = Depends(get_db)):
    """Record a teacher action, linking it to an insight."""
    try:
        return _to_result(action_recorder.record_action(db, req))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/recent", response_model=list[TeacherActionResponse])
def recent_actions(limit: Optional[int] = Query(None, ge=1, le=200), db: Session = Depends(get_db)):
    return [TeacherActionResponse.model_validate(a) for a in action_recorder.get_recent_actions(db, limit)]


@router.get("/teachers/{teacher_id}", response_model=list[TeacherActionResponse])
def teacher_actions(teacher_id: str, db: Session = Depends(get_db)):
    return [TeacherActionResponse.model_validate(a) for a in action_recorder.get_teacher_actions(db, teacher_id)]


@router.post("/insights/{insight_id}/review", response_model=ActionResult, status_code=201)
def review_insight(insight_id: str, req: ReviewRequest, db: Session = Depends(get_db)):
    """Mark an insight reviewed (action_taken, monitoring or dismissed)."""
    try:
        result = action_recorder.mark_insight_reviewed(db, insight_id, req.teacher_id, req.status, req.note)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_result(result)


@router.post("/assignments/{assignment_id}/review-all", response_model=BulkResult)
def review_all_for_assignment(assignment_id: str, req: BulkReviewRequest, db: Session = Depends(get_db)):
    count = action_recorder.mark_all_reviewed_for_assignment(db, assignment_id, req.teacher_id)
    return BulkResult(count=count)


@router.post("/students/{student_id}/dismiss-all", response_model=BulkResult)
def dismiss_all_for_student(student_id: str, req: BulkReviewRequest, db: Session = Depends(get_db)):
    count = action_recorder.dismiss_all_for_student(db, student_id, req.teacher_id, req.reason)
    return BulkResult(count=count)
