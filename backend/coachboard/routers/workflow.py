"""Workflow router: the prioritized queue of things a teacher should do next."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from coachboard.database import get_db
from coachboard.errors import NotFoundError
from coachboard.schemas.action import BadgeResponse, BulkReviewRequest, BulkResult, TeacherActionResponse
from coachboard.schemas.workflow import ActionableItem, TakeActionRequest, TakeActionResult, WorkflowStats
from coachboard.services import workflow_queue

router = APIRouter(prefix="/api/workflow", tags=["workflow"])


def _to_result(result: dict) -> TakeActionResult:
    return TakeActionResult(
        item_status=result["item_status"],
        item=result["item"],
        action=TeacherActionResponse.model_validate(result["action"]),
        badge=BadgeResponse.model_validate(result["badge"]) if result.get("badge") else None,
    )


@router.get("/items", response_model=list[ActionableItem])
def list_items(
    limit: Optional[int] = Query(None, ge=1, le=500),
    include_resolved: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Pending items, most urgent first."""
    return workflow_queue.get_actionable_items(db, limit=limit, include_resolved=include_resolved)


@router.get("/items/{item_id}", response_model=ActionableItem)
def get_item(item_id: str, db: Session = Depends(get_db)):
    try:
        return workflow_queue.get_item(db, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/students/{student_id}/items", response_model=list[ActionableItem])
def student_items(student_id: str, db: Session = Depends(get_db)):
    return workflow_queue.get_student_items(db, student_id)


@router.get("/assignments/{assignment_id}/items", response_model=list[ActionableItem])
def assignment_items(assignment_id: str, db: Session = Depends(get_db)):
    return workflow_queue.get_assignment_items(db, assignment_id)


@router.post("/items/{item_id}/approve", response_model=TakeActionResult)
def approve_item(item_id: str, req: TakeActionRequest, db: Session = Depends(get_db)):
    try:
        return _to_result(workflow_queue.approve(db, item_id, req))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/items/{item_id}/modify", response_model=TakeActionResult)
def modify_item(item_id: str, req: TakeActionRequest, db: Session = Depends(get_db)):
    try:
        return _to_result(workflow_queue.modify(db, item_id, req))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/items/{item_id}/dismiss", response_model=TakeActionResult)
def dismiss_item(item_id: str, req: TakeActionRequest, db: Session = Depends(get_db)):
    try:
        return _to_result(workflow_queue.dismiss(db, item_id, req))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/stats", response_model=WorkflowStats)
def stats(db: Session = Depends(get_db)):
    return workflow_queue.workflow_stats(db)


@router.post("/assignments/{assignment_id}/approve-all", response_model=BulkResult)
def approve_all(assignment_id: str, req: BulkReviewRequest, db: Session = Depends(get_db)):
    return BulkResult(count=workflow_queue.approve_all_for_assignment(db, assignment_id, req.teacher_id))


@router.post("/students/{student_id}/dismiss-all", response_model=BulkResult)
def dismiss_all(student_id: str, req: BulkReviewRequest, db: Session = Depends(get_db)):
    return BulkResult(count=workflow_queue.dismiss_all_for_student(db, student_id, req.teacher_id, req.reason))
