"""Insights router: query, lifecycle transitions and maintenance."""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from coachboard.database import get_db
from coachboard.errors import NotFoundError
from coachboard.schemas.action import TeacherActionResponse
from coachboard.schemas.insight import (
    InsightFilter,
    InsightSort,
    InsightResponse,
    InsightPage,
    StatusUpdate,
    TransitionRequest,
    SweepResponse,
)
from coachboard.services import action_recorder, lifecycle
from coachboard.stores import insight_store

router = APIRouter(prefix="/api/insights", tags=["insights"])


@router.get("", response_model=InsightPage)
def list_insights(
    student_id: Optional[str] = Query(None),
    class_id: Optional[str] = Query(None),
    assignment_id: Optional[str] = Query(None),
    subject: Optional[str] = Query(None),
    insight_type: Optional[list[str]] = Query(None, alias="type"),
    priority: Optional[list[str]] = Query(None),
    status: Optional[list[str]] = Query(None),
    min_confidence: Optional[float] = Query(None, ge=0, le=1),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    reviewed_by: Optional[str] = Query(None),
    sort_by: Optional[Literal["created_at", "priority", "confidence", "type"]] = Query(None),
    sort_dir: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List insights. Without sort_by, most important first."""
    try:
        filters = InsightFilter(
            student_id=student_id,
            class_id=class_id,
            assignment_id=assignment_id,
            subject=subject,
            types=insight_type,
            priorities=priority,
            statuses=status,
            min_confidence=min_confidence,
            created_after=created_after,
            created_before=created_before,
            reviewed_by=reviewed_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    sort = InsightSort(field=sort_by, direction=sort_dir) if sort_by else None
    result = insight_store.query(db, filters, sort, page=page, page_size=page_size)
    return InsightPage(
        insights=[InsightResponse.model_validate(i) for i in result["insights"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
        has_more=result["has_more"],
    )


@router.get("/{insight_id}", response_model=InsightResponse)
def get_insight(insight_id: str, db: Session = Depends(get_db)):
    insight = insight_store.load(db, insight_id)
    if not insight:
        raise HTTPException(status_code=404, detail="Insight not found")
    return InsightResponse.model_validate(insight)


@router.get("/{insight_id}/actions", response_model=list[TeacherActionResponse])
def get_insight_actions(insight_id: str, db: Session = Depends(get_db)):
    """Audit trail for one insight, newest first."""
    if not insight_store.load(db, insight_id):
        raise HTTPException(status_code=404, detail="Insight not found")
    return [TeacherActionResponse.model_validate(a) for a in action_recorder.get_insight_actions(db, insight_id)]


@router.patch("/{insight_id}/status", response_model=InsightResponse)
def update_status(insight_id: str, req: StatusUpdate, db: Session = Depends(get_db)):
    """Request a status change; disallowed transitions leave the insight as it is."""
    try:
        insight = lifecycle.update_status(db, insight_id, req.status, req.actor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InsightResponse.model_validate(insight)


@router.patch("/{insight_id}/monitor", response_model=InsightResponse)
def set_monitoring(insight_id: str, req: TransitionRequest, db: Session = Depends(get_db)):
    try:
        insight = lifecycle.set_monitoring(db, insight_id, req.actor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InsightResponse.model_validate(insight)


@router.patch("/{insight_id}/action-taken", response_model=InsightResponse)
def mark_action_taken(insight_id: str, req: TransitionRequest, db: Session = Depends(get_db)):
    try:
        insight = lifecycle.mark_action_taken(db, insight_id, req.actor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InsightResponse.model_validate(insight)


@router.patch("/{insight_id}/dismiss", response_model=InsightResponse)
def dismiss(insight_id: str, req: TransitionRequest, db: Session = Depends(get_db)):
    try:
        insight = lifecycle.dismiss(db, insight_id, req.actor_id, req.reason)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InsightResponse.model_validate(insight)


@router.post("/maintenance/expire", response_model=SweepResponse)
def expire_overdue(db: Session = Depends(get_db)):
    """Expire pending insights past their review window."""
    return SweepResponse(expired=lifecycle.expire_overdue(db))


@router.post("/maintenance/archive", response_model=SweepResponse)
def archive_resolved(
    days_old: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    """Delete long-resolved insights that have no teacher actions."""
    return SweepResponse(archived=lifecycle.archive_resolved(db, days_old))
