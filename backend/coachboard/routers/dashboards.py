"""Dashboards router: assignment rosters, archive checks and the educator view."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from coachboard.database import get_db
from coachboard.errors import NotFoundError
from coachboard.schemas.dashboard import (
    ArchiveCheck,
    AssignmentDashboard,
    ClassInsightSummary,
    EducatorInsightDashboard,
    StudentInsightSummary,
)
from coachboard.services import dashboard_aggregator

router = APIRouter(prefix="/api/dashboards", tags=["dashboards"])


@router.get("/assignments/{assignment_id}", response_model=AssignmentDashboard)
def assignment_dashboard(assignment_id: str, db: Session = Depends(get_db)):
    """Roster for one assignment, students needing support first."""
    try:
        return dashboard_aggregator.get_assignment_dashboard(db, assignment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/assignments/{assignment_id}/archive-check", response_model=ArchiveCheck)
def archive_check(assignment_id: str, db: Session = Depends(get_db)):
    try:
        return dashboard_aggregator.check_archive(db, assignment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/insights", response_model=EducatorInsightDashboard)
def educator_dashboard(db: Session = Depends(get_db)):
    return dashboard_aggregator.get_educator_dashboard(db)


@router.get("/students/{student_id}/summary", response_model=StudentInsightSummary)
def student_summary(student_id: str, db: Session = Depends(get_db)):
    """Insight counts by type and priority for one student, plus badges earned."""
    try:
        return dashboard_aggregator.get_student_summary(db, student_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/classes/{class_id}/summary", response_model=ClassInsightSummary)
def class_summary(class_id: str, db: Session = Depends(get_db)):
    try:
        return dashboard_aggregator.get_class_summary(db, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
