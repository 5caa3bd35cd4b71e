"""
Production Reports API Endpoints

Worker submissions, edit-before-approval and approver decisions.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_actor, get_db
from app.schemas.production_report import (
    ProductionReportCreate,
    ProductionReportResponse,
    ProductionReportUpdate,
    ReportSubmitResponse,
)
from app.services import approval, report_store

router = APIRouter()


@router.post("", response_model=ReportSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_report(
    data: ProductionReportCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """
    Submit a report for approval.

    A selection that covers less input than required is accepted; the
    uncovered amounts come back in `shortfalls`.
    """
    report, shortfalls = report_store.submit_report(db, data, worker_id=actor)
    return ReportSubmitResponse(
        report=ProductionReportResponse.model_validate(report),
        shortfalls=[s.to_dict() for s in shortfalls],
    )


@router.get("", response_model=List[ProductionReportResponse])
def list_reports(
    status_filter: Optional[str] = Query(None, alias="status"),
    stage_id: Optional[int] = None,
    worker_id: Optional[str] = None,
    search: Optional[str] = Query(None, description="Stage, order, product or batch code"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return report_store.list_reports(
        db,
        status=status_filter,
        stage_id=stage_id,
        worker_id=worker_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/pending", response_model=List[ProductionReportResponse])
def list_pending_reports(db: Session = Depends(get_db)):
    """Approver queue, oldest first."""
    return report_store.list_pending_reports(db)


@router.get("/{report_id}", response_model=ProductionReportResponse)
def get_report(report_id: int, db: Session = Depends(get_db)):
    return report_store.get_report(db, report_id)


@router.patch("/{report_id}", response_model=ProductionReportResponse)
def update_report(report_id: int, data: ProductionReportUpdate, db: Session = Depends(get_db)):
    """Correct a pending report. Decided reports are immutable."""
    return report_store.update_pending_report(db, report_id, data)


@router.post("/{report_id}/approve", response_model=ProductionReportResponse)
def approve_report(
    report_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """
    Approve a pending report.

    On 409 TRANSACTION_ABORTED nothing was applied and the request can be
    sent again.
    """
    return approval.approve_report(db, report_id, approver=actor)


@router.post("/{report_id}/reject", response_model=ProductionReportResponse)
def reject_report(
    report_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    return approval.reject_report(db, report_id, approver=actor)
