"""
Stages API Endpoints

Stage creation and archival, per-stage WIP, the allocator's draft view
and administrator stock postings.
"""
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_actor, get_db
from app.schemas.inventory import WipRow
from app.schemas.planning import StageCreate, StageResponse
from app.schemas.production_report import (
    ManualDeductionCreate,
    ManualStockCreate,
    ProductionReportResponse,
    RequirementPlanResponse,
)
from app.services import allocation, manual_adjustment, planning, report_store, stage_tracker

router = APIRouter()


@router.post("", response_model=StageResponse, status_code=status.HTTP_201_CREATED)
def create_stage(data: StageCreate, db: Session = Depends(get_db)):
    """Add a stage (with input requirements) to an order."""
    return planning.create_stage(db, data)


@router.get("/{stage_id}", response_model=StageResponse)
def get_stage(stage_id: int, db: Session = Depends(get_db)):
    return stage_tracker.get_stage(db, stage_id)


@router.post("/{stage_id}/archive", response_model=StageResponse)
def archive_stage(stage_id: int, db: Session = Depends(get_db)):
    """Hide a stage from the WIP overview. Counters and reports are kept."""
    return stage_tracker.archive_stage(db, stage_id)


@router.get("/{stage_id}/wip", response_model=List[WipRow])
def stage_wip(stage_id: int, db: Session = Depends(get_db)):
    """Produced / used / balance per batch code over approved reports."""
    return report_store.aggregate_stage(db, stage_id)


@router.get("/{stage_id}/consumption-plan", response_model=List[RequirementPlanResponse])
def consumption_plan(
    stage_id: int,
    quantity: Decimal = Query(..., ge=0, description="Quantity the worker intends to produce"),
    db: Session = Depends(get_db),
):
    """
    Input requirements for producing `quantity` with the upstream batches
    that can still cover them. Availability already subtracts pending
    reservations.
    """
    return allocation.plan_consumption(db, stage_id, quantity)


@router.post(
    "/{stage_id}/manual-stock",
    response_model=ProductionReportResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_manual_stock(
    stage_id: int,
    data: ManualStockCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Add stock to a stage directly (applied immediately, no approval)."""
    return manual_adjustment.post_manual_stock(
        db,
        stage_id,
        data.quantity,
        admin=actor,
        batch_code=data.batch_code,
        notes=data.notes,
    )


@router.post(
    "/{stage_id}/manual-deduction",
    response_model=ProductionReportResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_manual_deduction(
    stage_id: int,
    data: ManualDeductionCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Write stock off a stage directly (applied immediately, no approval)."""
    return manual_adjustment.post_manual_deduction(
        db,
        stage_id,
        data.quantity,
        admin=actor,
        kind=data.kind.value,
        batch_code=data.batch_code,
        notes=data.notes,
    )
