"""
Production Report Pydantic Schemas

Submission, edit-before-approval, manual postings, and the allocator's
draft-time plan.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from app.core.status_config import ReportKind


# ============================================================================
# Submission
# ============================================================================

class SourceBatchSelection(BaseModel):
    """
    An upstream batch the worker draws from.

    Without `quantity` the batch gives min(available now, still needed).
    """
    source_report_id: int
    quantity: Optional[Decimal] = None


class ProductionReportCreate(BaseModel):
    """Worker submission; quantity rules depend on the stage kind"""
    stage_id: Optional[int] = None
    quantity: Decimal
    scrap_quantity: Decimal = Decimal("0")
    batch_code: Optional[str] = Field(None, max_length=100)
    report_date: Optional[date] = None
    notes: Optional[str] = None
    source_batches: List[SourceBatchSelection] = []


class ProductionReportUpdate(BaseModel):
    """Correction of a pending report"""
    quantity: Optional[Decimal] = None
    scrap_quantity: Optional[Decimal] = None
    notes: Optional[str] = None


# ============================================================================
# Responses
# ============================================================================

class ReportConsumptionResponse(BaseModel):
    source_report_id: int
    source_stage_name: Optional[str] = None
    quantity: Decimal
    quantity_debited: Optional[Decimal] = None

    class Config:
        from_attributes = True


class ProductionReportResponse(BaseModel):
    id: int
    stage_id: Optional[int] = None
    worker_id: str
    report_date: date
    quantity: Decimal
    scrap_quantity: Decimal
    used_quantity: Decimal
    balance: Decimal
    supply_shortfall: Decimal
    notes: Optional[str] = None
    status: str
    kind: str
    batch_code: Optional[str] = None

    order_id: Optional[int] = None
    order_number: Optional[str] = None
    stage_name: Optional[str] = None
    task_title: Optional[str] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None

    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    consumptions: List[ReportConsumptionResponse] = []
    source_batch_ids: List[int] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SupplyShortfallResponse(BaseModel):
    source_stage_name: str
    total_needed: float
    selected: float
    shortfall: float


class ReportSubmitResponse(BaseModel):
    """Submitted report plus any input the selected batches did not cover"""
    report: ProductionReportResponse
    shortfalls: List[SupplyShortfallResponse] = []


# ============================================================================
# Manual postings
# ============================================================================

class ManualStockCreate(BaseModel):
    quantity: Decimal = Field(..., gt=0)
    batch_code: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ManualDeductionCreate(BaseModel):
    """`quantity` is the positive amount written off"""
    quantity: Decimal = Field(..., gt=0)
    kind: ReportKind = ReportKind.MANUAL_DEDUCTION
    batch_code: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


# ============================================================================
# Allocation plan (draft-time)
# ============================================================================

class CandidateBatchResponse(BaseModel):
    report_id: int
    batch_code: Optional[str] = None
    stage_name: Optional[str] = None
    report_date: Optional[date] = None
    quantity: Decimal
    used_quantity: Decimal
    reserved: Decimal
    available_now: Decimal

    class Config:
        from_attributes = True


class RequirementPlanResponse(BaseModel):
    source_stage_name: str
    ratio: Decimal
    total_needed: Decimal
    total_available: Decimal
    candidates: List[CandidateBatchResponse] = []

    class Config:
        from_attributes = True
