"""
Planning Pydantic Schemas

Products, orders and stages with their input requirements. The ledger
only reads these; planning creates them.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from app.core.status_config import StageKind


# ============================================================================
# Product
# ============================================================================

class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    unit: str = Field("pcs", max_length=20)


class ProductResponse(BaseModel):
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    unit: Optional[str] = None
    active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Order
# ============================================================================

class OrderCreate(BaseModel):
    order_number: str = Field(..., min_length=1, max_length=50)
    product_id: int
    quantity: Decimal = Field(..., gt=0, description="Target quantity")
    deadline: Optional[date] = None
    customer_name: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None


class OrderProgress(BaseModel):
    """Progress derived from the order's final stage"""
    final_stage_id: Optional[int] = None
    completed_quantity: Decimal = Decimal("0")
    percent: int = 0


class OrderResponse(BaseModel):
    id: int
    order_number: str
    product_id: int
    quantity: Decimal
    deadline: Optional[date] = None
    status: str
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    product_name: Optional[str] = None
    progress: OrderProgress


# ============================================================================
# Stage
# ============================================================================

class StageInputCreate(BaseModel):
    """One input requirement: `ratio` units of `source_stage_name` per output unit"""
    source_stage_name: str = Field(..., min_length=1, max_length=200)
    ratio: Decimal = Field(..., gt=0)


class StageInputResponse(BaseModel):
    id: int
    source_stage_name: str
    ratio: Decimal
    sequence: int

    class Config:
        from_attributes = True


class StageCreate(BaseModel):
    order_id: int
    name: str = Field(..., min_length=1, max_length=200)
    title: Optional[str] = Field(None, max_length=255, description="Defaults to '<order number> - <name>'")
    description: Optional[str] = None
    kind: StageKind = StageKind.PRODUCTION
    planned_quantity: Optional[Decimal] = Field(None, ge=0, description="Defaults to the order quantity")
    is_final_stage: bool = False
    deadline: Optional[date] = None
    inputs: List[StageInputCreate] = []


class StageResponse(BaseModel):
    id: int
    order_id: int
    name: str
    title: str
    description: Optional[str] = None
    kind: str
    status: str
    is_final_stage: bool
    planned_quantity: Decimal
    completed_quantity: Decimal
    pending_quantity: Decimal
    scrap_quantity: Decimal
    adjusted_quantity: Decimal
    deadline: Optional[date] = None
    version: int
    inputs: List[StageInputResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
