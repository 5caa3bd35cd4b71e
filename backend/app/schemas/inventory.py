"""
Stock Pydantic Schemas

WIP rows, finished-goods stock and scrap records.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal


class WipRow(BaseModel):
    """One (stage, batch code) group of approved output"""
    batch_code: str
    produced: Decimal
    used: Decimal
    balance: Decimal
    report_count: int


class WipOverviewRow(WipRow):
    stage_id: int
    stage_name: str
    stage_title: str
    order_id: int
    order_number: Optional[str] = None
    product_name: Optional[str] = None


class FinishedGoodsResponse(BaseModel):
    id: int
    product_id: int
    quantity: Decimal
    min_quantity: Decimal
    is_below_minimum: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class ScrapRecordResponse(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: Decimal
    reason: Optional[str] = None
    stage_name: Optional[str] = None
    worker_id: Optional[str] = None
    report_id: Optional[int] = None
    source: str
    created_at: datetime

    class Config:
        from_attributes = True
