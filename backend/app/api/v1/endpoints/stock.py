"""
Stock API Endpoints

Read views: WIP overview, finished-goods stock, scrap records.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.deps import get_db
from app.schemas.inventory import FinishedGoodsResponse, ScrapRecordResponse, WipOverviewRow
from app.services import report_store, stock_posting

router = APIRouter()


@router.get("/wip", response_model=List[WipOverviewRow])
def wip_overview(
    search: Optional[str] = Query(None, description="Order number, product, stage title or batch code"),
    db: Session = Depends(get_db),
):
    """WIP of every non-archived production stage, per batch code."""
    return report_store.wip_overview(db, search=search)


@router.get("/finished-goods", response_model=List[FinishedGoodsResponse])
def list_finished_goods(
    below_minimum: bool = Query(False, description="Only rows under their minimum"),
    db: Session = Depends(get_db),
):
    return stock_posting.list_finished_goods(db, below_minimum_only=below_minimum)


@router.get("/scrap-records", response_model=List[ScrapRecordResponse])
def list_scrap_records(
    product_id: Optional[int] = None,
    source: Optional[str] = Query(None, description="approval or manual"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return stock_posting.list_scrap_records(
        db, product_id=product_id, source=source, limit=limit, offset=offset
    )
