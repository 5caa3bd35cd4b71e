"""
Orders API Endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_db
from app.schemas.planning import (
    OrderCreate,
    OrderDetailResponse,
    OrderProgress,
    OrderResponse,
    StageResponse,
)
from app.services import planning

router = APIRouter()


def build_order_detail(db: Session, order) -> OrderDetailResponse:
    base = OrderResponse.model_validate(order)
    return OrderDetailResponse(
        **base.model_dump(),
        product_name=order.product.name if order.product else None,
        progress=OrderProgress(**planning.order_progress(db, order)),
    )


@router.post("", response_model=OrderDetailResponse, status_code=status.HTTP_201_CREATED)
def create_order(data: OrderCreate, db: Session = Depends(get_db)):
    """Create a production order for a product."""
    order = planning.create_order(db, data)
    return build_order_detail(db, order)


@router.get("", response_model=List[OrderResponse])
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    return planning.list_orders(db, status=status_filter)


@router.get("/{order_id}", response_model=OrderDetailResponse)
def get_order(order_id: int, db: Session = Depends(get_db)):
    """Order with progress derived from its final stage."""
    order = planning.get_order(db, order_id)
    return build_order_detail(db, order)


@router.get("/{order_id}/stages", response_model=List[StageResponse])
def list_order_stages(
    order_id: int,
    include_archived: bool = Query(True),
    db: Session = Depends(get_db),
):
    return planning.list_order_stages(db, order_id, include_archived=include_archived)
