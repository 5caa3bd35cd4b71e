"""
Products API Endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_db
from app.schemas.planning import ProductCreate, ProductResponse
from app.services import planning

router = APIRouter()


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    """Create a catalog product."""
    return planning.create_product(db, data)


@router.get("", response_model=List[ProductResponse])
def list_products(
    active_only: bool = Query(True, description="Hide inactive products"),
    db: Session = Depends(get_db),
):
    return planning.list_products(db, active_only=active_only)
