"""
API v1 Router - Production Ledger
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    products,
    orders,
    stages,
    reports,
    stock,
)
from app.schemas.common import ERROR_RESPONSES

router = APIRouter(responses=ERROR_RESPONSES)

# Planning
router.include_router(
    products.router,
    prefix="/products",
    tags=["planning"]
)

router.include_router(
    orders.router,
    prefix="/orders",
    tags=["planning"]
)

# Stages (archival, WIP, consumption plan, manual postings)
router.include_router(
    stages.router,
    prefix="/stages",
    tags=["stages"]
)

# Production reports and approvals
router.include_router(
    reports.router,
    prefix="/reports",
    tags=["reports"]
)

# WIP overview, finished goods, scrap
router.include_router(
    stock.router,
    tags=["stock"]
)
