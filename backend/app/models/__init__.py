"""Database models"""
from app.models.product import Product
from app.models.order import Order
from app.models.stage import Stage, StageInput
from app.models.production_report import ProductionReport, ReportConsumption
from app.models.inventory import FinishedGoodsStock
from app.models.scrap import ScrapRecord

__all__ = [
    # Planning
    "Product",
    "Order",
    "Stage",
    "StageInput",
    # Ledger
    "ProductionReport",
    "ReportConsumption",
    # Stock
    "FinishedGoodsStock",
    "ScrapRecord",
]
