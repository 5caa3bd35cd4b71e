"""
Finished-goods stock and scrap/defect postings.

Thin counters written from inside ledger transactions:
- post_finished_goods: final-stage approvals
- record_scrap: approvals with scrap, and manual defect write-offs

Neither function commits.
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.status_config import ScrapSource
from app.models.inventory import FinishedGoodsStock
from app.models.scrap import ScrapRecord
from app.logging_config import get_logger

logger = get_logger(__name__)


def post_finished_goods(db: Session, product_id: int, quantity: Decimal) -> FinishedGoodsStock:
    """
    Increment on-hand stock of a product, creating the row if absent.

    New rows start with a zero minimum threshold.
    """
    stock = db.query(FinishedGoodsStock).filter(
        FinishedGoodsStock.product_id == product_id
    ).first()

    if not stock:
        stock = FinishedGoodsStock(
            product_id=product_id,
            quantity=Decimal("0"),
            min_quantity=Decimal("0"),
        )
        db.add(stock)

    stock.quantity = Decimal(stock.quantity or 0) + quantity
    db.flush()

    logger.info(
        f"Finished goods +{quantity} for product {product_id} (on hand {stock.quantity})",
        extra={"product_id": product_id, "quantity": str(quantity)},
    )
    return stock


def record_scrap(
    db: Session,
    *,
    product_id: Optional[int],
    product_name: Optional[str],
    quantity: Decimal,
    reason: Optional[str],
    stage_name: Optional[str],
    worker_id: Optional[str] = None,
    report_id: Optional[int] = None,
    source: str = ScrapSource.APPROVAL.value,
) -> ScrapRecord:
    """Create a scrap/defect record carrying its provenance."""
    record = ScrapRecord(
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        reason=reason,
        stage_name=stage_name,
        worker_id=worker_id,
        report_id=report_id,
        source=source,
    )
    db.add(record)
    db.flush()

    logger.info(
        f"Scrap recorded: {quantity} of {product_name or product_id} at {stage_name} ({source})",
        extra={"report_id": report_id, "product_id": product_id, "quantity": str(quantity)},
    )
    return record


def list_finished_goods(db: Session, below_minimum_only: bool = False) -> List[FinishedGoodsStock]:
    query = db.query(FinishedGoodsStock).order_by(FinishedGoodsStock.product_id)
    if below_minimum_only:
        query = query.filter(FinishedGoodsStock.quantity < FinishedGoodsStock.min_quantity)
    return query.all()


def list_scrap_records(
    db: Session,
    product_id: Optional[int] = None,
    source: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[ScrapRecord]:
    query = db.query(ScrapRecord)
    if product_id is not None:
        query = query.filter(ScrapRecord.product_id == product_id)
    if source:
        query = query.filter(ScrapRecord.source == source)
    return query.order_by(ScrapRecord.created_at.desc(), ScrapRecord.id.desc()).offset(offset).limit(limit).all()
