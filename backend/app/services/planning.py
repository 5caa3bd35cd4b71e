"""
Planning records the ledger reads: products, orders, stages and their
input requirements. Create and read only; stages can additionally be
archived (see stage_tracker.archive_stage).
"""
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.status_config import OrderStatus, StageKind, StageStatus
from app.exceptions import DuplicateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.order import Order
from app.models.product import Product
from app.models.stage import Stage, StageInput
from app.schemas.planning import OrderCreate, ProductCreate, StageCreate
from app.services.ledger_transaction import run_ledger_transaction

logger = get_logger(__name__)


# =============================================================================
# Products
# =============================================================================

def create_product(db: Session, data: ProductCreate) -> Product:
    sku = data.sku.strip()

    def _create(session: Session) -> Product:
        if session.query(Product).filter(Product.sku == sku).first():
            raise DuplicateError("Product", field="sku", value=sku)
        product = Product(
            sku=sku,
            name=data.name.strip(),
            description=data.description,
            unit=data.unit,
        )
        session.add(product)
        return product

    product = run_ledger_transaction(db, _create, action="create_product")
    logger.info(f"Created product {product.sku}", extra={"product_id": product.id})
    return product


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(db: Session, active_only: bool = True) -> List[Product]:
    query = db.query(Product)
    if active_only:
        query = query.filter(Product.active.is_(True))
    return query.order_by(Product.sku).all()


# =============================================================================
# Orders
# =============================================================================

def create_order(db: Session, data: OrderCreate) -> Order:
    order_number = data.order_number.strip()

    def _create(session: Session) -> Order:
        get_product(session, data.product_id)
        if session.query(Order).filter(Order.order_number == order_number).first():
            raise DuplicateError("Order", field="order_number", value=order_number)
        order = Order(
            order_number=order_number,
            product_id=data.product_id,
            quantity=data.quantity,
            deadline=data.deadline,
            status=OrderStatus.NEW.value,
            customer_name=data.customer_name,
            notes=data.notes,
        )
        session.add(order)
        return order

    order = run_ledger_transaction(db, _create, action="create_order")
    logger.info(f"Created order {order.order_number}", extra={"order_id": order.id})
    return order


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def list_orders(db: Session, status: Optional[str] = None) -> List[Order]:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_order_stages(db: Session, order_id: int, include_archived: bool = True) -> List[Stage]:
    get_order(db, order_id)
    query = db.query(Stage).filter(Stage.order_id == order_id)
    if not include_archived:
        query = query.filter(Stage.status != StageStatus.ARCHIVED.value)
    return query.order_by(Stage.id).all()


def order_progress(db: Session, order: Order) -> Dict:
    """
    Completion of an order, read from its final stage.

    Uses the stage flagged final, or the newest stage when none is flagged.
    Percent is capped at 100.
    """
    stages = db.query(Stage).filter(Stage.order_id == order.id).order_by(Stage.id).all()
    if not stages:
        return {"final_stage_id": None, "completed_quantity": Decimal("0"), "percent": 0}

    final = next((s for s in stages if s.is_final_stage), stages[-1])
    completed = Decimal(final.completed_quantity or 0)
    target = Decimal(order.quantity or 0)
    percent = 0
    if target > 0:
        percent = min(100, int(round(completed / target * 100)))
    return {"final_stage_id": final.id, "completed_quantity": completed, "percent": percent}


# =============================================================================
# Stages
# =============================================================================

def create_stage(db: Session, data: StageCreate) -> Stage:
    """
    Add a stage to an order.

    Title defaults to '<order number> - <name>' and the plan to the order
    quantity. An order has at most one final stage.
    """
    name = data.name.strip()
    if not name:
        raise ValidationError("Stage name is required", field="name")

    def _create(session: Session) -> Stage:
        order = get_order(session, data.order_id)

        if data.is_final_stage:
            existing = session.query(Stage).filter(
                Stage.order_id == order.id,
                Stage.is_final_stage.is_(True),
            ).first()
            if existing:
                raise ValidationError(
                    f"Order {order.order_number} already has a final stage ({existing.name})",
                    field="is_final_stage",
                )

        stage = Stage(
            order_id=order.id,
            name=name,
            title=(data.title or "").strip() or f"{order.order_number} - {name}",
            description=data.description,
            kind=StageKind(data.kind).value,
            status=StageStatus.TODO.value,
            is_final_stage=data.is_final_stage,
            planned_quantity=(data.planned_quantity if data.planned_quantity is not None
                              else order.quantity),
            deadline=data.deadline,
        )
        for sequence, item in enumerate(data.inputs, start=1):
            source_name = item.source_stage_name.strip()
            if source_name == name:
                raise ValidationError(
                    f"Stage '{name}' cannot consume its own output",
                    field="inputs",
                    value=source_name,
                )
            stage.inputs.append(StageInput(
                source_stage_name=source_name,
                ratio=item.ratio,
                sequence=sequence,
            ))
        session.add(stage)
        return stage

    stage = run_ledger_transaction(db, _create, action="create_stage")
    logger.info(f"Created stage {stage.id} ({stage.title})", extra={"stage_id": stage.id})
    return stage
