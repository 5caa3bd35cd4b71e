"""
Test data factories for the production ledger.

Provides functions to create test entities with sensible defaults. They
flush but do not commit; tests commit their setup before calling a
service, since a failing ledger transaction rolls the session back.

Usage:
    from tests.factories import create_test_order, create_test_stage

    def test_something(db):
        order = create_test_order(db, quantity=100)
        stage = create_test_stage(db, order=order, name="Turning")
        db.commit()
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models import (
    Order,
    Product,
    ProductionReport,
    ReportConsumption,
    Stage,
    StageInput,
)


# =============================================================================
# SEQUENCE MANAGEMENT
# =============================================================================

_sequences: Dict[str, int] = {}


def reset_sequences():
    """Reset all sequences. Call between tests for predictable codes."""
    global _sequences
    _sequences = {}


def _next(name: str) -> int:
    """Get next sequence number for a given entity type."""
    _sequences[name] = _sequences.get(name, 0) + 1
    return _sequences[name]


# =============================================================================
# PLANNING FACTORIES
# =============================================================================

def create_test_product(
    db: Session,
    sku: Optional[str] = None,
    name: Optional[str] = None,
    **overrides
) -> Product:
    seq = _next("product")
    product = Product(
        sku=sku or f"PRD-{seq:04d}",
        name=name or f"Test Product {seq}",
        **overrides
    )
    db.add(product)
    db.flush()
    return product


def create_test_order(
    db: Session,
    product: Optional[Product] = None,
    quantity: Decimal = Decimal("100"),
    order_number: Optional[str] = None,
    **overrides
) -> Order:
    """Create an order, with a fresh product unless one is given."""
    if product is None:
        product = create_test_product(db)
    seq = _next("order")
    order = Order(
        order_number=order_number or f"ORD-{seq:04d}",
        product_id=product.id,
        quantity=Decimal(str(quantity)),
        status=overrides.pop("status", "new"),
        **overrides
    )
    db.add(order)
    db.flush()
    return order


def create_test_stage(
    db: Session,
    order: Order,
    name: Optional[str] = None,
    kind: str = "production",
    planned_quantity: Optional[Decimal] = None,
    is_final_stage: bool = False,
    inputs: Optional[List[Tuple[str, Decimal]]] = None,
    **overrides
) -> Stage:
    """
    Create a stage of `order`.

    Args:
        inputs: (source stage name, ratio) pairs for assembly stages
    """
    seq = _next("stage")
    name = name or f"Stage {seq}"
    stage = Stage(
        order_id=order.id,
        name=name,
        title=overrides.pop("title", f"{order.order_number} - {name}"),
        kind=kind,
        status=overrides.pop("status", "todo"),
        is_final_stage=is_final_stage,
        planned_quantity=Decimal(str(planned_quantity if planned_quantity is not None else order.quantity)),
        **overrides
    )
    for sequence, (source_name, ratio) in enumerate(inputs or [], start=1):
        stage.inputs.append(StageInput(
            source_stage_name=source_name,
            ratio=Decimal(str(ratio)),
            sequence=sequence,
        ))
    db.add(stage)
    db.flush()
    return stage


# =============================================================================
# REPORT FACTORIES
# =============================================================================

def create_test_report(
    db: Session,
    stage: Stage,
    quantity: Decimal = Decimal("10"),
    status: str = "approved",
    batch_code: Optional[str] = "-",
    kind: str = "production",
    used_quantity: Decimal = Decimal("0"),
    scrap_quantity: Decimal = Decimal("0"),
    worker_id: str = "worker-1",
    consumption: Optional[Dict[int, Decimal]] = None,
    **overrides
) -> ProductionReport:
    """
    Insert a report directly, bypassing submission and approval.

    Stage counters are not touched; use the services when counters matter.
    """
    order = stage.order
    report = ProductionReport(
        stage_id=stage.id,
        worker_id=worker_id,
        report_date=overrides.pop("report_date", date.today()),
        quantity=Decimal(str(quantity)),
        scrap_quantity=Decimal(str(scrap_quantity)),
        used_quantity=Decimal(str(used_quantity)),
        status=status,
        kind=kind,
        batch_code=batch_code,
        order_id=order.id,
        order_number=order.order_number,
        stage_name=stage.name,
        task_title=stage.title,
        product_id=order.product_id,
        product_name=order.product.name if order.product else None,
        decided_by=overrides.pop("decided_by", "approver" if status != "pending" else None),
        decided_at=overrides.pop("decided_at", datetime.utcnow() if status != "pending" else None),
        **overrides
    )
    for sequence, (source_id, qty) in enumerate((consumption or {}).items(), start=1):
        report.consumptions.append(ReportConsumption(
            source_report_id=source_id,
            sequence=sequence,
            quantity=Decimal(str(qty)),
        ))
    db.add(report)
    db.flush()
    return report


def create_assembly_route(
    db: Session,
    order_quantity: Decimal = Decimal("100"),
    ratio: Decimal = Decimal("2"),
) -> Dict[str, object]:
    """
    An order with a component stage "Parts" and a final assembly stage
    "Assembly" consuming `ratio` parts per unit.
    """
    order = create_test_order(db, quantity=order_quantity)
    parts = create_test_stage(db, order=order, name="Parts")
    assembly = create_test_stage(
        db,
        order=order,
        name="Assembly",
        is_final_stage=True,
        inputs=[("Parts", ratio)],
    )
    return {"order": order, "parts": parts, "assembly": assembly}
