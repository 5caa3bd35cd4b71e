"""
Report Store - production report records and WIP aggregation

Submission creates a `pending` report, validates the worker's batch picks
with the allocator, records the reservation rows and moves the stage's
pending counter, all in one ledger transaction.

WIP (work in progress) per stage and batch code is derived from approved
reports on every read:

    produced = sum(quantity), used = sum(used_quantity), balance = produced - used
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.status_config import ReportKind, ReportStatus, StageKind, StageStatus
from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.order import Order
from app.models.product import Product
from app.models.production_report import ProductionReport, ReportConsumption
from app.models.stage import Stage
from app.schemas.production_report import ProductionReportCreate, ProductionReportUpdate
from app.services import allocation, stage_tracker
from app.services.ledger_transaction import run_ledger_transaction

logger = get_logger(__name__)

ZERO = Decimal("0")


def normalize_batch_code(batch_code: Optional[str]) -> str:
    code = (batch_code or "").strip()
    return code or settings.LEDGER_DEFAULT_BATCH_CODE


def build_report_snapshot(stage: Stage) -> Dict:
    """
    Value copies of the stage/order/product a report belongs to.

    Reports keep these after the stage or order is deleted.
    """
    order = stage.order
    product = order.product if order else None
    return {
        "order_id": order.id if order else None,
        "order_number": order.order_number if order else None,
        "stage_name": stage.name,
        "task_title": stage.title,
        "product_id": product.id if product else None,
        "product_name": product.name if product else None,
    }


def get_report(db: Session, report_id: int) -> ProductionReport:
    report = db.get(ProductionReport, report_id)
    if not report:
        raise NotFoundError("Production report", report_id)
    return report


# =============================================================================
# Submission and edit
# =============================================================================

def _validate_quantities(stage: Stage, quantity: Decimal, scrap_quantity: Decimal) -> None:
    if quantity is None:
        raise ValidationError("Quantity is required", field="quantity")
    if scrap_quantity is not None and scrap_quantity < 0:
        raise ValidationError("Scrap quantity cannot be negative", field="scrap_quantity", value=scrap_quantity)
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative", field="quantity", value=quantity)
    if stage.kind == StageKind.PRODUCTION and quantity <= 0:
        raise ValidationError(
            "Quantity must be positive for production stages",
            field="quantity",
            value=quantity,
        )


def submit_report(
    db: Session,
    data: ProductionReportCreate,
    worker_id: str,
) -> Tuple[ProductionReport, List[allocation.SupplyShortfall]]:
    """
    Submit a worker's report for approval.

    Returns:
        (report, shortfalls). Shortfalls are non-empty when the selected
        batches cover less input than the quantity requires; an
        InsufficientSupplyWarning is emitted for them after commit.

    Raises:
        ValidationError: no stage given, bad quantities, invalid batch picks
        NotFoundError: stage or a picked batch does not exist
        InvalidStateError: stage is archived
    """
    if data.stage_id is None:
        raise ValidationError("A target stage is required", field="stage_id")

    quantity = Decimal(data.quantity) if data.quantity is not None else None
    scrap_quantity = Decimal(data.scrap_quantity or 0)
    selections = [(s.source_report_id, s.quantity) for s in data.source_batches]

    def _submit(session: Session):
        stage = stage_tracker.get_stage(session, data.stage_id)
        stage_tracker.ensure_stage_active(stage)
        _validate_quantities(stage, quantity, scrap_quantity)

        result = allocation.resolve_allocations(session, stage, quantity, selections)

        report = ProductionReport(
            stage_id=stage.id,
            worker_id=worker_id,
            report_date=data.report_date or date.today(),
            quantity=quantity,
            scrap_quantity=scrap_quantity,
            used_quantity=ZERO,
            supply_shortfall=result.total_shortfall,
            notes=data.notes,
            status=ReportStatus.PENDING.value,
            kind=(ReportKind.SIMPLE_REPORT.value if stage.kind == StageKind.SIMPLE
                  else ReportKind.PRODUCTION.value),
            batch_code=normalize_batch_code(data.batch_code),
            **build_report_snapshot(stage),
        )
        for sequence, item in enumerate(result.allocations, start=1):
            report.consumptions.append(ReportConsumption(
                source_report_id=item.source_report_id,
                source_stage_name=item.source_stage_name,
                sequence=sequence,
                quantity=item.quantity,
            ))
        session.add(report)

        stage_tracker.add_pending(stage, quantity)
        return report, stage, result.shortfalls

    report, stage, shortfalls = run_ledger_transaction(db, _submit, action="submit_report")

    logger.info(
        f"Report {report.id} submitted on stage {stage.id}: {report.quantity} "
        f"(batch {report.batch_code}) by {worker_id}",
        extra={"report_id": report.id, "stage_id": stage.id, "worker_id": worker_id},
    )
    allocation.warn_shortfall(stage, shortfalls)
    return report, shortfalls


def update_pending_report(db: Session, report_id: int, data: ProductionReportUpdate) -> ProductionReport:
    """
    Correct a pending report before approval.

    Status is unchanged. The stage's pending counter follows the quantity
    change so a later rejection restores the pre-submission value.
    Reservations recorded at submission are kept as they are.
    """
    def _update(session: Session) -> ProductionReport:
        report = get_report(session, report_id)
        if report.status != ReportStatus.PENDING:
            raise InvalidStateError(
                f"Only pending reports can be edited; report {report_id} is {report.status}",
                current_state=report.status,
                allowed_states=[ReportStatus.PENDING.value],
            )

        stage = session.get(Stage, report.stage_id) if report.stage_id else None
        old_quantity = Decimal(report.quantity)
        new_quantity = Decimal(data.quantity) if data.quantity is not None else old_quantity
        new_scrap = (Decimal(data.scrap_quantity) if data.scrap_quantity is not None
                     else Decimal(report.scrap_quantity or 0))

        if stage is not None:
            _validate_quantities(stage, new_quantity, new_scrap)
        elif new_quantity < 0 or new_scrap < 0:
            raise ValidationError("Quantities cannot be negative", field="quantity")

        report.quantity = new_quantity
        report.scrap_quantity = new_scrap
        if data.notes is not None:
            report.notes = data.notes

        delta = new_quantity - old_quantity
        if stage is not None and delta != 0:
            stage_tracker.adjust_pending(stage, delta)
        return report

    report = run_ledger_transaction(db, _update, action="update_report")
    logger.info(f"Pending report {report.id} edited", extra={"report_id": report.id})
    return report


# =============================================================================
# Reads
# =============================================================================

def _contains_pattern(text: str) -> str:
    """LIKE pattern matching `text` literally anywhere (backslash escapes)."""
    escaped = text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_reports(
    db: Session,
    status: Optional[str] = None,
    stage_id: Optional[int] = None,
    worker_id: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[ProductionReport]:
    """Report history, newest first."""
    query = db.query(ProductionReport)

    if status:
        query = query.filter(ProductionReport.status == status)
    if stage_id is not None:
        query = query.filter(ProductionReport.stage_id == stage_id)
    if worker_id:
        query = query.filter(ProductionReport.worker_id == worker_id)
    if date_from:
        query = query.filter(ProductionReport.report_date >= date_from)
    if date_to:
        query = query.filter(ProductionReport.report_date <= date_to)
    if search:
        pattern = _contains_pattern(search)
        query = query.filter(or_(
            ProductionReport.stage_name.ilike(pattern, escape="\\"),
            ProductionReport.task_title.ilike(pattern, escape="\\"),
            ProductionReport.order_number.ilike(pattern, escape="\\"),
            ProductionReport.batch_code.ilike(pattern, escape="\\"),
            ProductionReport.product_name.ilike(pattern, escape="\\"),
        ))

    return (
        query.order_by(ProductionReport.report_date.desc(), ProductionReport.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def list_pending_reports(db: Session) -> List[ProductionReport]:
    """Approver queue, oldest first."""
    return (
        db.query(ProductionReport)
        .filter(ProductionReport.status == ReportStatus.PENDING.value)
        .order_by(ProductionReport.created_at, ProductionReport.id)
        .all()
    )


def _batch_key():
    return func.coalesce(ProductionReport.batch_code, settings.LEDGER_DEFAULT_BATCH_CODE)


def _aggregate_rows(db: Session, stage_ids: List[int]) -> Dict[int, List[Dict]]:
    if not stage_ids:
        return {}

    batch_key = _batch_key().label("batch_group")
    rows = (
        db.query(
            ProductionReport.stage_id,
            batch_key,
            func.coalesce(func.sum(ProductionReport.quantity), 0),
            func.coalesce(func.sum(ProductionReport.used_quantity), 0),
            func.count(ProductionReport.id),
        )
        .filter(
            ProductionReport.stage_id.in_(stage_ids),
            ProductionReport.status == ReportStatus.APPROVED.value,
        )
        .group_by(ProductionReport.stage_id, batch_key)
        .order_by(ProductionReport.stage_id, batch_key)
        .all()
    )

    grouped: Dict[int, List[Dict]] = {}
    for stage_id, batch_code, produced, used, count in rows:
        produced = Decimal(str(produced))
        used = Decimal(str(used))
        grouped.setdefault(stage_id, []).append({
            "batch_code": batch_code,
            "produced": produced,
            "used": used,
            "balance": produced - used,
            "report_count": count,
        })
    return grouped


def aggregate_stage(db: Session, stage_id: int) -> List[Dict]:
    """
    WIP of one stage per batch code over approved reports.

    Manual postings take part (deductions are negative). A stage with no
    approved reports yields an empty list.
    """
    stage_tracker.get_stage(db, stage_id)
    return _aggregate_rows(db, [stage_id]).get(stage_id, [])


def wip_overview(db: Session, search: Optional[str] = None) -> List[Dict]:
    """
    WIP rows for every non-archived production stage.

    Stages with no approved output show one `-` row of zeros. `search`
    matches order number, product name, stage title or batch code,
    case-insensitively.
    """
    stages = (
        db.query(Stage)
        .join(Order, Order.id == Stage.order_id)
        .outerjoin(Product, Product.id == Order.product_id)
        .filter(
            Stage.status != StageStatus.ARCHIVED.value,
            Stage.kind == StageKind.PRODUCTION.value,
        )
        .order_by(Order.order_number, Stage.id)
        .all()
    )
    aggregates = _aggregate_rows(db, [s.id for s in stages])
    needle = (search or "").strip().lower()

    overview = []
    for stage in stages:
        order = stage.order
        product_name = order.product.name if order and order.product else None
        rows = aggregates.get(stage.id) or [{
            "batch_code": settings.LEDGER_DEFAULT_BATCH_CODE,
            "produced": ZERO,
            "used": ZERO,
            "balance": ZERO,
            "report_count": 0,
        }]
        for row in rows:
            entry = {
                "stage_id": stage.id,
                "stage_name": stage.name,
                "stage_title": stage.title,
                "order_id": stage.order_id,
                "order_number": order.order_number if order else None,
                "product_name": product_name,
                **row,
            }
            if needle and not any(
                needle in (value or "").lower()
                for value in (entry["order_number"], product_name, stage.title, row["batch_code"])
            ):
                continue
            overview.append(entry)
    return overview
