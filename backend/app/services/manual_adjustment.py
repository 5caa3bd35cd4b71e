"""
Manual stock postings by administrators.

These bypass approval: the report is created `approved` and applied at
once. They change the stage's adjusted quantity and never the pending or
completed counters, and they carry no batch consumption.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.status_config import (
    MANUAL_DEDUCTION_KINDS,
    ReportKind,
    ReportStatus,
    ScrapSource,
)
from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.models.production_report import ProductionReport
from app.models.stage import Stage
from app.services import allocation, stage_tracker, stock_posting
from app.services.ledger_transaction import run_ledger_transaction
from app.services.report_store import build_report_snapshot

logger = get_logger(__name__)


def _clean_batch_code(batch_code: Optional[str]) -> Optional[str]:
    # None keeps the posting out of downstream batch selection
    code = (batch_code or "").strip()
    return code or None


def _batch_balance(db: Session, stage_id: int, batch_code: Optional[str]) -> Decimal:
    """WIP balance of a batch group less what pending reports hold on it."""
    key = batch_code or settings.LEDGER_DEFAULT_BATCH_CODE
    return allocation.group_free(db, [stage_id]).get((stage_id, key), Decimal("0"))


def _manual_report(
    stage: Stage,
    *,
    quantity: Decimal,
    kind: ReportKind,
    admin: str,
    batch_code: Optional[str],
    notes: Optional[str],
) -> ProductionReport:
    now = datetime.utcnow()
    return ProductionReport(
        stage_id=stage.id,
        worker_id=admin or settings.LEDGER_MANUAL_USER_ID,
        report_date=date.today(),
        quantity=quantity,
        scrap_quantity=Decimal("0"),
        used_quantity=Decimal("0"),
        supply_shortfall=Decimal("0"),
        notes=notes,
        status=ReportStatus.APPROVED.value,
        kind=kind.value,
        batch_code=batch_code,
        decided_by=admin or settings.LEDGER_MANUAL_USER_ID,
        decided_at=now,
        **build_report_snapshot(stage),
    )


def post_manual_stock(
    db: Session,
    stage_id: int,
    quantity: Decimal,
    admin: Optional[str] = None,
    batch_code: Optional[str] = None,
    notes: Optional[str] = None,
) -> ProductionReport:
    """Add stock to a stage's WIP without approval."""
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Manual stock quantity must be positive", field="quantity", value=quantity)

    def _post(session: Session) -> ProductionReport:
        stage = stage_tracker.get_stage(session, stage_id)
        stage_tracker.ensure_stage_active(stage)

        report = _manual_report(
            stage,
            quantity=quantity,
            kind=ReportKind.MANUAL_STOCK,
            admin=admin,
            batch_code=_clean_batch_code(batch_code),
            notes=notes,
        )
        session.add(report)
        stage_tracker.apply_manual_posting(stage, quantity)
        return report

    report = run_ledger_transaction(db, _post, action="manual_stock")
    logger.info(
        f"Manual stock +{quantity} on stage {stage_id} by {report.worker_id}",
        extra={"report_id": report.id, "stage_id": stage_id},
    )
    return report


def post_manual_deduction(
    db: Session,
    stage_id: int,
    quantity: Decimal,
    admin: Optional[str] = None,
    kind: str = ReportKind.MANUAL_DEDUCTION.value,
    batch_code: Optional[str] = None,
    notes: Optional[str] = None,
) -> ProductionReport:
    """
    Write stock off a stage's WIP without approval.

    `quantity` is the positive amount removed; the report stores it
    negated. A `manual_defect` also records scrap right away.

    Raises:
        ValidationError: bad kind, non-positive quantity, or more than the
            batch group's balance
    """
    quantity = Decimal(quantity)
    if kind not in MANUAL_DEDUCTION_KINDS:
        raise ValidationError(
            f"Unsupported deduction kind '{kind}'",
            field="kind",
            value=kind,
        )
    if quantity <= 0:
        raise ValidationError("Deduction quantity must be positive", field="quantity", value=quantity)

    code = _clean_batch_code(batch_code)

    def _deduct(session: Session) -> ProductionReport:
        stage = stage_tracker.get_stage(session, stage_id)
        stage_tracker.ensure_stage_active(stage)

        balance = _batch_balance(session, stage.id, code)
        if quantity > balance:
            raise ValidationError(
                f"Cannot deduct {quantity}: batch '{code or settings.LEDGER_DEFAULT_BATCH_CODE}' "
                f"of stage {stage.id} has only {balance} free after pending reservations",
                field="quantity",
                value=quantity,
            )

        report = _manual_report(
            stage,
            quantity=-quantity,
            kind=ReportKind(kind),
            admin=admin,
            batch_code=code,
            notes=notes,
        )
        session.add(report)
        session.flush()
        stage_tracker.apply_manual_posting(stage, -quantity)

        if kind == ReportKind.MANUAL_DEFECT:
            stock_posting.record_scrap(
                session,
                product_id=report.product_id,
                product_name=report.product_name,
                quantity=quantity,
                reason=notes,
                stage_name=stage.name,
                worker_id=report.worker_id,
                report_id=report.id,
                source=ScrapSource.MANUAL.value,
            )
        return report

    report = run_ledger_transaction(db, _deduct, action="manual_deduction")
    logger.info(
        f"Manual {kind} -{quantity} on stage {stage_id} by {report.worker_id}",
        extra={"report_id": report.id, "stage_id": stage_id, "kind": kind},
    )
    return report
