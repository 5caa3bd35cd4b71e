"""
Approval Transaction

Turns a pending report into durable ledger state in one atomic unit:

1. report -> approved (decided_by / decided_at stamped)
2. stage counters: completed += quantity, pending -= quantity, scrap += scrap
3. upstream batches: used_quantity += debited for every reservation row
4. final stage: finished-goods stock += quantity
5. scrap > 0: scrap record with the report note and stage name

Any failure rolls back all five steps and leaves the report `pending`.
Rejection only releases the stage's pending counter.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.core.status_config import (
    ReportStatus,
    ScrapSource,
    get_allowed_report_transitions,
    is_valid_report_transition,
)
from app.exceptions import InvalidStateError, NotFoundError
from app.logging_config import get_logger
from app.models.production_report import ProductionReport
from app.models.stage import Stage
from app.services import stage_tracker, stock_posting
from app.services.ledger_transaction import run_ledger_transaction
from app.services.report_store import get_report

logger = get_logger(__name__)

ZERO = Decimal("0")


def _ensure_transition(report: ProductionReport, new_status: ReportStatus) -> None:
    if not is_valid_report_transition(report.status, new_status):
        raise InvalidStateError(
            f"Report {report.id} is already {report.status}",
            current_state=report.status,
            allowed_states=get_allowed_report_transitions(report.status),
        )


def debit_source_batches(db: Session, report: ProductionReport) -> List[Tuple[int, Decimal]]:
    """
    Add the report's reservations to its upstream batches' used_quantity.

    The debit is min(reserved, quantity - used_quantity) of the upstream
    batch. A reservation that another approval already exhausted is clamped
    and logged; used_quantity never exceeds quantity.

    Raises:
        NotFoundError: an upstream batch no longer exists
    """
    debits = []
    for consumption in report.consumptions:
        batch = db.get(ProductionReport, consumption.source_report_id)
        if not batch:
            raise NotFoundError("Upstream batch", consumption.source_report_id)

        reserved = Decimal(consumption.quantity)
        used = Decimal(batch.used_quantity or 0)
        room = max(Decimal(batch.quantity) - used, ZERO)
        debit = min(reserved, room)

        if debit < reserved:
            logger.warning(
                f"Report {report.id}: batch {batch.id} has only {room} left, "
                f"debiting {debit} of the {reserved} reserved",
                extra={"report_id": report.id, "source_report_id": batch.id},
            )

        batch.used_quantity = used + debit
        consumption.quantity_debited = debit
        debits.append((batch.id, debit))
    return debits


def approve_report(db: Session, report_id: int, approver: str) -> ProductionReport:
    """
    Approve a pending report.

    Raises:
        NotFoundError: report, its stage or an upstream batch is missing
        InvalidStateError: report was already decided
        TransactionAbortError: concurrent modification or failed commit;
            nothing was applied and the approval may be retried
    """
    def _approve(session: Session) -> ProductionReport:
        report = get_report(session, report_id)
        _ensure_transition(report, ReportStatus.APPROVED)

        stage = session.get(Stage, report.stage_id) if report.stage_id else None
        if not stage:
            raise NotFoundError("Stage", report.stage_id)

        quantity = Decimal(report.quantity)
        scrap_quantity = Decimal(report.scrap_quantity or 0)

        report.status = ReportStatus.APPROVED.value
        report.decided_by = approver
        report.decided_at = datetime.utcnow()

        stage_tracker.apply_approval(stage, quantity, scrap_quantity)
        debit_source_batches(session, report)

        order = stage.order
        product_id = order.product_id if order else report.product_id
        product_name = (order.product.name if order and order.product else report.product_name)

        if stage.is_final_stage:
            stock_posting.post_finished_goods(session, product_id, quantity)

        if scrap_quantity > 0:
            stock_posting.record_scrap(
                session,
                product_id=product_id,
                product_name=product_name,
                quantity=scrap_quantity,
                reason=report.notes,
                stage_name=stage.name,
                worker_id=report.worker_id,
                report_id=report.id,
                source=ScrapSource.APPROVAL.value,
            )
        return report

    report = run_ledger_transaction(db, _approve, action="approve_report")
    logger.info(
        f"Report {report.id} approved by {approver}: {report.quantity} on stage {report.stage_id}",
        extra={"report_id": report.id, "stage_id": report.stage_id, "approver": approver},
    )
    return report


def reject_report(db: Session, report_id: int, approver: str) -> ProductionReport:
    """
    Reject a pending report.

    Releases the stage's pending counter. No stock, scrap or batch effects.
    A report whose stage was deleted is still rejected.
    """
    def _reject(session: Session) -> ProductionReport:
        report = get_report(session, report_id)
        _ensure_transition(report, ReportStatus.REJECTED)

        stage = session.get(Stage, report.stage_id) if report.stage_id else None
        if stage:
            stage_tracker.release_pending(stage, Decimal(report.quantity))
        else:
            logger.warning(
                f"Report {report.id} rejected but its stage no longer exists",
                extra={"report_id": report.id},
            )

        report.status = ReportStatus.REJECTED.value
        report.decided_by = approver
        report.decided_at = datetime.utcnow()
        return report

    report = run_ledger_transaction(db, _reject, action="reject_report")
    logger.info(
        f"Report {report.id} rejected by {approver}",
        extra={"report_id": report.id, "stage_id": report.stage_id, "approver": approver},
    )
    return report
