"""
Stage Tracker - per-stage cumulative counters

Counter rules:
- submission:   pending += quantity
- edit:         pending += new quantity - old quantity
- approval:     completed += quantity, pending -= quantity, scrap += scrap
- rejection:    pending -= quantity
- manual post:  adjusted += quantity (signed); pending/completed untouched

The helpers here only mutate the Stage object. They never commit: callers
run them inside `run_ledger_transaction` together with the report change
that caused them.
"""
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.status_config import StageStatus
from app.exceptions import InvalidStateError, NotFoundError
from app.logging_config import get_logger
from app.models.stage import Stage
from app.services.ledger_transaction import run_ledger_transaction

logger = get_logger(__name__)


def get_stage(db: Session, stage_id: int) -> Stage:
    """Get a stage or raise NotFoundError."""
    stage = db.get(Stage, stage_id)
    if not stage:
        raise NotFoundError("Stage", stage_id)
    return stage


def derive_stage_status(stage: Stage) -> str:
    """
    Status after an approval.

    done once completed reaches a positive plan, otherwise in_progress.
    Archived stages stay archived.
    """
    if stage.status == StageStatus.ARCHIVED:
        return StageStatus.ARCHIVED.value

    planned = Decimal(stage.planned_quantity or 0)
    completed = Decimal(stage.completed_quantity or 0)
    if planned > 0 and completed >= planned:
        return StageStatus.DONE.value
    return StageStatus.IN_PROGRESS.value


def add_pending(stage: Stage, quantity: Decimal) -> None:
    """Count a newly submitted report as pending work."""
    stage.pending_quantity = Decimal(stage.pending_quantity or 0) + quantity
    if stage.status == StageStatus.TODO:
        stage.status = StageStatus.IN_PROGRESS.value


def adjust_pending(stage: Stage, delta: Decimal) -> None:
    """Move the pending counter after a pending report was edited."""
    stage.pending_quantity = Decimal(stage.pending_quantity or 0) + delta


def release_pending(stage: Stage, quantity: Decimal) -> None:
    """Drop a rejected report from pending work."""
    stage.pending_quantity = Decimal(stage.pending_quantity or 0) - quantity


def apply_approval(stage: Stage, quantity: Decimal, scrap_quantity: Decimal) -> None:
    """Move an approved report's quantity from pending to completed."""
    stage.completed_quantity = Decimal(stage.completed_quantity or 0) + quantity
    stage.pending_quantity = Decimal(stage.pending_quantity or 0) - quantity
    stage.scrap_quantity = Decimal(stage.scrap_quantity or 0) + scrap_quantity
    stage.status = derive_stage_status(stage)


def apply_manual_posting(stage: Stage, quantity: Decimal) -> None:
    """Record an administrator's stock correction (signed)."""
    stage.adjusted_quantity = Decimal(stage.adjusted_quantity or 0) + quantity


def ensure_stage_active(stage: Stage) -> None:
    """Archived stages accept no new reports or postings."""
    if stage.status == StageStatus.ARCHIVED:
        raise InvalidStateError(
            f"Stage {stage.id} is archived",
            current_state=stage.status,
            allowed_states=[
                StageStatus.TODO.value,
                StageStatus.IN_PROGRESS.value,
                StageStatus.DONE.value,
            ],
        )


def archive_stage(db: Session, stage_id: int) -> Stage:
    """
    Archive a stage.

    Hides the stage from the WIP overview. Counters, reports and batch
    usage stay exactly as they are.
    """
    def _archive(session: Session) -> Stage:
        stage = get_stage(session, stage_id)
        if stage.status == StageStatus.ARCHIVED:
            raise InvalidStateError(
                f"Stage {stage_id} is already archived",
                current_state=stage.status,
            )
        stage.status = StageStatus.ARCHIVED.value
        return stage

    stage = run_ledger_transaction(db, _archive, action="archive_stage")
    logger.info(f"Archived stage {stage.id} ({stage.title})", extra={"stage_id": stage.id})
    return stage
