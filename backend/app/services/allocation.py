"""
Consumption Allocator

Answers two questions for an assembly stage:
1. Which approved upstream batches can this report draw from, and how
   much of each is still free? (draft-time view, `plan_consumption`)
2. Is the worker's selection of batches valid, and how short is it?
   (`resolve_allocations`, run inside the submission transaction)

Availability of a batch:

    available_now = quantity - used_quantity - pending_reserved

capped by the free quantity of the batch group the report belongs to (same
stage and batch code). Manual deductions post negative reports into a
group, so a write-off lowers what every report of that group can still
give.

`pending_reserved` is recomputed from pending reports on every read; no
reservation is ever stored on the upstream batch itself. Two workers can
therefore see the same availability at draft time. The approval debit
(`approval.debit_source_batches`) is the authoritative one.
"""
import warnings
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, aliased

from app.core.config import settings
from app.core.status_config import MANUAL_REPORT_KINDS, ReportStatus
from app.exceptions import InsufficientSupplyWarning, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.production_report import ProductionReport, ReportConsumption
from app.models.stage import Stage, StageInput
from app.services.stage_tracker import get_stage

logger = get_logger(__name__)

ZERO = Decimal("0")


# =============================================================================
# Result types
# =============================================================================

@dataclass
class CandidateBatch:
    """An approved upstream batch with free quantity"""
    report_id: int
    batch_code: Optional[str]
    stage_name: Optional[str]
    report_date: Optional[object]
    quantity: Decimal
    used_quantity: Decimal
    reserved: Decimal
    available_now: Decimal


@dataclass
class RequirementPlan:
    """One input requirement of an assembly stage for a given output quantity"""
    source_stage_name: str
    ratio: Decimal
    total_needed: Decimal
    total_available: Decimal
    candidates: List[CandidateBatch] = field(default_factory=list)


@dataclass
class SupplyShortfall:
    source_stage_name: str
    total_needed: Decimal
    selected: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.total_needed - self.selected

    def to_dict(self) -> dict:
        return {
            "source_stage_name": self.source_stage_name,
            "total_needed": float(self.total_needed),
            "selected": float(self.selected),
            "shortfall": float(self.shortfall),
        }


@dataclass
class Allocation:
    source_report_id: int
    source_stage_name: str
    quantity: Decimal


@dataclass
class AllocationResult:
    allocations: List[Allocation] = field(default_factory=list)
    shortfalls: List[SupplyShortfall] = field(default_factory=list)

    @property
    def source_consumption(self) -> Dict[int, Decimal]:
        return {a.source_report_id: a.quantity for a in self.allocations}

    @property
    def total_shortfall(self) -> Decimal:
        return sum((s.shortfall for s in self.shortfalls), ZERO)


# =============================================================================
# Reservation and availability
# =============================================================================

def pending_reserved(db: Session, batch_ids: Iterable[int]) -> Dict[int, Decimal]:
    """
    Sum of quantities that pending reports reserve from each batch.

    Pure read. Batches nobody reserves are absent from the result.
    """
    ids = list(set(batch_ids))
    if not ids:
        return {}

    rows = (
        db.query(
            ReportConsumption.source_report_id,
            func.coalesce(func.sum(ReportConsumption.quantity), 0),
        )
        .join(ProductionReport, ProductionReport.id == ReportConsumption.report_id)
        .filter(
            ReportConsumption.source_report_id.in_(ids),
            ProductionReport.status == ReportStatus.PENDING.value,
        )
        .group_by(ReportConsumption.source_report_id)
        .all()
    )
    return {source_id: Decimal(str(total)) for source_id, total in rows}


def available_now(batch: ProductionReport, reserved: Decimal = ZERO) -> Decimal:
    """Free quantity of a batch right now."""
    return Decimal(batch.quantity or 0) - Decimal(batch.used_quantity or 0) - reserved


def batch_group_key(report: ProductionReport) -> Tuple[Optional[int], str]:
    """(stage id, batch code) a report's WIP is aggregated under."""
    return report.stage_id, report.batch_code or settings.LEDGER_DEFAULT_BATCH_CODE


def group_free(db: Session, stage_ids: Iterable[Optional[int]]) -> Dict[Tuple[int, str], Decimal]:
    """
    Free quantity per batch group of the given stages.

        free = sum(quantity) - sum(used_quantity) - pending_reserved

    over the group's approved reports, manual postings included. Pure read.
    """
    ids = list({i for i in stage_ids if i is not None})
    if not ids:
        return {}

    batch_key = func.coalesce(
        ProductionReport.batch_code, settings.LEDGER_DEFAULT_BATCH_CODE
    ).label("batch_group")
    totals = (
        db.query(
            ProductionReport.stage_id,
            batch_key,
            func.coalesce(func.sum(ProductionReport.quantity), 0),
            func.coalesce(func.sum(ProductionReport.used_quantity), 0),
        )
        .filter(
            ProductionReport.stage_id.in_(ids),
            ProductionReport.status == ReportStatus.APPROVED.value,
        )
        .group_by(ProductionReport.stage_id, batch_key)
        .all()
    )
    free = {
        (stage_id, code): Decimal(str(produced)) - Decimal(str(used))
        for stage_id, code, produced, used in totals
    }

    source = aliased(ProductionReport)
    claimant = aliased(ProductionReport)
    source_key = func.coalesce(source.batch_code, settings.LEDGER_DEFAULT_BATCH_CODE).label("batch_group")
    held = (
        db.query(
            source.stage_id,
            source_key,
            func.coalesce(func.sum(ReportConsumption.quantity), 0),
        )
        .join(source, source.id == ReportConsumption.source_report_id)
        .join(claimant, claimant.id == ReportConsumption.report_id)
        .filter(
            source.stage_id.in_(ids),
            claimant.status == ReportStatus.PENDING.value,
        )
        .group_by(source.stage_id, source_key)
        .all()
    )
    for stage_id, code, reserved in held:
        key = (stage_id, code)
        free[key] = free.get(key, ZERO) - Decimal(str(reserved))
    return free


def _capped_free(
    report: ProductionReport,
    reserved: Decimal,
    groups: Dict[Tuple[int, str], Decimal],
) -> Decimal:
    own = available_now(report, reserved)
    if report.stage_id is None:
        # Stage deleted: the group can no longer be aggregated
        return own
    return min(own, groups.get(batch_group_key(report), ZERO))


def is_consumable_source(report: ProductionReport) -> bool:
    """
    Can downstream reports draw from this report?

    Only approved reports. Manual postings count only when they were given
    an explicit batch code; an unlabelled stock correction is not a batch.
    """
    if report.status != ReportStatus.APPROVED:
        return False
    if report.kind in MANUAL_REPORT_KINDS:
        return bool(report.batch_code)
    return True


def _stage_name_matches(report: ProductionReport, source_stage_name: str) -> bool:
    return (report.stage_name or "").strip() == (source_stage_name or "").strip()


def find_candidate_batches(
    db: Session,
    order_id: int,
    source_stage_name: str,
) -> List[CandidateBatch]:
    """
    Approved batches of `order_id` produced by the stage named
    `source_stage_name` that still have free quantity, oldest first.
    """
    name = (source_stage_name or "").strip()
    reports = (
        db.query(ProductionReport)
        .filter(
            ProductionReport.order_id == order_id,
            ProductionReport.status == ReportStatus.APPROVED.value,
        )
        .order_by(ProductionReport.report_date, ProductionReport.id)
        .all()
    )
    reports = [r for r in reports if _stage_name_matches(r, name) and is_consumable_source(r)]
    reserved = pending_reserved(db, [r.id for r in reports])
    groups = group_free(db, [r.stage_id for r in reports])

    candidates = []
    for report in reports:
        held = reserved.get(report.id, ZERO)
        free = _capped_free(report, held, groups)
        if free <= 0:
            continue
        if report.stage_id is not None:
            groups[batch_group_key(report)] -= free
        candidates.append(CandidateBatch(
            report_id=report.id,
            batch_code=report.batch_code,
            stage_name=report.stage_name,
            report_date=report.report_date,
            quantity=Decimal(report.quantity),
            used_quantity=Decimal(report.used_quantity or 0),
            reserved=held,
            available_now=free,
        ))
    return candidates


def plan_consumption(db: Session, stage_id: int, quantity: Decimal) -> List[RequirementPlan]:
    """
    Draft-time view: what producing `quantity` on this stage needs, and the
    batches it could draw from. Read-only.
    """
    if quantity is None or quantity < 0:
        raise ValidationError("Quantity must not be negative", field="quantity", value=quantity)

    stage = get_stage(db, stage_id)
    plans = []
    for requirement in stage.inputs:
        candidates = find_candidate_batches(db, stage.order_id, requirement.source_stage_name)
        plans.append(RequirementPlan(
            source_stage_name=requirement.source_stage_name,
            ratio=Decimal(requirement.ratio),
            total_needed=Decimal(quantity) * Decimal(requirement.ratio),
            total_available=sum((c.available_now for c in candidates), ZERO),
            candidates=candidates,
        ))
    return plans


# =============================================================================
# Selection validation
# =============================================================================

def _match_requirement(
    requirements: Sequence[StageInput],
    remaining: Dict[int, Decimal],
    batch: ProductionReport,
) -> Optional[StageInput]:
    matches = [r for r in requirements if _stage_name_matches(batch, r.source_stage_name)]
    if not matches:
        return None
    for requirement in matches:
        if remaining[requirement.id] > 0:
            return requirement
    return matches[0]


def resolve_allocations(
    db: Session,
    stage: Stage,
    quantity: Decimal,
    selections: Sequence[Tuple[int, Optional[Decimal]]],
) -> AllocationResult:
    """
    Validate a worker's batch picks for a report of `quantity` on `stage`.

    Each selection is (upstream report id, quantity or None). Picks are
    applied in order; a pick without a quantity draws
    min(available_now, remaining_needed).

    Raises:
        NotFoundError: picked batch does not exist
        ValidationError: pick is invalid, or the selection falls short and
            LEDGER_ALLOW_UNDER_ALLOCATION is off

    Under-allocation is otherwise permitted: the shortfalls are logged and
    returned, and the caller emits InsufficientSupplyWarning once the report
    is committed.
    """
    requirements = list(stage.inputs)
    selections = list(selections or [])

    if not requirements:
        if selections:
            raise ValidationError(
                f"Stage '{stage.name}' has no input requirements; batch selection is not allowed",
                field="source_batches",
            )
        return AllocationResult()

    seen = set()
    for source_id, _ in selections:
        if source_id in seen:
            raise ValidationError(
                f"Batch {source_id} selected more than once",
                field="source_batches",
                value=source_id,
            )
        seen.add(source_id)

    needed = {r.id: Decimal(quantity) * Decimal(r.ratio) for r in requirements}
    remaining = dict(needed)
    reserved = pending_reserved(db, seen)
    groups: Dict[Tuple[int, str], Decimal] = {}
    loaded_stages = set()
    result = AllocationResult()

    for source_id, requested in selections:
        batch = db.get(ProductionReport, source_id)
        if not batch:
            raise NotFoundError("Production report", source_id)
        if not is_consumable_source(batch):
            raise ValidationError(
                f"Batch {source_id} is not an approved batch",
                field="source_batches",
                value=source_id,
            )
        if batch.order_id != stage.order_id:
            raise ValidationError(
                f"Batch {source_id} belongs to another order",
                field="source_batches",
                value=source_id,
            )

        requirement = _match_requirement(requirements, remaining, batch)
        if requirement is None:
            raise ValidationError(
                f"Batch {source_id} ({batch.stage_name}) does not match any input of stage '{stage.name}'",
                field="source_batches",
                value=source_id,
            )

        if batch.stage_id is not None and batch.stage_id not in loaded_stages:
            groups.update(group_free(db, [batch.stage_id]))
            loaded_stages.add(batch.stage_id)
        free = _capped_free(batch, reserved.get(batch.id, ZERO), groups)
        limit = min(free, remaining[requirement.id])

        if requested is None:
            draw = limit
            if draw <= 0:
                raise ValidationError(
                    f"Nothing left to draw from batch {source_id}",
                    field="source_batches",
                    value=source_id,
                )
        else:
            draw = Decimal(requested)
            if draw <= 0:
                raise ValidationError(
                    f"Quantity drawn from batch {source_id} must be positive",
                    field="source_batches",
                    value=draw,
                )
            if draw > limit:
                raise ValidationError(
                    f"Cannot draw {draw} from batch {source_id}: at most {max(limit, ZERO)} allowed "
                    f"(available {free}, still needed {remaining[requirement.id]})",
                    field="source_batches",
                    value=draw,
                )

        remaining[requirement.id] -= draw
        if batch.stage_id is not None:
            groups[batch_group_key(batch)] -= draw
        result.allocations.append(Allocation(
            source_report_id=batch.id,
            source_stage_name=requirement.source_stage_name,
            quantity=draw,
        ))

    for requirement in requirements:
        if remaining[requirement.id] > 0:
            result.shortfalls.append(SupplyShortfall(
                source_stage_name=requirement.source_stage_name,
                total_needed=needed[requirement.id],
                selected=needed[requirement.id] - remaining[requirement.id],
            ))

    if result.shortfalls:
        detail = [s.to_dict() for s in result.shortfalls]
        if not settings.LEDGER_ALLOW_UNDER_ALLOCATION:
            raise ValidationError(
                f"Selected batches cover {result.total_shortfall} fewer units than required",
                field="source_batches",
                details={"shortfalls": detail},
            )
        logger.warning(
            f"Under-allocation on stage {stage.id}: short by {result.total_shortfall}",
            extra={"stage_id": stage.id, "shortfalls": detail},
        )

    return result


def warn_shortfall(stage: Stage, shortfalls: List[SupplyShortfall]) -> None:
    """Emit InsufficientSupplyWarning for a submitted under-allocated report."""
    if not shortfalls:
        return
    detail = [s.to_dict() for s in shortfalls]
    names = ", ".join(s.source_stage_name for s in shortfalls)
    warnings.warn(
        InsufficientSupplyWarning(
            f"Report on stage '{stage.name}' is short of input from: {names}",
            detail,
        ),
        stacklevel=3,
    )
