"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
production reports and stages. Report decisions are validated against
these tables so a terminal report can never be decided twice.
"""
from enum import Enum
from typing import Dict, List, Set


# =============================================================================
# Production Report Status
# =============================================================================

class ReportStatus(str, Enum):
    """Valid status values for production reports"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REPORT_TRANSITIONS: Dict[str, Set[str]] = {
    ReportStatus.PENDING: {
        ReportStatus.APPROVED,
        ReportStatus.REJECTED,
    },
    ReportStatus.APPROVED: set(),  # Terminal
    ReportStatus.REJECTED: set(),  # Terminal
}


def get_allowed_report_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a report"""
    return [s.value for s in REPORT_TRANSITIONS.get(current_status, set())]


def is_valid_report_transition(current_status: str, new_status: str) -> bool:
    """Check if a report status transition is valid (no-op transitions are not)"""
    allowed = REPORT_TRANSITIONS.get(current_status, set())
    return new_status in allowed


# =============================================================================
# Production Report Kind
# =============================================================================

class ReportKind(str, Enum):
    """What a report records"""
    PRODUCTION = "production"
    SIMPLE_REPORT = "simple_report"
    MANUAL_STOCK = "manual_stock"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    MANUAL_DEDUCTION = "manual_deduction"
    MANUAL_DEFECT = "manual_defect"


# Administrator postings: created approved, never go through approval,
# never carry source consumption
MANUAL_REPORT_KINDS: Set[str] = {
    ReportKind.MANUAL_STOCK.value,
    ReportKind.MANUAL_ADJUSTMENT.value,
    ReportKind.MANUAL_DEDUCTION.value,
    ReportKind.MANUAL_DEFECT.value,
}

MANUAL_DEDUCTION_KINDS: Set[str] = {
    ReportKind.MANUAL_ADJUSTMENT.value,
    ReportKind.MANUAL_DEDUCTION.value,
    ReportKind.MANUAL_DEFECT.value,
}


# =============================================================================
# Stage (Task) Status and Kind
# =============================================================================

class StageStatus(str, Enum):
    """Valid status values for order stages"""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ARCHIVED = "archived"



class StageKind(str, Enum):
    """Stages that track produced quantity vs. plain checklist stages"""
    PRODUCTION = "production"
    SIMPLE = "simple"


# =============================================================================
# Order Status
# =============================================================================

class OrderStatus(str, Enum):
    """Order status values set by planning"""
    NEW = "new"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DONE = "done"
    CANCELED = "canceled"


# =============================================================================
# Scrap Record Source
# =============================================================================

class ScrapSource(str, Enum):
    """Where a scrap record came from"""
    APPROVAL = "approval"
    MANUAL = "manual"
