"""
Ledger Transaction - the single commit primitive for ledger mutations

Every write path (submission, edit, approval, rejection, manual postings,
archival, planning records) hands a closure to `run_ledger_transaction`.
The closure mutates ORM objects on the session; nothing it does is visible
to other sessions until the one commit here succeeds.

Guarantees:
1. All-or-nothing: any exception rolls the whole unit back
2. Compare-and-swap: stages, reports and stock rows carry a version
   counter (SQLAlchemy version_id_col); a concurrent writer on the same row
   surfaces as StaleDataError and is reported as TransactionAbortError
3. Domain errors (ValidationError, NotFoundError, ...) propagate unchanged

Usage:
    def _approve(session):
        report = session.get(ProductionReport, report_id)
        ...
        return report

    report = run_ledger_transaction(db, _approve, action="approve_report")
"""
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import LedgerException, TransactionAbortError
from app.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_ledger_transaction(
    db: Session,
    work: Callable[[Session], T],
    *,
    action: str,
) -> T:
    """
    Apply `work` atomically and commit.

    Args:
        db: Database session (must not hold uncommitted unrelated changes)
        work: Closure performing the state transition; receives the session
        action: Short name used in logs and error details

    Returns:
        Whatever `work` returns

    Raises:
        TransactionAbortError: Concurrent modification or failed commit
        LedgerException: Re-raised from `work` after rollback
    """
    try:
        result = work(db)
        db.flush()
        db.commit()
    except LedgerException:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        logger.warning(
            f"{action}: concurrent modification detected, transaction rolled back",
            extra={"action": action},
        )
        raise TransactionAbortError(
            "Record was modified by another user; retry the operation",
            action=action,
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"{action}: commit failed, transaction rolled back: {e}",
            extra={"action": action},
        )
        raise TransactionAbortError(
            action=action,
            details={"reason": e.__class__.__name__},
        ) from e
    except Exception:
        db.rollback()
        raise

    return result
