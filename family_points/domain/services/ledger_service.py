"""
Ledger store: the only code path that changes a child's point balance.

Callers run these functions inside a unit of work; nothing here commits.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from family_points.data.models import Child, LedgerEntry
from family_points.data.repos import children_repo, ledger_repo
from family_points.domain.errors import (
    ChildNotFoundError,
    DuplicateApplicationError,
    InsufficientBalanceError,
)
from family_points.domain.services import events

logger = logging.getLogger(__name__)


def apply_delta(
    session: Session,
    child_id: int,
    delta: int,
    event_id: str,
    source: str,
    allow_negative: bool = False,
) -> int:
    """
    Apply ``delta`` to the child's balance exactly once for ``event_id``.

    The ledger entry insert and the conditional balance update share the
    caller's transaction, so either both land or neither does.

    Returns:
        The balance after the change.

    Raises:
        DuplicateApplicationError: ``event_id`` already has a ledger entry
        InsufficientBalanceError: a debit would go below zero and ``allow_negative`` is False
        ChildNotFoundError: the child does not exist
    """
    if ledger_repo.get_entry(session, event_id) is not None:
        raise DuplicateApplicationError(f"Event {event_id} has already been applied.")
    if children_repo.read_balance(session, child_id) is None:
        raise ChildNotFoundError()

    entry = LedgerEntry(event_id=event_id, child_id=child_id, delta=delta, source=source)
    try:
        ledger_repo.insert_entry(session, entry)
    except IntegrityError as exc:
        # Lost a race with another writer using the same key.
        raise DuplicateApplicationError(f"Event {event_id} has already been applied.") from exc

    if not ledger_repo.add_to_balance(session, child_id, delta, allow_negative):
        raise InsufficientBalanceError()

    child = session.get(Child, child_id, populate_existing=True)
    entry.balance_after = child.total_points
    session.flush()

    logger.info("Applied %+d to child %s for %s event %s", delta, child_id, source, event_id)
    events.queue_notification(
        session,
        events.BalanceChanged(
            child_id=child_id,
            event_id=event_id,
            delta=delta,
            balance=child.total_points,
            source=source,
        ),
    )
    return child.total_points


def is_applied(session: Session, event_id: str) -> bool:
    return ledger_repo.get_entry(session, event_id) is not None


def get_balance(session: Session, child_id: int) -> int:
    balance = children_repo.read_balance(session, child_id)
    if balance is None:
        raise ChildNotFoundError()
    return balance


def ledger_history(session: Session, child_id: int, limit: int = 50) -> List[LedgerEntry]:
    return ledger_repo.list_entries(session, child_id, limit)


def audit_balances(session: Session, family_id: Optional[int] = None) -> List[Dict]:
    """
    Compare each stored balance with the sum of its ledger entries.

    Returns:
        One dict per child whose stored balance disagrees with the ledger.
    """
    discrepancies = []
    rows = ledger_repo.sum_by_child(session, family_id)
    for child_id, stored, calculated in rows:
        if stored != calculated:
            discrepancies.append(
                {"child_id": child_id, "stored": stored, "calculated": calculated, "diff": stored - calculated}
            )
    if discrepancies:
        logger.error("Points discrepancies found: %s", discrepancies)
    else:
        logger.info("Points audit complete: all %d balances verified", len(rows))
    return discrepancies
