from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from family_points.data.models import Child, LedgerEntry


def get_entry(session: Session, event_id: str) -> Optional[LedgerEntry]:
    return session.scalars(select(LedgerEntry).where(LedgerEntry.event_id == event_id)).one_or_none()


def insert_entry(session: Session, entry: LedgerEntry) -> LedgerEntry:
    session.add(entry)
    session.flush()
    return entry


def add_to_balance(session: Session, child_id: int, delta: int, allow_negative: bool) -> bool:
    """Atomically add ``delta`` to the child's balance.

    The balance guard lives in the WHERE clause so the check and the write are a
    single statement. Returns False when no row matched (missing child or the
    guard rejected the change).
    """
    statement = update(Child).where(Child.id == child_id)
    if not allow_negative and delta < 0:
        statement = statement.where(Child.total_points + delta >= 0)
    result = session.execute(
        statement.values(total_points=Child.total_points + delta).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def list_entries(session: Session, child_id: int, limit: int = 50) -> list[LedgerEntry]:
    return list(
        session.scalars(
            select(LedgerEntry)
            .where(LedgerEntry.child_id == child_id)
            .order_by(LedgerEntry.id.desc())
            .limit(limit)
        )
    )


def sum_by_child(session: Session, family_id: Optional[int] = None) -> list[tuple[int, int, int]]:
    """Return ``(child_id, stored_balance, ledger_sum)`` rows."""
    ledger_sum = (
        select(LedgerEntry.child_id, func.sum(LedgerEntry.delta).label("total"))
        .group_by(LedgerEntry.child_id)
        .subquery()
    )
    query = select(Child.id, Child.total_points, func.coalesce(ledger_sum.c.total, 0)).outerjoin(
        ledger_sum, ledger_sum.c.child_id == Child.id
    )
    if family_id is not None:
        query = query.where(Child.family_id == family_id)
    return [(row[0], row[1], int(row[2])) for row in session.execute(query.order_by(Child.id))]
