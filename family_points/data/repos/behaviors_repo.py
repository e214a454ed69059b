from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from family_points.data.models import (
    BEHAVIOR_PENDING,
    BEHAVIOR_REJECTED,
    BEHAVIOR_VERIFIED,
    BehaviorEvent,
)


def get_behavior(session: Session, event_id: str) -> Optional[BehaviorEvent]:
    return session.get(BehaviorEvent, event_id)


def create_behavior(session: Session, behavior: BehaviorEvent) -> BehaviorEvent:
    session.add(behavior)
    session.flush()
    return behavior


def transition_from_pending(
    session: Session, event_id: str, status: str, verified_by: int, when: datetime
) -> bool:
    """Move a pending event to ``status``. Returns False when another writer got there first."""
    result = session.execute(
        update(BehaviorEvent)
        .where(BehaviorEvent.id == event_id, BehaviorEvent.status == BEHAVIOR_PENDING)
        .values(status=status, verified_by=verified_by, verified_at=when, updated_at=when)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def list_behaviors(
    session: Session,
    family_id: int,
    child_id: Optional[int] = None,
    status: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[BehaviorEvent], int]:
    conditions = [BehaviorEvent.family_id == family_id]
    if child_id is not None:
        conditions.append(BehaviorEvent.child_id == child_id)
    if status is not None:
        conditions.append(BehaviorEvent.status == status)

    total = session.execute(select(func.count()).select_from(BehaviorEvent).where(*conditions)).scalar_one()
    events = session.scalars(
        select(BehaviorEvent)
        .where(*conditions)
        .order_by(BehaviorEvent.created_at.desc(), BehaviorEvent.id)
        .offset(offset)
        .limit(limit)
    ).all()
    return list(events), total


def points_by_status(session: Session, child_id: int, since: datetime) -> dict[str, int]:
    def _sum_where(condition):
        return func.coalesce(func.sum(case((condition, BehaviorEvent.points_change), else_=0)), 0)

    row = session.execute(
        select(
            _sum_where(BehaviorEvent.status == BEHAVIOR_VERIFIED),
            _sum_where(BehaviorEvent.status == BEHAVIOR_PENDING),
            _sum_where(BehaviorEvent.status == BEHAVIOR_REJECTED),
            _sum_where((BehaviorEvent.status == BEHAVIOR_VERIFIED) & (BehaviorEvent.created_at >= since)),
        ).where(BehaviorEvent.child_id == child_id)
    ).one()
    return {
        "verified_points": int(row[0]),
        "pending_points": int(row[1]),
        "rejected_points": int(row[2]),
        "this_month_points": int(row[3]),
    }
