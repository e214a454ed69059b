from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from family_points.data.models import RedemptionEvent


def get_redemption(session: Session, redemption_id: str) -> Optional[RedemptionEvent]:
    return session.get(RedemptionEvent, redemption_id)


def create_redemption(session: Session, redemption: RedemptionEvent) -> RedemptionEvent:
    session.add(redemption)
    session.flush()
    return redemption


def transition(session: Session, redemption_id: str, from_status: str, to_status: str, **values) -> bool:
    """Conditional status change; False when the redemption is no longer in ``from_status``."""
    values.setdefault("updated_at", datetime.utcnow())
    result = session.execute(
        update(RedemptionEvent)
        .where(RedemptionEvent.id == redemption_id, RedemptionEvent.status == from_status)
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def list_redemptions(
    session: Session,
    family_id: int,
    child_id: Optional[int] = None,
    status: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[RedemptionEvent], int]:
    conditions = [RedemptionEvent.family_id == family_id]
    if child_id is not None:
        conditions.append(RedemptionEvent.child_id == child_id)
    if status is not None:
        conditions.append(RedemptionEvent.status == status)

    total = session.execute(select(func.count()).select_from(RedemptionEvent).where(*conditions)).scalar_one()
    redemptions = session.scalars(
        select(RedemptionEvent)
        .where(*conditions)
        .order_by(RedemptionEvent.created_at.desc(), RedemptionEvent.id)
        .offset(offset)
        .limit(limit)
    ).all()
    return list(redemptions), total
