from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_points.data.models import Child


def get_child(session: Session, child_id: int, refresh: bool = False) -> Optional[Child]:
    return session.get(Child, child_id, populate_existing=refresh)


def list_children(session: Session, family_id: int) -> list[Child]:
    query = select(Child).where(Child.family_id == family_id).order_by(Child.id)
    return list(session.scalars(query.execution_options(populate_existing=True)))


def read_balance(session: Session, child_id: int) -> Optional[int]:
    return session.execute(select(Child.total_points).where(Child.id == child_id)).scalar_one_or_none()


def create_child(session: Session, child: Child) -> Child:
    session.add(child)
    session.flush()
    return child


def delete_child(session: Session, child: Child) -> None:
    session.delete(child)
    session.flush()
