from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_points.data.models import Reward


def get_reward(session: Session, reward_id: int) -> Optional[Reward]:
    return session.get(Reward, reward_id)


def list_rewards(session: Session, family_id: int, active_only: bool = False) -> list[Reward]:
    query = select(Reward).where(Reward.family_id == family_id)
    if active_only:
        query = query.where(Reward.is_active.is_(True))
    return list(session.scalars(query.order_by(Reward.points_required, Reward.id)))


def create_reward(session: Session, reward: Reward) -> Reward:
    session.add(reward)
    session.flush()
    return reward
