from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_identity, get_session
from family_points.api.schemas import RedeemRequest, RedemptionOut
from family_points.data.models import new_event_id
from family_points.domain.services import redemption_service
from family_points.domain.services.retry import run_with_retry
from family_points.security.token import Identity

router = APIRouter(prefix="/api/rewards", tags=["rewards"])


@router.post("/{reward_id}/redeem", status_code=201)
def redeem_reward(
    reward_id: int,
    payload: RedeemRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    event_id = payload.event_id or new_event_id()
    redemption = run_with_retry(
        lambda: redemption_service.redeem(session, payload.child_id, reward_id, identity.user_id, event_id=event_id)
    )
    return envelope.success(RedemptionOut.model_validate(redemption))
