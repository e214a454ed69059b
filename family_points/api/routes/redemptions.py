from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_identity, get_session, resolve_family_id
from family_points.api.schemas import DecisionRequest, RedemptionOut
from family_points.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from family_points.domain.services import membership_service, redemption_service
from family_points.domain.services.retry import run_with_retry
from family_points.security.token import Identity

router = APIRouter(prefix="/api/redemptions", tags=["redemptions"])


@router.get("")
def list_redemptions(
    family_id: Optional[int] = None,
    child_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    family_id = resolve_family_id(identity, family_id)
    membership_service.require_member(session, identity.user_id, family_id)
    redemptions, total = redemption_service.list_redemptions(session, family_id, child_id, status, page, limit)
    return envelope.page([RedemptionOut.model_validate(item) for item in redemptions], total, page, limit)


@router.put("/{redemption_id}")
def decide_redemption(
    redemption_id: str,
    payload: DecisionRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    """Approve a pending redemption, or reject it and refund the points."""
    redemption = run_with_retry(
        lambda: redemption_service.decide_redemption(session, redemption_id, identity.user_id, payload.approve)
    )
    return envelope.success(RedemptionOut.model_validate(redemption))


@router.post("/{redemption_id}/complete")
def complete_redemption(
    redemption_id: str,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    redemption = run_with_retry(
        lambda: redemption_service.complete_redemption(session, redemption_id, identity.user_id)
    )
    return envelope.success(RedemptionOut.model_validate(redemption))
