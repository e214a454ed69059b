from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_identity, get_session, resolve_family_id
from family_points.api.schemas import BehaviorCreateRequest, BehaviorOut, DecisionRequest
from family_points.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from family_points.data.models import new_event_id
from family_points.domain.services import approval_service, behavior_service, membership_service
from family_points.domain.services.retry import run_with_retry
from family_points.security.token import Identity

router = APIRouter(prefix="/api/behaviors", tags=["behaviors"])


@router.post("", status_code=201)
def record_behavior(
    payload: BehaviorCreateRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    """
    Record a behavior for a child.

    The event id is fixed before the first attempt so a retried storage
    failure can never record the behavior twice.
    """
    event_id = payload.event_id or new_event_id()
    behavior = run_with_retry(
        lambda: behavior_service.record_behavior(
            session, payload.child_id, payload.rule_id, payload.note, identity.user_id, event_id=event_id
        )
    )
    return envelope.success(BehaviorOut.model_validate(behavior))


@router.get("")
def list_behaviors(
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
    behaviors, total = behavior_service.list_behaviors(session, family_id, child_id, status, page, limit)
    return envelope.page([BehaviorOut.model_validate(item) for item in behaviors], total, page, limit)


@router.put("/{event_id}")
def decide_behavior(
    event_id: str,
    payload: DecisionRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    behavior = run_with_retry(lambda: approval_service.decide(session, event_id, identity.user_id, payload.approve))
    return envelope.success(BehaviorOut.model_validate(behavior))
