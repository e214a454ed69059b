from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_identity, get_session, resolve_family_id
from family_points.api.schemas import ChildCreateRequest, ChildOut, LedgerEntryOut, PointsStatsOut
from family_points.config import MAX_PAGE_SIZE
from family_points.domain.services import behavior_service, family_service, ledger_service
from family_points.security.token import Identity

router = APIRouter(prefix="/api/children", tags=["children"])


@router.post("", status_code=201)
def create_child(
    payload: ChildCreateRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    family_id = resolve_family_id(identity, payload.family_id)
    child = family_service.add_child(
        session, family_id, identity.user_id, payload.name, payload.birth_date, payload.avatar_url
    )
    return envelope.success(ChildOut.model_validate(child))


@router.get("")
def list_children(
    family_id: Optional[int] = None,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    children = family_service.list_children(session, resolve_family_id(identity, family_id), identity.user_id)
    return envelope.success([ChildOut.model_validate(child) for child in children])


@router.get("/{child_id}")
def get_child(child_id: int, session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    child = family_service.get_child(session, child_id, identity.user_id)
    return envelope.success(ChildOut.model_validate(child))


@router.delete("/{child_id}")
def delete_child(child_id: int, session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    """Delete a child and all of its events and ledger entries."""
    family_service.remove_child(session, child_id, identity.user_id)
    return envelope.success({"deleted": child_id})


@router.get("/{child_id}/ledger")
def child_ledger(
    child_id: int,
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    family_service.get_child(session, child_id, identity.user_id)
    entries = ledger_service.ledger_history(session, child_id, limit)
    return envelope.success([LedgerEntryOut.model_validate(entry) for entry in entries])


@router.get("/{child_id}/stats")
def child_stats(child_id: int, session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    family_service.get_child(session, child_id, identity.user_id)
    return envelope.success(PointsStatsOut(**behavior_service.points_stats(session, child_id)))
