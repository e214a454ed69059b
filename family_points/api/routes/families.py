from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_identity, get_session
from family_points.api.schemas import (
    DiscrepancyOut,
    FamilyCreateRequest,
    FamilyMembershipOut,
    FamilyOut,
    JoinFamilyRequest,
    MemberCreateRequest,
    MemberOut,
    PolicyOut,
    PolicyUpdateRequest,
)
from family_points.data.models import ROLE_MEMBER, ROLE_PARENT
from family_points.domain.rules import permissions
from family_points.domain.services import family_service, ledger_service, membership_service
from family_points.security.token import Identity, create_token

router = APIRouter(prefix="/api/families", tags=["families"])


@router.post("", status_code=201)
def create_family(
    payload: FamilyCreateRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    """Create a family. Returns a fresh token scoped to it since the caller is now its parent."""
    family = family_service.create_family(session, payload.name, identity.user_id)
    return envelope.success(
        {"family": FamilyOut.model_validate(family), "token": create_token(identity.user_id, family.id, ROLE_PARENT)}
    )


@router.get("")
def list_families(session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    families = family_service.list_families(session, identity.user_id)
    return envelope.success(
        [FamilyMembershipOut(family=FamilyOut.model_validate(family), role=role) for family, role in families]
    )


@router.post("/join", status_code=201)
def join_family(
    payload: JoinFamilyRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    family = family_service.join_family(session, identity.user_id, payload.invite_code)
    return envelope.success(
        {"family": FamilyOut.model_validate(family), "token": create_token(identity.user_id, family.id, ROLE_MEMBER)}
    )


@router.get("/{family_id}")
def get_family(family_id: int, session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    family = family_service.get_family(session, family_id, identity.user_id)
    members = family_service.list_members(session, family_id, identity.user_id)
    policy = family_service.get_policy(session, family_id, identity.user_id)
    return envelope.success(
        {
            "family": FamilyOut.model_validate(family),
            "members": [MemberOut.model_validate(member) for member in members],
            "policy": PolicyOut.model_validate(policy),
        }
    )


@router.post("/{family_id}/members", status_code=201)
def add_member(
    family_id: int,
    payload: MemberCreateRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    member = family_service.add_member(session, family_id, identity.user_id, payload.email, payload.role)
    return envelope.success(MemberOut.model_validate(member))


@router.put("/{family_id}/policy")
def update_policy(
    family_id: int,
    payload: PolicyUpdateRequest,
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    policy = family_service.update_policy(
        session, family_id, identity.user_id, **payload.model_dump(exclude_none=True)
    )
    return envelope.success(PolicyOut.model_validate(policy))


@router.get("/{family_id}/audit")
def audit(family_id: int, session: Session = Depends(get_session), identity: Identity = Depends(get_identity)):
    """Compare every child's stored balance with its ledger."""
    membership_service.require_permission(session, identity.user_id, family_id, permissions.ACTION_MANAGE)
    discrepancies = ledger_service.audit_balances(session, family_id)
    return envelope.success(
        {"ok": not discrepancies, "discrepancies": [DiscrepancyOut(**item) for item in discrepancies]}
    )
