from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_points.api import envelope
from family_points.api.dependencies import get_session
from family_points.api.schemas import LoginRequest, RegisterRequest, TokenOut, UserOut
from family_points.domain.services import family_service
from family_points.security.token import create_token

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, session: Session = Depends(get_session)):
    user = family_service.register_user(session, payload.email, payload.name, payload.password)
    token = create_token(user.id)
    return envelope.success(TokenOut(token=token, user=UserOut.model_validate(user)))


@router.post("/login")
def login(payload: LoginRequest, session: Session = Depends(get_session)):
    """Password login. The token carries the user's first family and role in it."""
    user, membership = family_service.authenticate(session, payload.email, payload.password)
    family_id = membership.family_id if membership else None
    role = membership.role if membership else None
    token = create_token(user.id, family_id, role)
    return envelope.success(TokenOut(token=token, user=UserOut.model_validate(user), family_id=family_id, role=role))
