from typing import Optional

from fastapi import Header, HTTPException, Request

from family_points.data.session import SessionLocal
from family_points.domain.errors import InvalidInputError
from family_points.domain.services import events
from family_points.security.token import Identity, decode_token


def get_session(request: Request):
    session = SessionLocal()
    events.attach_bus(session, getattr(request.app.state, "ledger_bus", None))
    try:
        yield session
    finally:
        session.close()


def get_identity(authorization: str = Header(default="")) -> Identity:
    """
    Resolve the caller from the Bearer token.

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    identity = decode_token(authorization.split(" ", 1)[1])
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return identity


def resolve_family_id(identity: Identity, family_id: Optional[int]) -> int:
    family_id = family_id or identity.family_id
    if family_id is None:
        raise InvalidInputError("family_id is required until you join a family.")
    return family_id
