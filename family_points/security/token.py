"""
Bearer tokens carrying the caller's identity: user id, active family and role.
"""
import datetime
from dataclasses import dataclass
from typing import Optional

import jwt

from family_points.config import ALGORITHM, SECRET_KEY, TOKEN_EXPIRE_MINUTES


@dataclass(frozen=True)
class Identity:
    user_id: int
    family_id: Optional[int]
    role: Optional[str]


def create_token(user_id: int, family_id: Optional[int] = None, role: Optional[str] = None) -> str:
    now = datetime.datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "family_id": family_id,
        "role": role,
        "iat": now,
        "exp": now + datetime.timedelta(minutes=TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Identity]:
    """Return the token's identity, or None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return Identity(user_id=int(payload["sub"]), family_id=payload.get("family_id"), role=payload.get("role"))
    except (jwt.PyJWTError, KeyError, ValueError):
        return None
