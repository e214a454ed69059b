"""
Password hashing for account logins.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>`` so the
work factor can be raised in config without invalidating existing accounts.
"""
import hashlib
import secrets
from typing import Optional

from family_points.config import PASSWORD_HASH_ITERATIONS

SCHEME = "pbkdf2_sha256"


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations).hex()


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    iterations = iterations or PASSWORD_HASH_ITERATIONS
    salt = secrets.token_hex(16)
    return f"{SCHEME}${iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, stored_hash: str) -> bool:
    parts = stored_hash.split("$")
    if len(parts) != 4 or parts[0] != SCHEME or not parts[1].isdigit():
        return False
    _, iterations, salt, digest = parts
    return secrets.compare_digest(_derive(password, salt, int(iterations)), digest)
