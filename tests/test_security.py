import jwt

from family_points.config import ALGORITHM
from family_points.security.password import hash_password, verify_password
from family_points.security.token import Identity, create_token, decode_token


def test_password_hashing() -> None:
    stored = hash_password("hunter22")
    assert stored != hash_password("hunter22")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)
    assert not verify_password("hunter22", "not-a-hash")


def test_hash_records_its_work_factor() -> None:
    stored = hash_password("hunter22", iterations=1000)
    assert stored.split("$")[:2] == ["pbkdf2_sha256", "1000"]
    # Verification reads the iteration count from the stored hash, not from config.
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter22", stored.replace("$1000$", "$1001$", 1))
    assert not verify_password("hunter22", "md5$1000$salt$digest")


def test_token_round_trip() -> None:
    token = create_token(7, 3, "guardian")
    assert decode_token(token) == Identity(user_id=7, family_id=3, role="guardian")


def test_invalid_tokens() -> None:
    assert decode_token("garbage") is None
    forged = jwt.encode({"sub": "7"}, "another-secret", algorithm=ALGORITHM)
    assert decode_token(forged) is None
