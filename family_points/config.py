import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = Path(os.environ.get("FAMILY_POINTS_DATA_DIR", BASE_DIR / "data"))
DATA_DIR.mkdir(parents=True, exist_ok=True)
DB_PATH = DATA_DIR / "family_points.sqlite3"

DATABASE_URL = os.environ.get("FAMILY_POINTS_DATABASE_URL", f"sqlite:///{DB_PATH}")
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.environ.get("FAMILY_POINTS_SQLITE_TIMEOUT", "30"))

SECRET_KEY = os.environ.get("FAMILY_POINTS_SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
TOKEN_EXPIRE_MINUTES = int(os.environ.get("FAMILY_POINTS_TOKEN_EXPIRE_MINUTES", "10080"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

PASSWORD_HASH_ITERATIONS = int(os.environ.get("FAMILY_POINTS_PASSWORD_ITERATIONS", "200000"))

STORAGE_RETRY_ATTEMPTS = int(os.environ.get("FAMILY_POINTS_RETRY_ATTEMPTS", "3"))
STORAGE_RETRY_DELAY_SECONDS = float(os.environ.get("FAMILY_POINTS_RETRY_DELAY", "0.2"))

SEED_DEMO_DATA = os.environ.get("FAMILY_POINTS_SEED_DEMO", "false").lower() in {"1", "true", "yes"}

DEFAULT_POLICY = {
    "require_reward_verification": False,
    "require_punishment_verification": False,
    "allow_self_approval": False,
    "immediate_redemption": False,
    "allow_negative_balance": True,
}

POINTS_MIN = -1000
POINTS_MAX = 1000
POINTS_REQUIRED_MIN = 1
POINTS_REQUIRED_MAX = 10000
NOTE_MAX_LENGTH = 200
NAME_MAX_LENGTH = 50

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
