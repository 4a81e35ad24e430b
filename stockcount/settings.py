import os
import secrets
from pathlib import Path

from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'stock.db'}")

# --- Flask ---
SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))

# --- Counting ---
# "utc" matches a server that stamps counts with the UTC calendar day,
# "local" uses the host clock.
DAY_BOUNDARY = os.getenv("DAY_BOUNDARY", "utc").lower()

# --- History paging ---
HISTORY_DEFAULT_LIMIT = int(os.getenv("HISTORY_DEFAULT_LIMIT", "10"))
HISTORY_MAX_LIMIT = int(os.getenv("HISTORY_MAX_LIMIT", "100"))

# --- Seed accounts ---
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
STAFF_PASSWORD = os.getenv("STAFF_PASSWORD", "staff123")


def as_dict() -> dict:
    """Settings in the shape Flask's app.config expects."""
    return {
        "DATABASE_URL": DATABASE_URL,
        "SECRET_KEY": SECRET_KEY,
        "LOG_LEVEL": LOG_LEVEL,
        "LOG_DIR": LOG_DIR,
        "DAY_BOUNDARY": DAY_BOUNDARY,
        "HISTORY_DEFAULT_LIMIT": HISTORY_DEFAULT_LIMIT,
        "HISTORY_MAX_LIMIT": HISTORY_MAX_LIMIT,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "STAFF_PASSWORD": STAFF_PASSWORD,
    }
