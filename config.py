# =============================================================================
# ⚙️ config.py
# -----------------------------------------------------------------------------
# Central runtime configuration for the Slashhour core API.
# Everything is read from the environment (.env supported via python-dotenv).
# =============================================================================

import os
from pathlib import Path

from dotenv import load_dotenv

# 🔹 .env from the project root (if present)
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# -----------------------------------------------------------------------------
# 🗄️ Database
# -----------------------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "")
MYSQL_HOST = os.getenv("MYSQL_HOST", "")
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASS = os.getenv("MYSQL_PASS", "")
MYSQL_PORT = os.getenv("MYSQL_PORT", "3306")
MYSQL_DB = os.getenv("MYSQL_DB", "slashhour")
SQLITE_PATH = os.getenv("SQLITE_PATH", "./slashhour.db")

# -----------------------------------------------------------------------------
# 🔐 Admin / system accounts
# -----------------------------------------------------------------------------
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
SYSTEM_USER_ID = _int_env("SYSTEM_USER_ID", 1)

# -----------------------------------------------------------------------------
# 📲 Push gateway
# -----------------------------------------------------------------------------
PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL", "")
PUSH_GATEWAY_KEY = os.getenv("PUSH_GATEWAY_KEY", "")
PUSH_TIMEOUT_SECONDS = _float_env("PUSH_TIMEOUT_SECONDS", 10.0)

# -----------------------------------------------------------------------------
# 🧠 Cache TTLs (seconds)
# -----------------------------------------------------------------------------
FEED_FOLLOWING_TTL = _int_env("FEED_FOLLOWING_TTL", 120)
FEED_NEARBY_TTL = _int_env("FEED_NEARBY_TTL", 60)
DEAL_CACHE_TTL = _int_env("DEAL_CACHE_TTL", 300)

# -----------------------------------------------------------------------------
# 📍 Geo / feeds / broadcasts
# -----------------------------------------------------------------------------
DEFAULT_RADIUS_KM = _float_env("DEFAULT_RADIUS_KM", 5.0)
MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 100)
BROADCAST_MAX_LENGTH = _int_env("BROADCAST_MAX_LENGTH", 1000)

# -----------------------------------------------------------------------------
# 🪵 Logging
# -----------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
