# =============================================================================
# 🗄️ database.py
# -----------------------------------------------------------------------------
# SQLAlchemy configuration for the Slashhour core API.
# MySQL (PyMySQL) in production, SQLite for local runs and tests.
# =============================================================================

from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

import config


def build_database_url() -> str:
    """DATABASE_URL wins, then MySQL parts, then a local SQLite file."""
    if config.DATABASE_URL:
        return config.DATABASE_URL
    if config.MYSQL_HOST:
        encoded_pass = quote_plus(config.MYSQL_PASS)
        return (
            f"mysql+pymysql://{config.MYSQL_USER}:{encoded_pass}@{config.MYSQL_HOST}:"
            f"{config.MYSQL_PORT}/{config.MYSQL_DB}?charset=utf8mb4"
        )
    return f"sqlite:///{config.SQLITE_PATH}"


SQLALCHEMY_DATABASE_URL = build_database_url()

# 🔹 Engine
# pool_pre_ping = detects dropped connections
# pool_recycle = keeps MySQL connections fresh
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
else:
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=280,
    )

# 🔹 Session factory – one session per request
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# 🔹 Declarative base for all models
Base = declarative_base()


# 🔹 FastAPI dependencies
def get_db():
    """
    Opens a new session per request and closes it afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for work that outlives the request (background tasks)."""
    return SessionLocal
