from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

import models  # noqa: F401  (registers every table on Base.metadata)
from database import Base

logger = logging.getLogger(__name__)


def ensure_core_tables(engine: Engine) -> None:
    """Creates all core tables idempotently (existing tables are left alone)."""
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Core tables checked/created.")
    except Exception as exc:
        logger.warning(f"⚠️ Could not create core tables automatically: {exc}")
