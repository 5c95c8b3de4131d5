#!/usr/bin/env python3
"""
Script: send_scheduled_broadcasts.py
Description:
    Delivers every admin broadcast whose scheduled_at has passed.
    The target segment is resolved at send time, not at scheduling time.
"""

import logging
import os
import sys

# ─────────────────────────────────────────────
# 🧩 Project root
# ─────────────────────────────────────────────
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(BASE_DIR)

import config  # noqa: E402
from database import SessionLocal  # noqa: E402
from utils.broadcast_engine import send_due_broadcasts  # noqa: E402
from utils.push_gateway import get_push_gateway  # noqa: E402

logger = logging.getLogger("slashhour.scheduled_broadcasts")


def run() -> int:
    db = SessionLocal()
    try:
        outcomes = send_due_broadcasts(db, gateway=get_push_gateway())
    finally:
        db.close()
    for outcome in outcomes:
        logger.info(f"📣 Broadcast {outcome.broadcast_id}: {outcome.message} {outcome.stats}")
    return len(outcomes)


if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
    count = run()
    logger.info(f"🏁 Done, {count} broadcast(s) sent.")
