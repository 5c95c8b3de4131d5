#!/usr/bin/env python3
"""
Script: expire_deals.py
Description:
    Flips every active deal whose expires_at has passed to "expired".
    Meant to run from cron every few minutes; redemption and the feeds
    already treat such deals as not live, this keeps the stored status honest.
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
from utils.deal_store import expire_stale_deals  # noqa: E402

logger = logging.getLogger("slashhour.expire_deals")


def run() -> int:
    db = SessionLocal()
    try:
        expired = expire_stale_deals(db)
    finally:
        db.close()
    # API-side cache entries age out through their TTL
    for deal_id, business_id in expired:
        logger.debug(f"⌛ deal {deal_id} (business {business_id}) expired")
    return len(expired)


if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
    count = run()
    logger.info(f"🏁 Done, {count} deal(s) expired.")
