# auth_utils.py
# Identity arrives as trusted headers set by the gateway in front of this API.
import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException

import config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# 👤 Current user (X-User-Id)
# ---------------------------------------------------------------------
def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> int:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    if user_id < 1:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    return user_id


# ---------------------------------------------------------------------
# 🔐 Admin (X-Admin-Token + X-Admin-Id)
# ---------------------------------------------------------------------
def require_admin(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    x_admin_id: Optional[str] = Header(default=None, alias="X-Admin-Id"),
) -> str:
    """Returns the acting admin id."""
    if not config.ADMIN_TOKEN:
        logger.error("❌ ADMIN_TOKEN is not configured – admin endpoints are disabled")
        raise HTTPException(status_code=500, detail="Admin access is not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=401, detail="Invalid admin token")
    return x_admin_id or "admin"
