# =============================================================================
# 📦 models/__init__.py
# -----------------------------------------------------------------------------
# Registers every model on Base.metadata (startup bootstrap + Alembic)
# =============================================================================

from .user import User
from .business import Business
from .deal import Deal
from .follow import Follow
from .bookmark import Bookmark
from .user_redemption import UserRedemption
from .device_token import DeviceToken
from .notification import Notification
from .conversation import Conversation, Message
from .broadcast import BroadcastMessage, BroadcastLinkClick

__all__ = [
    "User",
    "Business",
    "Deal",
    "Follow",
    "Bookmark",
    "UserRedemption",
    "DeviceToken",
    "Notification",
    "Conversation",
    "Message",
    "BroadcastMessage",
    "BroadcastLinkClick",
]
