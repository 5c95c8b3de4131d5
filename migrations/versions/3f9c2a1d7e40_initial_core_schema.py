"""Initial core schema: users, businesses, deals, follows, redemptions,
notifications, inbox and admin broadcasts

Revision ID: 3f9c2a1d7e40
Revises:
Create Date: 2026-10-17 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision: str = "3f9c2a1d7e40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


# ─────────────────────────────────────────────
# ✅ UPGRADE
# ─────────────────────────────────────────────
def upgrade() -> None:
    """Upgrade schema."""
    # 👤 users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("user_type", sa.String(length=20), nullable=False),
        sa.Column("default_lat", sa.Float(), nullable=True),
        sa.Column("default_lng", sa.Float(), nullable=True),
        sa.Column("default_radius_km", sa.Float(), nullable=True),
        sa.Column("notify_nearby_deals", sa.Boolean(), nullable=False),
        _ts("created_at", nullable=False),
        _ts("last_active_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_user_type", "users", ["user_type"])

    # 🏪 businesses
    op.create_table(
        "businesses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("follower_count", sa.Integer(), nullable=False),
        sa.Column("total_deals_posted", sa.Integer(), nullable=False),
        sa.Column("total_redemptions", sa.Integer(), nullable=False),
        _ts("created_at", nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_businesses_owner_id", "businesses", ["owner_id"])
    op.create_index("ix_businesses_slug", "businesses", ["slug"], unique=True)
    op.create_index("ix_businesses_lat", "businesses", ["lat"])
    op.create_index("ix_businesses_lng", "businesses", ["lng"])

    # 🏷️ deals
    op.create_table(
        "deals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("discounted_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_percentage", sa.Integer(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("images", sa.JSON(), nullable=True),
        _ts("starts_at", nullable=False),
        _ts("expires_at", nullable=False),
        sa.Column("is_flash_deal", sa.Boolean(), nullable=False),
        sa.Column("visibility_radius_km", sa.Float(), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=True),
        sa.Column("quantity_redeemed", sa.Integer(), nullable=False),
        sa.Column("max_per_user", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_business_id", "deals", ["business_id"])
    op.create_index("ix_deals_category", "deals", ["category"])
    op.create_index("ix_deals_starts_at", "deals", ["starts_at"])
    op.create_index("ix_deals_expires_at", "deals", ["expires_at"])
    op.create_index("ix_deals_status", "deals", ["status"])
    op.create_index("ix_deals_created_at", "deals", ["created_at"])

    # ❤️ follows
    op.create_table(
        "follows",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notify_new_deals", sa.Boolean(), nullable=False),
        sa.Column("notify_flash_deals", sa.Boolean(), nullable=False),
        _ts("followed_at", nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "business_id", name="uq_follows_user_business"),
    )
    op.create_index("ix_follows_user_id", "follows", ["user_id"])
    op.create_index("ix_follows_business_id", "follows", ["business_id"])
    op.create_index("ix_follows_status", "follows", ["status"])

    # 🔖 bookmarks
    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("deal_id", sa.Integer(), nullable=False),
        _ts("created_at", nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "deal_id", name="uq_bookmarks_user_deal"),
    )
    op.create_index("ix_bookmarks_user_id", "bookmarks", ["user_id"])
    op.create_index("ix_bookmarks_deal_id", "bookmarks", ["deal_id"])

    # 🎟️ user_redemptions
    op.create_table(
        "user_redemptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("deal_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("paid_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("savings_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("deal_category", sa.String(length=50), nullable=True),
        _ts("redeemed_at", nullable=False),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_redemptions_code", "user_redemptions", ["code"], unique=True)
    op.create_index("ix_user_redemptions_deal_id", "user_redemptions", ["deal_id"])
    op.create_index("ix_user_redemptions_user_id", "user_redemptions", ["user_id"])
    op.create_index("ix_user_redemptions_business_id", "user_redemptions", ["business_id"])
    op.create_index("ix_user_redemptions_redeemed_at", "user_redemptions", ["redeemed_at"])

    # 📱 device_tokens
    op.create_table(
        "device_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("device_token", sa.String(length=255), nullable=False),
        sa.Column("device_type", sa.String(length=20), nullable=True),
        sa.Column("device_name", sa.String(length=120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "device_token", name="uq_device_tokens_user_token"),
    )
    op.create_index("ix_device_tokens_user_id", "device_tokens", ["user_id"])
    op.create_index("ix_device_tokens_device_token", "device_tokens", ["device_token"])
    op.create_index("ix_device_tokens_is_active", "device_tokens", ["is_active"])

    # 🔔 notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("action_url", sa.String(length=500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _ts("read_at"),
        _ts("sent_at", nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_sent_at", "notifications", ["sent_at"])

    # 📣 broadcast_messages
    op.create_table(
        "broadcast_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("admin_id", sa.String(length=64), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("target_group", sa.String(length=30), nullable=False),
        sa.Column("users_targeted", sa.Integer(), nullable=False),
        sa.Column("messages_sent", sa.Integer(), nullable=False),
        sa.Column("conversations_created", sa.Integer(), nullable=False),
        sa.Column("errors_count", sa.Integer(), nullable=False),
        sa.Column("contains_links", sa.Boolean(), nullable=False),
        sa.Column("links", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        _ts("scheduled_at"),
        _ts("sent_at"),
        _ts("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_broadcast_messages_status", "broadcast_messages", ["status"])
    op.create_index("ix_broadcast_messages_scheduled_at", "broadcast_messages", ["scheduled_at"])
    op.create_index("ix_broadcast_messages_created_at", "broadcast_messages", ["created_at"])

    # 💬 conversations + messages
    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        _ts("last_message_at"),
        sa.Column("last_message_text", sa.String(length=100), nullable=True),
        sa.Column("unread_count", sa.Integer(), nullable=False),
        _ts("created_at", nullable=False),
        sa.ForeignKeyConstraint(["host_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("host_id", "customer_id", name="uq_conversations_host_customer"),
    )
    op.create_index("ix_conversations_host_id", "conversations", ["host_id"])
    op.create_index("ix_conversations_customer_id", "conversations", ["customer_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("message_text", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(length=20), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("broadcast_id", sa.Integer(), nullable=True),
        _ts("created_at", nullable=False),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["broadcast_id"], ["broadcast_messages.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_broadcast_id", "messages", ["broadcast_id"])

    # 🖱️ broadcast_link_clicks
    op.create_table(
        "broadcast_link_clicks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("broadcast_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("link_url", sa.String(length=1000), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        _ts("clicked_at", nullable=False),
        sa.ForeignKeyConstraint(["broadcast_id"], ["broadcast_messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_broadcast_link_clicks_broadcast_id", "broadcast_link_clicks", ["broadcast_id"])
    op.create_index("ix_broadcast_link_clicks_user_id", "broadcast_link_clicks", ["user_id"])
    op.create_index("ix_broadcast_link_clicks_clicked_at", "broadcast_link_clicks", ["clicked_at"])


# ─────────────────────────────────────────────
# ⏪ DOWNGRADE
# ─────────────────────────────────────────────
def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "broadcast_link_clicks",
        "messages",
        "conversations",
        "broadcast_messages",
        "notifications",
        "device_tokens",
        "user_redemptions",
        "bookmarks",
        "follows",
        "deals",
        "businesses",
        "users",
    ):
        op.drop_table(table)
