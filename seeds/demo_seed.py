# =============================================================================
# 🌱 seeds/demo_seed.py
# -----------------------------------------------------------------------------
# Creates a small demo world for local runs: the system account, one business
# owner with a shop in Berlin Mitte, two live deals and a consumer following it.
# Runs only against an empty users table.
# =============================================================================

import os
import sys
from datetime import timedelta
from decimal import Decimal

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(BASE_DIR)

from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from database import SessionLocal, engine  # noqa: E402
from models import Business, Deal, Follow, User  # noqa: E402
from models.deal import compute_discount_percentage  # noqa: E402
from models.user import USER_TYPE_BUSINESS, USER_TYPE_CONSUMER  # noqa: E402
from utils.core_tables import ensure_core_tables  # noqa: E402
from utils.dates import utc_now  # noqa: E402


def seed_demo():
    """Creates the demo data if no users exist yet."""
    ensure_core_tables(engine)
    db = SessionLocal()
    try:
        count = db.execute(select(func.count(User.id))).scalar_one()
        if count:
            print(f"ℹ️ {count} user(s) already exist, nothing to seed.")
            return

        # the system account sends admin broadcasts; keep SYSTEM_USER_ID pointing at it
        system = User(username="slashhour", email="system@slashhour.app", user_type="system")
        owner = User(username="luigi", email="luigi@example.com", user_type=USER_TYPE_BUSINESS)
        consumer = User(
            username="anna",
            email="anna@example.com",
            user_type=USER_TYPE_CONSUMER,
            default_lat=52.5380,
            default_lng=13.4050,
            default_radius_km=5.0,
        )
        db.add_all([system, owner, consumer])
        db.flush()

        shop = Business(
            owner_id=owner.id,
            business_name="Luigi's Pizzeria",
            slug="luigis-pizzeria",
            category="food",
            lat=52.5200,
            lng=13.4050,
            follower_count=1,
            total_deals_posted=2,
        )
        db.add(shop)
        db.flush()

        now = utc_now()
        deals = [
            Deal(
                business_id=shop.id,
                title="Margherita for half price",
                original_price=Decimal("12.00"),
                discounted_price=Decimal("6.00"),
                category="food",
                starts_at=now,
                expires_at=now + timedelta(days=2),
                quantity_available=20,
            ),
            Deal(
                business_id=shop.id,
                title="Lunch flash: any pasta",
                original_price=Decimal("14.00"),
                discounted_price=Decimal("9.80"),
                category="food",
                starts_at=now,
                expires_at=now + timedelta(hours=3),
                is_flash_deal=True,
            ),
        ]
        for deal in deals:
            deal.discount_percentage = compute_discount_percentage(
                deal.original_price, deal.discounted_price
            )
        db.add_all(deals)
        db.add(Follow(user_id=consumer.id, business_id=shop.id))
        db.commit()
        print(f"✅ Demo data created (system user id {system.id}).")
    except SQLAlchemyError as e:
        db.rollback()
        print(f"❌ Seeding failed: {e}")
    finally:
        db.close()


# -----------------------------------------------------------------------------
# 🏁 Entry point
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    print("🚀 Seeding demo data ...")
    seed_demo()
    print("🏁 Done.")
