"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- TTL indexes for automatic cleanup
"""

from pymongo import ASCENDING, DESCENDING

from app.db.mongo import (
    get_orders_collection,
    get_coupons_collection,
    get_quota_collection,
    get_pending_users_collection,
    get_users_collection,
    get_outbox_collection,
    get_health_cards_collection,
)
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes for optimal performance.
    This function is idempotent - safe to run multiple times.
    """
    try:
        orders = get_orders_collection()
        coupons = get_coupons_collection()
        quota = get_quota_collection()
        pending_users = get_pending_users_collection()
        users = get_users_collection()
        outbox = get_outbox_collection()
        health_cards = get_health_cards_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # ORDERS
        # ==============================================

        # Order history lookups by customer, newest first
        await orders.create_index(
            [("customer.mobile", ASCENDING), ("created_at", DESCENDING)],
            name="customer_mobile_created_idx"
        )
        await orders.create_index("customer.email", name="customer_email_idx")
        await orders.create_index("status", name="order_status_idx")
        await orders.create_index([("created_at", DESCENDING)], name="order_created_idx")
        logger.debug("Created indexes on orders")

        # ==============================================
        # COUPONS
        # ==============================================

        await coupons.create_index("coupon_number", unique=True, name="coupon_number_unique")

        # Reservation picks the oldest Available coupon of one lab
        await coupons.create_index(
            [("lab_id", ASCENDING), ("state", ASCENDING), ("_id", ASCENDING)],
            name="coupon_lab_state_idx"
        )
        await coupons.create_index("reserved_for.order_id", name="coupon_order_idx")
        logger.debug("Created indexes on coupons")

        # ==============================================
        # SMS QUOTA
        # ==============================================

        await quota.create_index("identifier", unique=True, name="quota_identifier_unique")
        logger.debug("Created unique index on sms_quota.identifier")

        # ==============================================
        # ACCOUNTS
        # ==============================================

        await pending_users.create_index("mobile", unique=True, name="pending_mobile_unique")

        # Pending signups disappear 24h after creation, verified or not
        await pending_users.create_index(
            "created_at",
            expireAfterSeconds=settings.PENDING_SIGNUP_TTL_SECONDS,
            name="pending_signup_ttl_idx"
        )
        logger.debug("Created TTL index on pending_users.created_at")

        await users.create_index("mobile", unique=True, name="user_mobile_unique")
        logger.debug("Created unique index on users.mobile")

        await health_cards.create_index("user_id", unique=True, name="health_card_user_unique")
        await health_cards.create_index("health_card_number", unique=True, name="health_card_number_unique")
        logger.debug("Created unique indexes on health_cards")

        # ==============================================
        # CONFIRMATION OUTBOX
        # ==============================================

        await outbox.create_index("order_id", unique=True, name="outbox_order_unique")
        await outbox.create_index(
            [("state", ASCENDING), ("created_at", ASCENDING)],
            name="outbox_state_created_idx"
        )
        logger.debug("Created indexes on confirmation_outbox")

        logger.info("✅ All database indexes created successfully")

        order_indexes = await orders.index_information()
        coupon_indexes = await coupons.index_information()
        logger.info(
            f"Index summary: Orders={len(order_indexes)}, Coupons={len(coupon_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
