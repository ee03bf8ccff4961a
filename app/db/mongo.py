"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: orders, coupons, sms_quota, pending_users, users,
  confirmation_outbox
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None

ORDERS = "orders"
COUPONS = "coupons"
SMS_QUOTA = "sms_quota"
PENDING_USERS = "pending_users"
USERS = "users"
CONFIRMATION_OUTBOX = "confirmation_outbox"
HEALTH_CARDS = "health_cards"


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            # Fix URL encoding for special characters
            mongodb_url = settings.MONGODB_URL.replace("%%", "%25")

            client = AsyncIOMotorClient(
                mongodb_url,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )

            # Verify connection
            await client.admin.command("ping")

            _client = client
            _database = client[settings.MONGODB_DB_NAME]

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_orders_collection() -> AsyncIOMotorCollection:
    """
    Order documents: customer, items, totals, status, timestamps.
    """
    return get_database()[ORDERS]


def get_coupons_collection() -> AsyncIOMotorCollection:
    """
    Single-use lab coupons with their Available/Reserved/Sent lifecycle.
    """
    return get_database()[COUPONS]


def get_quota_collection() -> AsyncIOMotorCollection:
    """
    Per-mobile counters of successful metered SMS sends.
    """
    return get_database()[SMS_QUOTA]


def get_pending_users_collection() -> AsyncIOMotorCollection:
    """
    Unverified signups; removed by TTL index 24h after creation.
    """
    return get_database()[PENDING_USERS]


def get_users_collection() -> AsyncIOMotorCollection:
    return get_database()[USERS]


def get_outbox_collection() -> AsyncIOMotorCollection:
    """
    One entry per created order; tracks whether its confirmation ran.
    """
    return get_database()[CONFIRMATION_OUTBOX]


def get_health_cards_collection() -> AsyncIOMotorCollection:
    """
    One health card record per user.
    """
    return get_database()[HEALTH_CARDS]
