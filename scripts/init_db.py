"""
Database initialization script

Creates collections and indexes, and optionally seeds the coupon pool from
a text file with one coupon code per line:

    python scripts/init_db.py
    python scripts/init_db.py --coupons coupons.txt [--lab chughtai-lab]
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import logging

from app.core.config import settings
from app.db.mongo import connect_to_mongo, close_mongo_connection, get_database
from app.db.indexes import create_indexes
from app.services.coupon_service import add_coupons, get_pool_summary

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def read_coupon_file(path: Path) -> list:
    with path.open(encoding="utf-8") as handle:
        return [line.strip() for line in handle if line.strip()]


async def main(coupon_file: str = None, lab_id: str = None):
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  ZUNF Medicare Database Setup")
    logger.info("=" * 60 + "\n")

    await connect_to_mongo()

    try:
        await create_indexes()

        lab_id = lab_id or settings.COUPON_LAB_ID
        if coupon_file:
            numbers = read_coupon_file(Path(coupon_file))
            logger.info(f"🎟️  Seeding {len(numbers)} coupon(s) for {lab_id}...")
            counts = await add_coupons(lab_id, numbers)
            logger.info(f"  ✅ Added {counts['added']}, skipped {counts['skipped']} existing")

        # ==================== STATS ====================
        db = get_database()
        logger.info("\n📊 Current documents:")
        for name in await db.list_collection_names():
            logger.info(f"  {name}: {await db[name].count_documents({})}")

        summary = await get_pool_summary(lab_id)
        logger.info(f"\n🎟️  Coupon pool for {lab_id}: {summary}")

        logger.info("\n✅ Database initialization complete!")

    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise

    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create indexes and seed coupons")
    parser.add_argument("--coupons", help="Text file with one coupon code per line")
    parser.add_argument("--lab", help="Lab id owning the coupons")
    args = parser.parse_args()

    asyncio.run(main(args.coupons, args.lab))
