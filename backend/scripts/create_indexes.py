#!/usr/bin/env python3
"""
Database setup script for the bot engine collections.

Creates the same indexes the API creates on startup, then lists them so a
deploy can be checked before traffic is switched over. The unique index on
bot_sessions (tenant_id, user_id) is what makes concurrent session creation
safe, so this must succeed before the engine is enabled for any tenant.

Usage:
    python scripts/create_indexes.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path to import botengine modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from botengine.services.db_service import db_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COLLECTIONS = ["bot_sessions", "bot_menus", "bot_flows", "bot_nodes", "bot_edges", "bot_logs", "bot_engine_config"]


async def create_indexes():
    try:
        if not await db_service.health_check():
            logger.error("MongoDB is not reachable")
            sys.exit(1)
        logger.info(f"Connected to database: {db_service.db.name}")

        await db_service.create_indexes()

        logger.info("Verifying indexes...")
        for collection in COLLECTIONS:
            indexes = await db_service.db[collection].list_indexes().to_list(length=None)
            logger.info(f"{collection}: {[idx['name'] for idx in indexes]}")

        sessions = await db_service.db.bot_sessions.index_information()
        if not any(info.get("unique") for name, info in sessions.items() if name != "_id_"):
            logger.error("bot_sessions is missing its unique (tenant_id, user_id) index")
            sys.exit(1)

    except Exception as e:
        logger.error(f"Error creating indexes: {e}", exc_info=True)
        sys.exit(1)
    finally:
        db_service.client.close()
        logger.info("MongoDB connection closed")


if __name__ == "__main__":
    asyncio.run(create_indexes())
