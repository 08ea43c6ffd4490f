# equiploan/db/database.py
import logging

import motor.motor_asyncio
from beanie import init_beanie

from equiploan.core.config import MONGODB_URL, DATABASE_NAME
from equiploan.models.user import User
from equiploan.models.category import Category
from equiploan.models.item import Item
from equiploan.models.borrowing import Borrowing
from equiploan.models.notification import Notification
from equiploan.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [User, Category, Item, Borrowing, Notification, ActivityLog]


async def init_db() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Connect to MongoDB and initialise Beanie. The client is returned for session handling."""
    logger.info("Connecting to MongoDB...")
    client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL, tz_aware=True)

    database = client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")

    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")
    return client
