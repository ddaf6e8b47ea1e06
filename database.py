# database.py
import os
import logging
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

load_dotenv()

logger = logging.getLogger(__name__)

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "campus_events")
client = AsyncIOMotorClient(MONGO_URI)
db = client[MONGO_DB_NAME]

#tables
events_collection = db["events"]


async def create_indexes():
    """
    Create database indexes for optimal query performance.
    This should be called once at application startup.
    """
    try:
        await events_collection.create_index("date")
        await events_collection.create_index("category")
        await events_collection.create_index("status")
        await events_collection.create_index("featured")
        # Compound index for the upcoming/past listings
        await events_collection.create_index([("status", 1), ("date", 1)])

        logger.info("Database indexes created successfully")
    except Exception as e:
        logger.warning(f"Error creating indexes: {e}")
        # Don't raise - allow app to continue if indexes already exist
