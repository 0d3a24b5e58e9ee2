import logging
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import Settings

logger = logging.getLogger(__name__)


class DataBase:
    client: AsyncIOMotorClient = None


db = DataBase()


async def get_database(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.database


async def connect_to_mongo(settings: Settings) -> AsyncIOMotorDatabase:
    logger.info("Connecting to MongoDB...")
    db.client = AsyncIOMotorClient(settings.mongo_database_url)
    database = db.client[settings.mongo_database_name]
    await ensure_indexes(database)
    logger.info("Successfully connected to MongoDB!")
    return database


async def ensure_indexes(database: AsyncIOMotorDatabase) -> None:
    await database["users"].create_index("username", unique=True)
    await database["users"].create_index("id", unique=True)
    await database["artists"].create_index("id", unique=True)
    await database["albums"].create_index("id", unique=True)
    await database["songs"].create_index("id", unique=True)


async def close_mongo_connection():
    if db.client is None:
        return
    logger.info("Closing MongoDB connection...")
    db.client.close()
    db.client = None
    logger.info("MongoDB connection closed.")
