# async mongodb client for the cloud storage backend
# uses motor for non-blocking operations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from mindvault.config import settings

logger = logging.getLogger(__name__)


class Database:
    """async mongodb connection manager"""

    def __init__(self, uri: Optional[str] = None, database: Optional[str] = None):
        self.uri = uri if uri is not None else settings.MONGODB_URI
        self.database_name = database if database is not None else settings.MONGODB_DATABASE
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self):
        """establish connection to mongodb and make sure indexes exist"""
        if self.client is not None:
            return

        if not self.uri:
            raise ValueError("MONGODB_URI is not set. Provide it via .env or constructor.")

        logger.info(f"Connecting to MongoDB database: {self.database_name}")
        self.client = AsyncIOMotorClient(self.uri)
        self.db = self.client[self.database_name]

        # verify connection
        await self.client.admin.command("ping")
        await self.create_indexes()
        logger.info("MongoDB connection established")

    async def close(self):
        """close mongodb connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed")

    async def create_indexes(self):
        await self.journal_entries.create_indexes([
            IndexModel([("user_id", ASCENDING), ("timestamp", DESCENDING)]),
            IndexModel([("user_id", ASCENDING), ("id", ASCENDING)], unique=True),
        ])

    # collection accessors

    @property
    def journal_entries(self):
        return self.db["journal_entries"]

    @property
    def profiles(self):
        return self.db["profiles"]


# singleton instance
db = Database()


async def get_db() -> Database:
    """dependency injection for database access"""
    return db
