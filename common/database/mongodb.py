"""
MongoDB connection manager.

Wraps a Motor client. The CRM services work on raw Motor collections.

Example:
    from common.database import MongoDB

    mongo = MongoDB()
    await mongo.connect(uri="mongodb://localhost:27017", database_name="exterior_crm")
    contacts = mongo.db["contacts"]
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class MongoDB:
    """Async MongoDB connection manager."""

    def __init__(self):
        self._client: Optional[AsyncIOMotorClient] = None
        self._database_name: Optional[str] = None
        self._initialized: bool = False

    async def connect(self, uri: str, database_name: str) -> None:
        """
        Connect to MongoDB and check the server answers.

        Datetimes come back timezone-aware (UTC) so invitation and trial
        expiry comparisons never mix naive and aware values.

        Args:
            uri: MongoDB connection string
            database_name: Name of the database to use
        """
        masked_uri = uri.split("@")[-1] if "@" in uri else uri
        logger.info(f"Connecting to MongoDB: {masked_uri}")
        logger.debug(f"Database name: {database_name}")

        try:
            self._client = AsyncIOMotorClient(uri, tz_aware=True)
            self._database_name = database_name

            await self._client.admin.command("ping")
            self._initialized = True
            logger.info(f"Connected to MongoDB database: {database_name}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self) -> None:
        """Close the MongoDB connection."""
        if self._client:
            logger.info(f"Disconnecting from MongoDB database: {self._database_name}")
            self._client.close()
            self._client = None
            self._database_name = None
            self._initialized = False

    async def ping(self) -> bool:
        """True if the server answers a ping."""
        if not self._client:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._initialized

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """Underlying Motor database instance."""
        if not self._client or not self._database_name:
            raise RuntimeError("Database not connected")
        return self._client[self._database_name]
