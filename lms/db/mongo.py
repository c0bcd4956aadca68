"""MongoDB connection handle for the users and courses collections."""

from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from lms.config import Settings

logger = structlog.get_logger(__name__)

USERS_COLLECTION = "users"
COURSES_COLLECTION = "courses"


class MongoDatabase:
    """
    Owns the motor client and exposes the collections used by the services.

    A preconfigured client (for example an in-memory mock) can be passed in;
    otherwise one is created from ``MONGODB_URL`` on ``connect``.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncIOMotorClient] = None):
        self.settings = settings
        self.client = client
        self._owns_client = client is None
        self._initialized = False

    async def connect(self):
        """Connect to MongoDB and make sure indexes exist."""
        if self._initialized:
            return

        try:
            if self.client is None:
                self.client = AsyncIOMotorClient(
                    self.settings.MONGODB_URL,
                    serverSelectionTimeoutMS=self.settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
                    tz_aware=False,
                )
            await self._create_indexes()
        except PyMongoError as e:
            logger.error("mongodb_connect_failed", error=str(e))
            raise

        self._initialized = True
        logger.info("mongodb_connected", database=self.settings.MONGODB_DATABASE)

    async def _create_indexes(self):
        await self.users.create_index("email", unique=True)
        await self.users.create_index("forgot_password_token", sparse=True)
        await self.courses.create_index("category")

    async def close(self):
        if self.client is not None and self._owns_client:
            self.client.close()
            logger.info("mongodb_disconnected")
        self._initialized = False

    @property
    def users(self):
        return self.client[self.settings.MONGODB_DATABASE][USERS_COLLECTION]

    @property
    def courses(self):
        return self.client[self.settings.MONGODB_DATABASE][COURSES_COLLECTION]
