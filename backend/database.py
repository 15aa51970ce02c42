from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

    async def connect(self):
        try:
            mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
            db_name = os.environ.get('DB_NAME', 'cooltrack')
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[db_name]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {db_name}")

            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_db(self):
        return self.db

    async def _create_indexes(self):
        """Create MongoDB indexes for efficient queries."""
        try:
            # Users - username and email are login identifiers
            await self.db.users.create_index("user_id", unique=True)
            await self.db.users.create_index("username", unique=True)
            await self.db.users.create_index("email", unique=True)
            await self.db.users.create_index("firebase_uid", unique=True, sparse=True)

            # AC units - always listed per owner
            await self.db.ac_units.create_index("unit_id", unique=True)
            await self.db.ac_units.create_index([("user_id", 1), ("next_service_date", 1)])

            # One preferences document per user
            await self.db.notification_preferences.create_index("user_id", unique=True)

            # Reminder history and daily dedupe lookups
            await self.db.reminders.create_index("reminder_id", unique=True)
            await self.db.reminders.create_index([("user_id", 1), ("sent_at", -1)])
            await self.db.reminders.create_index([("unit_id", 1), ("trigger", 1), ("reminder_date", 1)])

            await self.db.audit_logs.create_index([("actor_id", 1), ("timestamp", -1)])
            await self.db.audit_logs.create_index([("resource_type", 1), ("resource_id", 1)])
            await self.db.message_logs.create_index([("user_id", 1), ("created_at", -1)])

            logger.info("Database indexes created")
        except Exception as e:
            logger.error(f"Failed to create indexes: {e}")

database = Database()
