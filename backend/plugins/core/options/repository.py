from datetime import UTC, datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError
from structlog import get_logger
from utils.exceptions import ServiceError

from .models import OptionsDocument

logger = get_logger(__name__)


class OptionsRepository:
    """Handles all database operations for the 'options' collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    async def read(self, key: str) -> dict[str, Any] | None:
        """Returns the stored options blob for a plugin, or None if never saved."""
        try:
            doc = await self._collection.find_one({"key": key})
        except PyMongoError as e:
            logger.error("DB error reading options", key=key, error=str(e))
            raise ServiceError(f"Database error while reading options for '{key}'")

        if not doc:
            return None
        return OptionsDocument(**doc).value

    async def write(self, key: str, options: dict[str, Any]) -> bool:
        """Replaces the stored options blob for a plugin, creating it if needed."""
        try:
            now = datetime.now(UTC)
            result = await self._collection.update_one(
                {"key": key},
                {
                    "$set": {"value": options, "updated_at": now},
                    "$setOnInsert": {"key": key, "created_at": now},
                },
                upsert=True,
            )
        except PyMongoError as e:
            logger.error("DB error writing options", key=key, error=str(e))
            raise ServiceError(f"Database error while saving options for '{key}'")

        return result.acknowledged
