import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

logger = structlog.get_logger(__name__)

INDEX_DEFINITIONS = {
    "options": [
        {"keys": [("key", ASCENDING)], "options": {"unique": True}},
    ],
}


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """
    Creates the MongoDB indexes the service relies on if they are missing.

    Idempotent, so it runs on every startup.
    """
    for collection_name, indexes in INDEX_DEFINITIONS.items():
        collection = db[collection_name]
        for index in indexes:
            keys = index["keys"]
            try:
                await collection.create_index(
                    keys,
                    name=f"{collection_name}_{'_'.join(k[0] for k in keys)}_idx",
                    **index.get("options", {}),
                )
            except PyMongoError as e:
                logger.error(
                    "Failed to create index",
                    collection=collection_name,
                    error=str(e),
                )
        logger.info("Indexes ensured", collection=collection_name, count=len(indexes))
