# obituary_search/database.py
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.collation import Collation
from pymongo.errors import PyMongoError

from obituary_search.config import (
    MONGO_COLLATION_LOCALE,
    MONGO_COLLATION_STRENGTH,
    MONGO_DB_NAME,
    MONGO_SNAPSHOT_READS,
    MONGO_URI,
)
from obituary_search.errors import StorageError
from obituary_search.logging_setup import logger
from obituary_search.predicates import CountQuery, FindQuery, Predicate
from obituary_search.services.processing.filter_builder import build_mongo_filter, build_projection, build_sort

class Database:
    client: AsyncIOMotorClient = None

db = Database()

async def connect_to_mongo():
    """Establishes the connection to the MongoDB database."""
    logger.info("Connecting to MongoDB...")
    # tz_aware so stored dates come back as UTC datetimes, comparable with the search bounds.
    db.client = AsyncIOMotorClient(MONGO_URI, tz_aware=True)
    logger.info("MongoDB connection established.")

async def close_mongo_connection():
    """Closes the connection to the MongoDB database."""
    if db.client is None:
        return
    logger.info("Closing MongoDB connection...")
    db.client.close()
    db.client = None
    logger.info("MongoDB connection closed.")


class MongoObituaryStore:
    """
    ObituaryStore backed by MongoDB through motor.
    """
    def __init__(
        self,
        client: AsyncIOMotorClient,
        database_name: str = MONGO_DB_NAME,
        snapshot_reads: bool = MONGO_SNAPSHOT_READS,
        collation_locale: str = MONGO_COLLATION_LOCALE,
    ):
        self.client = client
        self.database = client[database_name]
        self.snapshot_reads = snapshot_reads
        self.collation = Collation(locale=collation_locale, strength=MONGO_COLLATION_STRENGTH)

    async def execute_atomic(self, find: FindQuery, count: CountQuery) -> Tuple[List[Dict[str, Any]], int]:
        """
        Page and count share one session. With snapshot reads enabled both
        observe the same point-in-time view of the collection.
        """
        find_filter = build_mongo_filter(find.where)
        count_filter = find_filter if count.where == find.where else build_mongo_filter(count.where)
        try:
            async with await self.client.start_session(snapshot=self.snapshot_reads) as session:
                cursor = self.database[find.collection].find(
                    find_filter,
                    projection=build_projection(find.projection) if find.projection else None,
                    sort=build_sort(find.order_by) or None,
                    skip=find.skip,
                    limit=find.limit or 0,
                    collation=self.collation,
                    session=session,
                )
                rows = await cursor.to_list(length=None)
                total_count = await self.database[count.collection].count_documents(
                    count_filter, collation=self.collation, session=session,
                )
        except PyMongoError as e:
            raise StorageError(f"MongoDB query on '{find.collection}' failed: {e}") from e
        return rows, total_count

    async def find_one(
        self, collection: str, where: Predicate, projection: Sequence[str] = ()
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.database[collection].find_one(
                build_mongo_filter(where),
                projection=build_projection(projection) if projection else None,
            )
        except PyMongoError as e:
            raise StorageError(f"MongoDB lookup on '{collection}' failed: {e}") from e

    async def ping(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
