"""
MongoDB backend (motor).
"""

from typing import Any, Dict, List, Optional, Sequence

import pymongo.errors
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from mediassist.config import Settings
from mediassist.core.logging import get_logger
from mediassist.db.base import DocumentCollection, DocumentStore, DuplicateKeyError, Query, Sort

logger = get_logger(__name__)

# Failures worth another attempt while the database is still coming up
RETRYABLE_EXCEPTIONS = (
    pymongo.errors.ServerSelectionTimeoutError,
    pymongo.errors.AutoReconnect,
    pymongo.errors.NetworkTimeout,
)


class MongoCollection(DocumentCollection):
    def __init__(self, collection: AsyncIOMotorCollection):
        self.name = collection.name
        self._collection = collection

    async def insert_one(self, document: Dict[str, Any]) -> str:
        try:
            result = await self._collection.insert_one(document)
        except pymongo.errors.DuplicateKeyError as e:
            raise DuplicateKeyError(str(e)) from e
        return result.inserted_id

    async def find_one(self, query: Query) -> Optional[Dict[str, Any]]:
        return await self._collection.find_one(query)

    async def find(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self._collection.find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, query: Query) -> int:
        return await self._collection.count_documents(query)

    async def update_one(
        self,
        query: Query,
        set_fields: Optional[Dict[str, Any]] = None,
        push: Optional[Dict[str, Any]] = None,
    ) -> bool:
        update: Dict[str, Any] = {}
        if set_fields:
            update["$set"] = set_fields
        if push:
            update["$push"] = push
        if not update:
            return await self._collection.count_documents(query, limit=1) > 0
        try:
            result = await self._collection.update_one(query, update)
        except pymongo.errors.DuplicateKeyError as e:
            raise DuplicateKeyError(str(e)) from e
        return result.matched_count > 0


class MongoStore(DocumentStore):
    def __init__(self, settings: Settings, index_specs: Dict[str, Sequence[Dict[str, Any]]]):
        self._settings = settings
        self._index_specs = index_specs
        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
            socketTimeoutMS=settings.mongodb_socket_timeout_ms,
            tz_aware=False,
        )
        self._db = self._client[settings.mongodb_database]

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self._db[name])

    async def connect(self) -> None:
        attempt = retry(
            wait=wait_exponential(multiplier=1, min=1, max=10),
            stop=stop_after_attempt(self._settings.store_connect_attempts),
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            before_sleep=lambda retry_state: logger.warning(
                f"MongoDB not reachable, retrying (attempt {retry_state.attempt_number})..."
            ),
            reraise=True,
        )
        await attempt(self._connect_once)()
        logger.info(f"MongoDB connected: database={self._settings.mongodb_database}")

    async def _connect_once(self) -> None:
        await self._client.admin.command("ping")
        await self.ensure_indexes()

    async def ensure_indexes(self) -> None:
        for collection_name, specs in self._index_specs.items():
            collection = self._db[collection_name]
            for spec in specs:
                await collection.create_index(list(spec["keys"]), unique=spec.get("unique", False))
            logger.info(f"Indexes ensured for '{collection_name}'", count=len(specs))

    async def ping(self) -> bool:
        try:
            await self._client.admin.command("ping")
            return True
        except pymongo.errors.PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def close(self) -> None:
        self._client.close()
        logger.info("MongoDB connection closed")
