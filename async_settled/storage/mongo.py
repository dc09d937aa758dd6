"""
MongoDB storage via Motor (async driver).

This module provides:
- MongoDocumentStore: DocumentStore over one Motor database
- MongoStoreManager: per-operator database routing plus the shared default pool
- Index creation and health check utilities
"""

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import LedgerConfig, MongoConfig
from ..exceptions import StorageError
from ..models import IDENTITY_FIELDS

logger = logging.getLogger(__name__)


class MongoDocumentStore:
    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database

    async def insert(self, collection: str, document: dict[str, Any]) -> bool:
        try:
            # insert_one writes _id back into the dict it is given
            await self.database[collection].insert_one(dict(document))
            return True
        except DuplicateKeyError:
            logger.debug(f"Duplicate key inserting into {self.database.name}.{collection}")
            return False
        except PyMongoError as e:
            raise StorageError(
                f"Insert into {self.database.name}.{collection} failed: {e}",
                operation="insert",
                collection=collection,
            ) from e

    async def update_conditional(
        self,
        collection: str,
        match: dict[str, Any],
        fields: dict[str, Any],
    ) -> bool:
        try:
            result = await self.database[collection].update_one(match, {"$set": fields})
        except PyMongoError as e:
            raise StorageError(
                f"Update on {self.database.name}.{collection} failed: {e}",
                operation="update",
                collection=collection,
            ) from e
        return result.matched_count == 1

    async def query_one(self, collection: str, match: dict[str, Any]) -> dict[str, Any] | None:
        try:
            return await self.database[collection].find_one(match, projection={"_id": False})
        except PyMongoError as e:
            raise StorageError(
                f"Query on {self.database.name}.{collection} failed: {e}",
                operation="query",
                collection=collection,
            ) from e


class MongoStoreManager:
    """Resolves one Motor client per connection URL and one database per operator."""

    def __init__(self, config: MongoConfig | None = None, ledger: LedgerConfig | None = None):
        self.config = config or MongoConfig()
        self.ledger = ledger or LedgerConfig()
        self._clients: dict[str, AsyncIOMotorClient] = {}
        self._stores: dict[str, MongoDocumentStore] = {}

    def _client(self, url: str) -> AsyncIOMotorClient:
        if url not in self._clients:
            self._clients[url] = AsyncIOMotorClient(
                url,
                tz_aware=True,
                serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
                maxPoolSize=self.config.max_pool_size,
            )
            logger.info(f"Opened MongoDB client for {_sanitize_mongodb_url(url)}")
        return self._clients[url]

    def operator_database_name(self, op_code: str) -> str:
        return f"{self.config.operator_database_prefix}{op_code}"

    def for_operator(self, op_code: str) -> MongoDocumentStore:
        if not op_code:
            raise ValueError("op_code is required")
        if op_code not in self._stores:
            url = self.config.operator_urls.get(op_code, self.config.url)
            database = self._client(url)[self.operator_database_name(op_code)]
            self._stores[op_code] = MongoDocumentStore(database)
        return self._stores[op_code]

    def default(self) -> MongoDocumentStore:
        return MongoDocumentStore(self._client(self.config.url)[self.config.default_database])

    async def ensure_indexes(self, op_code: str) -> list[str]:
        """Create the settlement collection indexes for one operator."""
        store = self.for_operator(op_code)
        collection = store.database[self.ledger.settled_collection]
        try:
            names = [
                await collection.create_index(
                    [(field, ASCENDING) for field in IDENTITY_FIELDS],
                    unique=True,
                    name="identity_unique",
                ),
                await collection.create_index("settled_time", name="settled_time"),
                await collection.create_index(
                    "deleted_at",
                    expireAfterSeconds=self.ledger.settled_ttl_seconds,
                    name="deleted_at_ttl",
                ),
            ]
        except PyMongoError as e:
            raise StorageError(
                f"Index creation for {op_code} failed: {e}",
                operation="create_index",
                collection=self.ledger.settled_collection,
            ) from e
        logger.info(f"Ensured indexes for {op_code}: {', '.join(names)}")
        return names

    async def ping(self) -> bool:
        """Check if the default MongoDB connection is healthy."""
        try:
            await self._client(self.config.url).admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def info(self) -> dict:
        return {
            "url": _sanitize_mongodb_url(self.config.url),
            "default_database": self.config.default_database,
            "operator_overrides": sorted(self.config.operator_urls),
        }

    async def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()
        self._stores.clear()


def _sanitize_mongodb_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url or "://" not in url:
        return url

    protocol, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    if ":" in credentials:
        username = credentials.split(":", 1)[0]
        return f"{protocol}://{username}:***@{host}"
    return url
