"""
MongoDB backed cache of upstream analytics responses.

Entries are append-only documents ``{request, response, contentType,
cachedAt}``. Expiry is delegated to a MongoDB TTL index on ``cachedAt``; a
lookup always returns the most recent document for a key.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from bson.errors import BSONError
from pymongo.errors import OperationFailure, PyMongoError

from shared.logging import get_logger

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector

INDEX_OPTIONS_CONFLICT = 85


@dataclass(frozen=True)
class CacheEntry:
    """A cached upstream response."""

    key: str
    response_body: bytes
    cached_at: datetime
    content_type: Optional[str] = None

    @classmethod
    def from_document(cls, document: dict) -> "CacheEntry":
        body = document["response"]
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            key=document["request"],
            response_body=bytes(body),
            cached_at=document["cachedAt"],
            content_type=document.get("contentType"),
        )


class ResponseCache:
    """Append-only response cache with TTL expiry."""

    def __init__(
        self,
        mongo_uri: str,
        database: str,
        collection: str = "cache",
        *,
        ttl_seconds: int = 600,
        timeout_ms: int = 5000,
        metrics: Optional["MetricsCollector"] = None,
        client: Optional[Any] = None,
    ):
        self.mongo_uri = mongo_uri
        self.database_name = database
        self.collection_name = collection
        self.ttl_seconds = ttl_seconds
        self.timeout_ms = timeout_ms
        self.metrics = metrics
        self.logger = get_logger("proxy.response_cache")
        self._client = client
        self._collection = None

    @property
    def client(self):
        if self._client is None:
            self._client = AsyncIOMotorClient(
                self.mongo_uri,
                serverSelectionTimeoutMS=self.timeout_ms,
            )
        return self._client

    @property
    def collection(self):
        if self._collection is None:
            self._collection = self.client[self.database_name][self.collection_name]
        return self._collection

    async def start(self) -> None:
        """Connect and make sure the expiry and lookup indexes exist.

        A store that cannot be reached at startup is logged, not fatal: lookups
        then miss and every request is forwarded upstream.
        """
        try:
            await self._ensure_ttl_index()
            await self.collection.create_index(
                [("request", ASCENDING), ("cachedAt", DESCENDING)],
                name="request_recent",
            )
            self.logger.info(
                "Response cache started",
                collection=self.collection_name,
                ttl_seconds=self.ttl_seconds,
            )
        except PyMongoError as e:
            self.logger.error("Failed to prepare response cache", error=str(e))

    async def _ensure_ttl_index(self) -> None:
        try:
            await self.collection.create_index(
                [("cachedAt", ASCENDING)],
                name="cachedAt_ttl",
                expireAfterSeconds=self.ttl_seconds,
            )
        except OperationFailure as e:
            if e.code != INDEX_OPTIONS_CONFLICT:
                raise
            # An index from an earlier deployment has another expiry
            await self.client[self.database_name].command({
                "collMod": self.collection_name,
                "index": {
                    "keyPattern": {"cachedAt": 1},
                    "expireAfterSeconds": self.ttl_seconds,
                },
            })
            self.logger.info("Updated cache expiry", ttl_seconds=self.ttl_seconds)

    async def stop(self) -> None:
        """Close the MongoDB client."""
        if self._client is not None:
            self._client.close()
            self.logger.info("Response cache stopped")

    async def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the most recent entry for ``key``; store errors count as a miss."""
        try:
            document = await self.collection.find_one(
                {"request": key},
                sort=[("cachedAt", DESCENDING)],
            )
        except PyMongoError as e:
            self.logger.warning("Error looking up item in cache", key=key, error=str(e))
            self._record("error")
            return None

        if document is None:
            self._record("miss")
            return None

        self._record("hit")
        self.logger.debug("Cache hit", key=key)
        return CacheEntry.from_document(document)

    async def store(self, key: str, response_body: bytes, content_type: Optional[str] = None) -> bool:
        """Append a new entry for ``key``. Failures are logged and reported as False."""
        document = {
            "request": key,
            "response": response_body,
            "contentType": content_type,
            "cachedAt": datetime.now(timezone.utc),
        }
        try:
            await self.collection.insert_one(document)
            return True
        except (PyMongoError, BSONError) as e:
            self.logger.warning("Error inserting data in cache", key=key, error=str(e))
            return False

    async def ping(self) -> bool:
        """Check that the store answers."""
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    def _record(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("proxy_cache_lookups_total", result=result)
