"""MongoDB-backed document store."""

from __future__ import annotations

import logging
from typing import Any

from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from src.config import settings
from src.services.errors import StoreUnavailableError
from src.services.storage.document_store import (
    CARTS,
    ORDERS,
    PRODUCTS,
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    SortSpec,
)

logger = logging.getLogger(__name__)


class MongoDocumentStore(DocumentStore):
    """Store implementation on top of pymongo's asyncio client.

    Single-document operations map to MongoDB primitives that are atomic on
    the server, so ``conditional_update`` is a genuine compare-and-update.
    """

    def __init__(self, client: AsyncMongoClient, database: str) -> None:
        self.client = client
        self.db = client[database]

    async def ensure_indexes(self) -> None:
        """Create the secondary indexes used by the services."""
        try:
            await self.db[ORDERS].create_index([("buyer_id", ASCENDING)])
            await self.db[ORDERS].create_index([("items.seller_id", ASCENDING)])
            await self.db[ORDERS].create_index([("status", ASCENDING)])
            await self.db[PRODUCTS].create_index([("category", ASCENDING)])
            await self.db[PRODUCTS].create_index([("seller_id", ASCENDING)])
            await self.db[CARTS].create_index([("updated_at", DESCENDING)])
        except PyMongoError as exc:
            logger.error("Failed to create MongoDB indexes: %s", exc, exc_info=True)
            raise StoreUnavailableError() from exc

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        return await self.find_one(collection, {"_id": doc_id})

    async def find_one(self, collection: str, filter: Document) -> Document | None:
        try:
            return await self.db[collection].find_one(filter)
        except PyMongoError as exc:
            raise self._unavailable("find_one", collection, exc) from exc

    async def find_many(
        self,
        collection: str,
        filter: Document | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        try:
            cursor = self.db[collection].find(filter or {})
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(None)
        except PyMongoError as exc:
            raise self._unavailable("find_many", collection, exc) from exc

    async def insert(self, collection: str, document: Document) -> Document:
        try:
            await self.db[collection].insert_one(document)
        except PyMongoError as exc:
            raise self._unavailable("insert", collection, exc) from exc
        return document

    async def conditional_update(
        self,
        collection: str,
        doc_id: str,
        predicate: Document,
        mutation: Document,
        *,
        upsert: bool = False,
    ) -> Document | None:
        query: dict[str, Any] = {"_id": doc_id, **predicate}
        try:
            return await self.db[collection].find_one_and_update(
                query,
                mutation,
                upsert=upsert,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise self._unavailable("conditional_update", collection, exc) from exc

    async def update_many(
        self, collection: str, filter: Document, mutation: Document
    ) -> int:
        try:
            result = await self.db[collection].update_many(filter, mutation)
        except PyMongoError as exc:
            raise self._unavailable("update_many", collection, exc) from exc
        return result.modified_count

    async def ping(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    async def close(self) -> None:
        await self.client.close()

    @staticmethod
    def _unavailable(
        operation: str, collection: str, exc: Exception
    ) -> StoreUnavailableError:
        logger.error(
            "MongoDB %s on %s failed: %s",
            operation,
            collection,
            exc,
            extra={"operation": operation, "collection": collection},
        )
        return StoreUnavailableError()


def create_mongo_store(url: str | None = None, database: str | None = None) -> MongoDocumentStore:
    """Factory function to create a MongoDB store with bounded timeouts."""
    timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    client: AsyncMongoClient = AsyncMongoClient(
        url or settings.MONGO_URL,
        tz_aware=True,
        timeoutMS=timeout_ms,
        serverSelectionTimeoutMS=timeout_ms,
    )
    return MongoDocumentStore(client, database or settings.MONGO_DB)


_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Return the process-wide document store selected by configuration."""

    global _document_store
    if _document_store is None:
        if settings.uses_memory_store:
            logger.info("Using in-memory document store")
            _document_store = InMemoryDocumentStore()
        else:
            _document_store = create_mongo_store()
    return _document_store
