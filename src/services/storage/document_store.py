"""Document store abstraction and an in-process implementation."""

from __future__ import annotations

import asyncio
import copy
import logging
import operator
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from threading import RLock
from typing import Any

logger = logging.getLogger(__name__)

Document = dict[str, Any]
SortSpec = Sequence[tuple[str, int]]

PRODUCTS = "products"
CARTS = "carts"
ORDERS = "orders"
USERS = "users"


class DocumentStore(ABC):
    """Persistent store contract used by the catalog, cart and order services.

    Filters and mutations use the MongoDB query vocabulary (``$gte``, ``$in``,
    ``$set``, ``$inc``...) so both implementations share one dialect. Each call
    is an independent atomic operation on a single document, except
    ``update_many`` which is atomic per document only.
    """

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        """Return the document with the given id, if any."""

    @abstractmethod
    async def find_one(self, collection: str, filter: Document) -> Document | None:
        """Return the first document matching the filter."""

    @abstractmethod
    async def find_many(
        self,
        collection: str,
        filter: Document | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """Return all documents matching the filter."""

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> Document:
        """Insert a document; ``_id`` must already be set."""

    @abstractmethod
    async def conditional_update(
        self,
        collection: str,
        doc_id: str,
        predicate: Document,
        mutation: Document,
        *,
        upsert: bool = False,
    ) -> Document | None:
        """Apply ``mutation`` to the document only if it matches ``predicate``.

        Returns the updated document, or None when the document is missing or
        the predicate did not hold. Upserts are only meaningful with an empty
        predicate.
        """

    @abstractmethod
    async def update_many(
        self, collection: str, filter: Document, mutation: Document
    ) -> int:
        """Apply ``mutation`` to every matching document; return the count."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend is reachable."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryDocumentStore(DocumentStore):
    """Naive in-process store for local development and tests."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: dict[str, dict[str, Document]] = {}

    def _collection(self, name: str) -> dict[str, Document]:
        return self._collections.setdefault(name, {})

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        await asyncio.sleep(0)
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def find_one(self, collection: str, filter: Document) -> Document | None:
        await asyncio.sleep(0)
        with self._lock:
            for doc in self._collection(collection).values():
                if _matches(doc, filter):
                    return copy.deepcopy(doc)
        return None

    async def find_many(
        self,
        collection: str,
        filter: Document | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        await asyncio.sleep(0)
        with self._lock:
            docs = [
                copy.deepcopy(doc)
                for doc in self._collection(collection).values()
                if _matches(doc, filter or {})
            ]

        for field, direction in reversed(list(sort or [])):
            docs.sort(
                key=lambda d: (d.get(field) is not None, d.get(field)),
                reverse=direction < 0,
            )
        if limit:
            docs = docs[:limit]
        return docs

    async def insert(self, collection: str, document: Document) -> Document:
        await asyncio.sleep(0)
        doc_id = document.get("_id")
        if not doc_id:
            raise ValueError("Documents must carry an _id before insertion")

        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                raise ValueError(f"Duplicate _id {doc_id} in {collection}")
            docs[doc_id] = copy.deepcopy(document)
        return copy.deepcopy(document)

    async def conditional_update(
        self,
        collection: str,
        doc_id: str,
        predicate: Document,
        mutation: Document,
        *,
        upsert: bool = False,
    ) -> Document | None:
        await asyncio.sleep(0)
        with self._lock:
            docs = self._collection(collection)
            doc = docs.get(doc_id)
            if doc is None:
                if not upsert:
                    return None
                doc = {"_id": doc_id}
                _apply(doc, mutation, inserting=True)
                docs[doc_id] = doc
                return copy.deepcopy(doc)

            if not _matches(doc, predicate):
                return None
            _apply(doc, mutation)
            return copy.deepcopy(doc)

    async def update_many(
        self, collection: str, filter: Document, mutation: Document
    ) -> int:
        await asyncio.sleep(0)
        count = 0
        with self._lock:
            for doc in self._collection(collection).values():
                if _matches(doc, filter):
                    _apply(doc, mutation)
                    count += 1
        return count

    async def ping(self) -> bool:
        return True


_COMPARISONS = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


def _resolve(value: Any, parts: list[str]) -> list[Any]:
    if isinstance(value, list):
        if not parts:
            return list(value)
        return [found for item in value for found in _resolve(item, parts)]
    if not parts:
        return [value]
    if isinstance(value, dict) and parts[0] in value:
        return _resolve(value[parts[0]], parts[1:])
    return []


def _matches(doc: Document, filter: Document) -> bool:
    for key, condition in filter.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in condition):
                return False
            continue

        values = _resolve(doc, key.split("."))
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            if not _match_operators(values, condition):
                return False
        elif condition is None:
            if values and any(v is not None for v in values):
                return False
        elif condition not in values:
            return False
    return True


def _match_operators(values: list[Any], operators: Document) -> bool:
    for op, argument in operators.items():
        if op == "$options":
            continue
        if op == "$in":
            ok = any(v in argument for v in values)
        elif op == "$ne":
            ok = all(v != argument for v in values)
        elif op in _COMPARISONS:
            compare = _COMPARISONS[op]
            ok = any(v is not None and compare(v, argument) for v in values)
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in operators.get("$options", "") else 0
            ok = any(
                isinstance(v, str) and re.search(argument, v, flags) for v in values
            )
        else:
            raise ValueError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True


def _apply(doc: Document, mutation: Document, inserting: bool = False) -> None:
    for op, fields in mutation.items():
        if op == "$set":
            for field, value in fields.items():
                doc[field] = copy.deepcopy(value)
        elif op == "$inc":
            for field, amount in fields.items():
                doc[field] = doc.get(field, 0) + amount
        elif op == "$setOnInsert":
            if inserting:
                for field, value in fields.items():
                    doc[field] = copy.deepcopy(value)
        else:
            raise ValueError(f"Unsupported update operator: {op}")
