"""Catalog operations: product CRUD, browsing and search."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Depends

from src.config import settings
from src.models.product import Product, ProductPayload, ProductUpdate, StockLevel
from src.models.user import Principal, Role
from src.services.cache.cache_service import (
    CATALOG_CACHE_PATTERNS,
    CacheService,
    get_cache_service,
    product_detail_key,
    product_list_key,
    search_key,
)
from src.services.errors import (
    ForbiddenError,
    InvalidRequestError,
    ProductNotFoundError,
)
from src.services.storage.document_store import PRODUCTS, DocumentStore
from src.services.storage.mongo_store import get_document_store

logger = logging.getLogger(__name__)


class CatalogService:
    """Owns Product records.

    Browsing and search go through the cache; ``get_product`` always reads the
    live record. Stock edits here are absolute overwrites made by the owning
    seller, unlike the conditional arithmetic used by the order workflow.
    """

    def __init__(self, store: DocumentStore, cache: CacheService) -> None:
        self._store = store
        self._cache = cache

    async def get_product(self, product_id: str) -> Product | None:
        doc = await self._store.find_by_id(PRODUCTS, product_id)
        return Product.model_validate(doc) if doc else None

    async def require_active_product(self, product_id: str) -> Product:
        product = await self.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)
        return product

    async def browse_products(self, category: str | None = None) -> list[dict[str, Any]]:
        async def compute() -> list[dict[str, Any]]:
            query: dict[str, Any] = {"is_active": True}
            if category and category.strip():
                query["category"] = {
                    "$regex": re.escape(category.strip()),
                    "$options": "i",
                }
            docs = await self._store.find_many(
                PRODUCTS, query, sort=[("created_at", -1)]
            )
            return [self._serialize(doc) for doc in docs]

        return await self._cache.get_or_compute(
            product_list_key(category),
            settings.PRODUCT_LIST_TTL_SECONDS,
            compute,
        )

    async def get_product_detail(self, product_id: str) -> dict[str, Any]:
        async def compute() -> dict[str, Any]:
            product = await self.require_active_product(product_id)
            return product.model_dump(mode="json", by_alias=True)

        return await self._cache.get_or_compute(
            product_detail_key(product_id),
            settings.PRODUCT_DETAIL_TTL_SECONDS,
            compute,
        )

    async def search_products(self, term: str) -> dict[str, Any]:
        normalized = (term or "").strip().lower()
        if not normalized:
            raise InvalidRequestError("q", "Search query is required")

        async def compute() -> dict[str, Any]:
            pattern = {"$regex": re.escape(normalized), "$options": "i"}
            docs = await self._store.find_many(
                PRODUCTS,
                {
                    "is_active": True,
                    "$or": [
                        {"name": pattern},
                        {"description": pattern},
                        {"category": pattern},
                    ],
                },
                limit=settings.SEARCH_RESULT_LIMIT,
            )
            return {
                "query": normalized,
                "count": len(docs),
                "products": [self._serialize(doc) for doc in docs],
                "timestamp": datetime.now(UTC).isoformat(),
            }

        return await self._cache.get_or_compute(
            search_key(normalized), settings.SEARCH_TTL_SECONDS, compute
        )

    async def list_seller_products(self, seller_id: str) -> list[Product]:
        docs = await self._store.find_many(
            PRODUCTS, {"seller_id": seller_id}, sort=[("created_at", -1)]
        )
        return [Product.model_validate(doc) for doc in docs]

    async def create_product(self, seller: Principal, payload: ProductPayload) -> Product:
        if seller.role is not Role.SELLER:
            raise ForbiddenError("Only sellers can add products")

        product = Product(seller_id=seller.id, **payload.model_dump())
        await self._store.insert(PRODUCTS, product.to_document())
        logger.info(
            "Product %s created by seller %s",
            product.id,
            seller.id,
            extra={"product_id": product.id, "seller_id": seller.id},
        )
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return product

    async def update_product(
        self, seller: Principal, product_id: str, payload: ProductUpdate
    ) -> Product:
        product = await self._require_owned(seller, product_id)

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return product
        changes["updated_at"] = datetime.now(UTC)

        doc = await self._store.conditional_update(
            PRODUCTS, product.id, {}, {"$set": changes}
        )
        if doc is None:
            raise ProductNotFoundError(product_id)

        logger.info("Product %s updated", product_id, extra={"fields": sorted(changes)})
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return Product.model_validate(doc)

    async def deactivate_product(self, principal: Principal, product_id: str) -> Product:
        return await self.set_product_status(principal, product_id, is_active=False)

    async def set_product_status(
        self, principal: Principal, product_id: str, *, is_active: bool
    ) -> Product:
        """Show or hide a product; owners and admins only."""

        if principal.is_admin:
            product = await self.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
        else:
            product = await self._require_owned(principal, product_id)

        doc = await self._store.conditional_update(
            PRODUCTS,
            product.id,
            {},
            {"$set": {"is_active": is_active, "updated_at": datetime.now(UTC)}},
        )
        if doc is None:
            raise ProductNotFoundError(product_id)

        logger.info(
            "Product %s %s by %s",
            product_id,
            "activated" if is_active else "deactivated",
            principal.id,
        )
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return Product.model_validate(doc)

    async def bulk_update_stock(
        self, seller: Principal, levels: list[StockLevel]
    ) -> list[Product]:
        """Overwrite stock counters for several of the seller's products."""

        # Ownership is checked for every line before anything is written.
        for level in levels:
            await self._require_owned(seller, level.product_id)

        updated: list[Product] = []
        now = datetime.now(UTC)
        for level in levels:
            doc = await self._store.conditional_update(
                PRODUCTS,
                level.product_id,
                {},
                {"$set": {"stock": level.stock, "updated_at": now}},
            )
            if doc is not None:
                updated.append(Product.model_validate(doc))

        logger.info(
            "Seller %s overwrote stock for %d products", seller.id, len(updated)
        )
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return updated

    async def deactivate_seller_products(self, seller_id: str) -> int:
        count = await self._store.update_many(
            PRODUCTS,
            {"seller_id": seller_id, "is_active": True},
            {"$set": {"is_active": False, "updated_at": datetime.now(UTC)}},
        )
        logger.info("Deactivated %d products of seller %s", count, seller_id)
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return count

    async def _require_owned(self, seller: Principal, product_id: str) -> Product:
        if seller.role is not Role.SELLER:
            raise ForbiddenError("Only sellers can modify products")
        product = await self.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.seller_id != seller.id:
            raise ForbiddenError("You can only edit your own products")
        return product

    @staticmethod
    def _serialize(doc: dict[str, Any]) -> dict[str, Any]:
        return Product.model_validate(doc).model_dump(mode="json", by_alias=True)


def get_catalog_service(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> CatalogService:
    return CatalogService(store, cache)


CatalogDependency = Annotated[CatalogService, Depends(get_catalog_service)]
