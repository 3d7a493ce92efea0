"""Cart operations for buyers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends

from src.models.cart import Cart, CartItem
from src.services.catalog.catalog_service import CatalogService, get_catalog_service
from src.services.errors import InvalidRequestError
from src.services.storage.document_store import CARTS, DocumentStore
from src.services.storage.mongo_store import get_document_store

logger = logging.getLogger(__name__)


def _require_positive(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidRequestError("quantity", "must be a positive integer")
    return quantity


class CartService:
    """One cart per buyer, created lazily and never deleted.

    Quantities are not checked against live stock here; that only happens when
    an order is placed.
    """

    def __init__(self, store: DocumentStore, catalog: CatalogService) -> None:
        self._store = store
        self._catalog = catalog

    async def get_cart(self, buyer_id: str) -> Cart:
        doc = await self._store.find_by_id(CARTS, buyer_id)
        if doc is None:
            return Cart(buyer_id=buyer_id)
        return Cart.model_validate(doc)

    async def add_item(self, buyer_id: str, product_id: str, quantity: int = 1) -> Cart:
        """Add a product, merging with an existing line for the same product."""

        _require_positive(quantity)
        await self._catalog.require_active_product(product_id)

        cart = await self.get_cart(buyer_id)
        for item in cart.items:
            if item.product_id == product_id:
                item.quantity += quantity
                break
        else:
            cart.items.append(CartItem(product_id=product_id, quantity=quantity))

        return await self._save(cart)

    async def set_quantity(self, buyer_id: str, product_id: str, quantity: int) -> Cart:
        _require_positive(quantity)

        cart = await self.get_cart(buyer_id)
        for item in cart.items:
            if item.product_id == product_id:
                item.quantity = quantity
                return await self._save(cart)
        return cart

    async def remove_item(self, buyer_id: str, product_id: str) -> Cart:
        cart = await self.get_cart(buyer_id)
        remaining = [item for item in cart.items if item.product_id != product_id]
        if len(remaining) == len(cart.items):
            return cart
        cart.items = remaining
        return await self._save(cart)

    async def clear_cart(self, buyer_id: str) -> Cart:
        return await self._save(Cart(buyer_id=buyer_id))

    async def _save(self, cart: Cart) -> Cart:
        now = datetime.now(UTC)
        doc = await self._store.conditional_update(
            CARTS,
            cart.buyer_id,
            {},
            {"$set": {"items": cart.items_document(), "updated_at": now}},
            upsert=True,
        )
        logger.debug("Saved cart for buyer %s (%d items)", cart.buyer_id, len(cart.items))
        return Cart.model_validate(doc)


def get_cart_service(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CartService:
    return CartService(store, catalog)


CartDependency = Annotated[CartService, Depends(get_cart_service)]
