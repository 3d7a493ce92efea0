"""Order placement, cancellation and status workflow.

Placing an order turns the buyer's cart into a durable Order while never
overselling stock. The store offers atomic single-document updates only, so
stock for an N-line order is reserved with N conditional decrements and any
failure part-way through is compensated by re-incrementing what was already
taken, newest first, before the original error is raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Annotated, TypeVar

from fastapi import Depends

from src.config import settings
from src.models.cart import Cart, CartItem
from src.models.order import (
    DEFAULT_SHIPPING_ADDRESS,
    FORWARD_RANK,
    ORDER_STATUSES,
    TERMINAL_STATUSES,
    Order,
    OrderItem,
)
from src.models.product import Product
from src.models.user import Principal, UserProfile
from src.services.cache.cache_service import (
    CATALOG_CACHE_PATTERNS,
    CacheService,
    get_cache_service,
)
from src.services.errors import (
    EmptyCartError,
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
    ProductNotFoundError,
    StoreUnavailableError,
)
from src.services.orders.policies import can_cancel, can_update_status, can_view
from src.services.storage.document_store import (
    CARTS,
    ORDERS,
    PRODUCTS,
    USERS,
    DocumentStore,
)
from src.services.storage.mongo_store import get_document_store

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CANCELLABLE = [status for status in ORDER_STATUSES if status not in TERMINAL_STATUSES]

_CART_CLEAR_ATTEMPTS = 3

CART_NOT_CLEARED_WARNING = "Order placed, but the cart could not be cleared"


@dataclass(frozen=True)
class Reservation:
    """Stock taken from one product during a single placement call."""

    product_id: str
    quantity: int


@dataclass
class PlacedOrder:
    order: Order
    warnings: list[str] = field(default_factory=list)


class OrderWorkflow:
    """Turns carts into orders and drives their status changes."""

    def __init__(
        self,
        store: DocumentStore,
        cache: CacheService,
        *,
        store_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._timeout = store_timeout or settings.STORE_TIMEOUT_SECONDS

    # === Placement ===

    async def place_order(
        self, buyer_id: str, shipping_address: str | None = None
    ) -> PlacedOrder:
        """Place an order from the buyer's cart.

        On success stock is reserved and the order persisted. On failure no
        stock is left mutated: nothing is reserved until every line passes the
        availability check, and reservations made before a later failure are
        rolled back.
        """

        cart = await self._load_cart(buyer_id)
        if cart is None or cart.is_empty:
            raise EmptyCartError()

        products = await self._load_products(cart.items)
        self._check_availability(cart.items, products)
        address = shipping_address or await self._buyer_address(buyer_id)

        reservations = await self._reserve(cart.items, products)
        order = self._build_order(buyer_id, cart.items, products, address)
        try:
            await self._call(self._store.insert(ORDERS, order.to_document()))
        except BaseException:
            # Also runs on task cancellation; the release itself is shielded.
            logger.warning(
                "Persisting order for buyer %s failed; releasing reserved stock",
                buyer_id,
            )
            await asyncio.shield(
                self._release_unless_persisted(order.id, reservations)
            )
            raise

        logger.info(
            "Order %s placed by buyer %s",
            order.id,
            buyer_id,
            extra={
                "order_id": order.id,
                "buyer_id": buyer_id,
                "total_price": order.total_price,
                "items": len(order.items),
            },
        )

        warnings: list[str] = []
        try:
            cleared = await self._remove_ordered_lines(buyer_id, cart.items)
        except Exception as exc:
            logger.warning(
                "Failed to clear cart for buyer %s after order %s, "
                "but the order stands: %s",
                buyer_id,
                order.id,
                exc,
            )
            cleared = False
        if not cleared:
            warnings.append(CART_NOT_CLEARED_WARNING)

        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return PlacedOrder(order=order, warnings=warnings)

    async def _remove_ordered_lines(
        self, buyer_id: str, ordered: list[CartItem]
    ) -> bool:
        """Subtract the ordered quantities from the cart, keeping newer lines.

        The cart's ``updated_at`` acts as a version so a concurrent cart edit
        is re-read instead of overwritten.
        """

        ordered_qty = {item.product_id: item.quantity for item in ordered}
        for _ in range(_CART_CLEAR_ATTEMPTS):
            doc = await self._call(self._store.find_by_id(CARTS, buyer_id))
            if doc is None:
                return True
            remaining = []
            for item in Cart.model_validate(doc).items:
                left = item.quantity - ordered_qty.get(item.product_id, 0)
                if left > 0:
                    remaining.append({"product_id": item.product_id, "quantity": left})

            updated = await self._call(
                self._store.conditional_update(
                    CARTS,
                    buyer_id,
                    {"updated_at": doc.get("updated_at")},
                    {"$set": {"items": remaining, "updated_at": datetime.now(UTC)}},
                )
            )
            if updated is not None:
                return True
            logger.debug("Cart of buyer %s changed while clearing; retrying", buyer_id)

        logger.warning(
            "Gave up clearing cart of buyer %s after concurrent edits", buyer_id
        )
        return False

    async def _load_cart(self, buyer_id: str) -> Cart | None:
        doc = await self._call(self._store.find_by_id(CARTS, buyer_id))
        return Cart.model_validate(doc) if doc else None

    async def _load_products(self, items: list[CartItem]) -> dict[str, Product]:
        # Always the live records: prices and stock are never taken from cache.
        products: dict[str, Product] = {}
        for item in items:
            doc = await self._call(self._store.find_by_id(PRODUCTS, item.product_id))
            if doc is None:
                raise ProductNotFoundError(item.product_id)
            product = Product.model_validate(doc)
            if not product.is_active:
                raise ProductNotFoundError(item.product_id)
            products[item.product_id] = product
        return products

    @staticmethod
    def _check_availability(
        items: list[CartItem], products: dict[str, Product]
    ) -> None:
        for item in items:
            product = products[item.product_id]
            if product.stock < item.quantity:
                raise InsufficientStockError(
                    product.id,
                    requested=item.quantity,
                    available=product.stock,
                    product_name=product.name,
                )

    async def _buyer_address(self, buyer_id: str) -> str:
        doc = await self._call(self._store.find_by_id(USERS, buyer_id))
        if doc:
            profile = UserProfile.model_validate(doc)
            if profile.address:
                return profile.address
        return DEFAULT_SHIPPING_ADDRESS

    async def _reserve(
        self, items: list[CartItem], products: dict[str, Product]
    ) -> list[Reservation]:
        reservations: list[Reservation] = []
        for item in items:
            try:
                doc = await self._call(
                    self._store.conditional_update(
                        PRODUCTS,
                        item.product_id,
                        {"stock": {"$gte": item.quantity}},
                        {"$inc": {"stock": -item.quantity}},
                    )
                )
            except BaseException:
                logger.warning(
                    "Reserving %d of product %s failed; rolling back %d reservations",
                    item.quantity,
                    item.product_id,
                    len(reservations),
                )
                await asyncio.shield(self._release(reservations))
                raise

            if doc is None:
                # Lost the race to a concurrent order since the availability check.
                await asyncio.shield(self._release(reservations))
                available = await self._current_stock(item.product_id)
                raise InsufficientStockError(
                    item.product_id,
                    requested=item.quantity,
                    available=available,
                    product_name=products[item.product_id].name,
                )

            reservations.append(Reservation(item.product_id, item.quantity))
        return reservations

    async def _release(self, reservations: list[Reservation]) -> None:
        for reservation in reversed(reservations):
            try:
                doc = await self._call(
                    self._store.conditional_update(
                        PRODUCTS,
                        reservation.product_id,
                        {},
                        {"$inc": {"stock": reservation.quantity}},
                    )
                )
            except Exception:
                logger.error(
                    "Failed to release %d units of product %s",
                    reservation.quantity,
                    reservation.product_id,
                    exc_info=True,
                    extra={"product_id": reservation.product_id},
                )
                continue
            if doc is None:
                logger.error(
                    "Product %s vanished before %d reserved units were released",
                    reservation.product_id,
                    reservation.quantity,
                )

    async def _release_unless_persisted(
        self, order_id: str, reservations: list[Reservation]
    ) -> None:
        # A timed-out or cancelled insert may still have landed on the server.
        try:
            persisted = await self._call(self._store.find_by_id(ORDERS, order_id))
        except StoreUnavailableError:
            persisted = None
        if persisted is not None:
            logger.warning(
                "Order %s was stored despite the failed insert; keeping its stock",
                order_id,
            )
            return
        await self._release(reservations)

    async def _current_stock(self, product_id: str) -> int:
        try:
            doc = await self._call(self._store.find_by_id(PRODUCTS, product_id))
        except StoreUnavailableError:
            return 0
        return int(doc.get("stock", 0)) if doc else 0

    @staticmethod
    def _build_order(
        buyer_id: str,
        items: list[CartItem],
        products: dict[str, Product],
        address: str,
    ) -> Order:
        lines = [
            OrderItem(
                product_id=item.product_id,
                name=products[item.product_id].name,
                seller_id=products[item.product_id].seller_id,
                quantity=item.quantity,
                unit_price=products[item.product_id].price,
            )
            for item in items
        ]
        total = round(sum(line.line_total for line in lines), 2)
        return Order(
            buyer_id=buyer_id,
            items=lines,
            total_price=total,
            status="pending",
            shipping_address=address,
        )

    # === Cancellation & status ===

    async def cancel_order(self, order_id: str, requester: Principal) -> Order:
        order = await self._load_order(order_id)
        if order is None or not can_cancel(requester, order):
            raise NotFoundError("Order not found")
        return await self._cancel(order)

    async def update_order_status(
        self, order_id: str, new_status: str, requester: Principal
    ) -> Order:
        if new_status not in ORDER_STATUSES:
            raise InvalidStatusError(new_status)

        order = await self._load_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if not can_update_status(requester, order, new_status):
            raise ForbiddenError("You are not allowed to update this order")

        if new_status == "cancelled":
            return await self._cancel(order)

        if order.is_terminal:
            raise InvalidStateError(f"Order is already {order.status}")
        if FORWARD_RANK[new_status] < FORWARD_RANK[order.status]:
            raise InvalidStateError(
                f"Cannot move order from {order.status} back to {new_status}"
            )
        if new_status == order.status:
            return order

        now = datetime.now(UTC)
        changes: dict[str, object] = {"status": new_status, "updated_at": now}
        if new_status == "delivered":
            changes["delivered_at"] = now

        doc = await self._call(
            self._store.conditional_update(
                ORDERS, order.id, {"status": order.status}, {"$set": changes}
            )
        )
        if doc is None:
            raise InvalidStateError("Order status changed concurrently; retry")

        logger.info(
            "Order %s moved from %s to %s by %s",
            order.id,
            order.status,
            new_status,
            requester.id,
        )
        return Order.model_validate(doc)

    async def _cancel(self, order: Order) -> Order:
        if order.is_terminal:
            raise InvalidStateError(f"Order is already {order.status}")

        # Claiming the status first guarantees stock is restored exactly once
        # even when two cancellations race.
        now = datetime.now(UTC)
        doc = await self._call(
            self._store.conditional_update(
                ORDERS,
                order.id,
                {"status": {"$in": _CANCELLABLE}},
                {"$set": {"status": "cancelled", "cancelled_at": now, "updated_at": now}},
            )
        )
        if doc is None:
            current = await self._load_order(order.id)
            status = current.status if current else "missing"
            raise InvalidStateError(f"Order is already {status}")

        for item in order.items:
            try:
                restored = await self._call(
                    self._store.conditional_update(
                        PRODUCTS,
                        item.product_id,
                        {},
                        {"$inc": {"stock": item.quantity}},
                    )
                )
            except Exception:
                logger.error(
                    "Failed to restore %d units of product %s for order %s",
                    item.quantity,
                    item.product_id,
                    order.id,
                    exc_info=True,
                )
                continue
            if restored is None:
                logger.warning(
                    "Product %s no longer exists; skipping stock restore for order %s",
                    item.product_id,
                    order.id,
                )

        logger.info("Order %s cancelled", order.id, extra={"order_id": order.id})
        self._cache.schedule_invalidation(*CATALOG_CACHE_PATTERNS)
        return Order.model_validate(doc)

    # === Queries ===

    async def get_order(self, order_id: str, requester: Principal) -> Order:
        order = await self._load_order(order_id)
        if order is None or not can_view(requester, order):
            raise NotFoundError("Order not found")
        return order

    async def list_buyer_orders(self, buyer_id: str) -> list[Order]:
        docs = await self._call(
            self._store.find_many(
                ORDERS, {"buyer_id": buyer_id}, sort=[("created_at", -1)]
            )
        )
        return [Order.model_validate(doc) for doc in docs]

    async def list_seller_orders(self, seller_id: str) -> list[Order]:
        docs = await self._call(
            self._store.find_many(
                ORDERS, {"items.seller_id": seller_id}, sort=[("created_at", -1)]
            )
        )
        return [Order.model_validate(doc) for doc in docs]

    async def _load_order(self, order_id: str) -> Order | None:
        doc = await self._call(self._store.find_by_id(ORDERS, order_id))
        return Order.model_validate(doc) if doc else None

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Store call timed out after %ss", self._timeout)
            raise StoreUnavailableError("Data store timed out") from exc


def get_order_workflow(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> OrderWorkflow:
    return OrderWorkflow(store, cache)


OrderWorkflowDependency = Annotated[OrderWorkflow, Depends(get_order_workflow)]
