"""Buyer cart routes."""

from __future__ import annotations

from fastapi import APIRouter

from src.models.cart import AddCartItemRequest, Cart, SetQuantityRequest
from src.services.cart.cart_service import CartDependency
from src.services.identity.identity_client import BuyerDependency

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=Cart, summary="Fetch the buyer's cart")
async def get_cart(buyer: BuyerDependency, carts: CartDependency) -> Cart:
    return await carts.get_cart(buyer.id)


@router.post("", response_model=Cart, summary="Add a product to the cart")
async def add_item(
    payload: AddCartItemRequest,
    buyer: BuyerDependency,
    carts: CartDependency,
) -> Cart:
    return await carts.add_item(buyer.id, payload.product_id, payload.quantity)


@router.put(
    "/{product_id}",
    response_model=Cart,
    summary="Replace the quantity of a cart line",
)
async def set_quantity(
    product_id: str,
    payload: SetQuantityRequest,
    buyer: BuyerDependency,
    carts: CartDependency,
) -> Cart:
    return await carts.set_quantity(buyer.id, product_id, payload.quantity)


@router.delete(
    "/{product_id}",
    response_model=Cart,
    summary="Remove a product from the cart",
)
async def remove_item(
    product_id: str,
    buyer: BuyerDependency,
    carts: CartDependency,
) -> Cart:
    return await carts.remove_item(buyer.id, product_id)


@router.delete("", response_model=Cart, summary="Empty the cart")
async def clear_cart(buyer: BuyerDependency, carts: CartDependency) -> Cart:
    return await carts.clear_cart(buyer.id)
