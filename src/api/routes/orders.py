"""Order placement, tracking and status routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, status

from src.models.order import (
    Order,
    PlacedOrderResponse,
    PlaceOrderRequest,
    StatusUpdateRequest,
)
from src.services.identity.identity_client import BuyerDependency, PrincipalDependency
from src.services.orders.order_workflow import OrderWorkflowDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[Order], summary="List the buyer's orders")
async def list_orders(
    buyer: BuyerDependency,
    workflow: OrderWorkflowDependency,
) -> list[Order]:
    return await workflow.list_buyer_orders(buyer.id)


@router.get("/{order_id}", response_model=Order, summary="Fetch a single order")
async def get_order(
    order_id: str,
    principal: PrincipalDependency,
    workflow: OrderWorkflowDependency,
) -> Order:
    return await workflow.get_order(order_id, principal)


@router.post(
    "",
    response_model=PlacedOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order from the buyer's cart",
)
async def place_order(
    buyer: BuyerDependency,
    workflow: OrderWorkflowDependency,
    payload: PlaceOrderRequest | None = Body(None),
) -> PlacedOrderResponse:
    address = payload.shipping_address if payload else None
    placed = await workflow.place_order(buyer.id, shipping_address=address)
    return PlacedOrderResponse(order=placed.order, warnings=placed.warnings)


@router.patch(
    "/{order_id}/cancel",
    response_model=Order,
    summary="Cancel one of the buyer's orders and restore stock",
)
async def cancel_order(
    order_id: str,
    buyer: BuyerDependency,
    workflow: OrderWorkflowDependency,
) -> Order:
    return await workflow.cancel_order(order_id, buyer)


@router.patch(
    "/{order_id}/status",
    response_model=Order,
    summary="Advance or cancel an order",
)
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    principal: PrincipalDependency,
    workflow: OrderWorkflowDependency,
) -> Order:
    return await workflow.update_order_status(order_id, payload.status, principal)
