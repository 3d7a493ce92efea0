"""Seller dashboard routes."""

from __future__ import annotations

from fastapi import APIRouter

from src.models.order import Order, StatusUpdateRequest
from src.models.product import BulkStockUpdate, Product
from src.services.catalog.catalog_service import CatalogDependency
from src.services.identity.identity_client import SellerDependency
from src.services.orders.order_workflow import OrderWorkflowDependency

router = APIRouter(prefix="/seller", tags=["seller"])


@router.get(
    "/products",
    response_model=list[Product],
    summary="List products owned by the seller, including inactive ones",
)
async def list_seller_products(
    seller: SellerDependency,
    catalog: CatalogDependency,
) -> list[Product]:
    return await catalog.list_seller_products(seller.id)


@router.patch(
    "/stock",
    response_model=list[Product],
    summary="Overwrite stock levels for several products",
)
async def bulk_update_stock(
    payload: BulkStockUpdate,
    seller: SellerDependency,
    catalog: CatalogDependency,
) -> list[Product]:
    return await catalog.bulk_update_stock(seller, payload.items)


@router.get(
    "/orders",
    response_model=list[Order],
    summary="List orders containing the seller's products",
)
async def list_seller_orders(
    seller: SellerDependency,
    workflow: OrderWorkflowDependency,
) -> list[Order]:
    return await workflow.list_seller_orders(seller.id)


@router.patch(
    "/orders/{order_id}/status",
    response_model=Order,
    summary="Update the status of an order containing the seller's products",
)
async def update_seller_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    seller: SellerDependency,
    workflow: OrderWorkflowDependency,
) -> Order:
    return await workflow.update_order_status(order_id, payload.status, seller)
