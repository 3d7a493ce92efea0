"""Routes for browsing and managing catalog products."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, status

from src.models.product import (
    Product,
    ProductPayload,
    ProductStatusUpdate,
    ProductUpdate,
)
from src.services.cache.recent_activity import RecentActivityDependency
from src.services.catalog.catalog_service import CatalogDependency
from src.services.identity.identity_client import (
    OptionalPrincipalDependency,
    SellerDependency,
    SellerOrAdminDependency,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get(
    "",
    response_model=list[Product],
    summary="List active products, optionally filtered by category",
)
async def list_products(
    catalog: CatalogDependency,
    category: str | None = Query(None, description="Case-insensitive category filter"),
) -> list[dict]:
    return await catalog.browse_products(category)


@router.get(
    "/{product_id}",
    response_model=Product,
    summary="Fetch a single active product",
)
async def get_product(
    product_id: str,
    catalog: CatalogDependency,
    recent: RecentActivityDependency,
    principal: OptionalPrincipalDependency,
) -> dict:
    detail = await catalog.get_product_detail(product_id)

    if principal is not None:
        summary = Product.model_validate(detail).summary()
        await recent.add_recently_viewed(principal.id, summary)

    return detail


@router.post(
    "",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    summary="List a new product for sale",
)
async def create_product(
    payload: ProductPayload,
    seller: SellerDependency,
    catalog: CatalogDependency,
) -> Product:
    return await catalog.create_product(seller, payload)


@router.put(
    "/{product_id}",
    response_model=Product,
    summary="Update one of the seller's products",
)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    seller: SellerDependency,
    catalog: CatalogDependency,
) -> Product:
    return await catalog.update_product(seller, product_id, payload)


@router.delete(
    "/{product_id}",
    response_model=Product,
    summary="Hide a product from browsing and search",
)
async def deactivate_product(
    product_id: str,
    principal: SellerOrAdminDependency,
    catalog: CatalogDependency,
) -> Product:
    return await catalog.deactivate_product(principal, product_id)


@router.patch(
    "/{product_id}/status",
    response_model=Product,
    summary="Activate or deactivate a product",
)
async def set_product_status(
    product_id: str,
    payload: ProductStatusUpdate,
    principal: SellerOrAdminDependency,
    catalog: CatalogDependency,
) -> Product:
    return await catalog.set_product_status(
        principal, product_id, is_active=payload.is_active
    )
