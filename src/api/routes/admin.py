"""Administrative routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from src.services.catalog.catalog_service import CatalogDependency
from src.services.identity.identity_client import AdminDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/sellers/{seller_id}/deactivate-products",
    summary="Hide every product of a seller",
)
async def deactivate_seller_products(
    seller_id: str,
    admin: AdminDependency,
    catalog: CatalogDependency,
) -> dict[str, int | str]:
    count = await catalog.deactivate_seller_products(seller_id)
    logger.info(
        "Admin %s deactivated products of seller %s",
        admin.id,
        seller_id,
        extra={"count": count},
    )
    return {"seller_id": seller_id, "deactivated": count}
