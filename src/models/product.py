"""Product domain models and API schemas."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_id() -> str:
    """Generate a document identifier."""

    return uuid.uuid4().hex


class ProductPayload(BaseModel):
    """Fields a seller supplies when listing a product."""

    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Unit price in the store currency")
    category: str = Field(..., min_length=1)
    brand: str | None = None
    image: str | None = None
    stock: int = Field(0, ge=0, description="Units available for sale")

    @field_validator("name", "description", "category")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ProductUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    name: str | None = Field(None, min_length=1)
    description: str | None = Field(None, min_length=1)
    price: float | None = Field(None, ge=0)
    category: str | None = Field(None, min_length=1)
    brand: str | None = None
    image: str | None = None
    stock: int | None = Field(
        None,
        ge=0,
        description="Absolute stock level; overwrites the current counter",
    )


class Product(BaseModel):
    """Product as persisted in the document store."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")
    name: str
    description: str
    price: float = Field(..., ge=0)
    category: str
    brand: str | None = None
    image: str | None = None
    stock: int = Field(0, ge=0)
    is_active: bool = True
    seller_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def summary(self) -> dict[str, Any]:
        """Subset stored in a buyer's recently viewed list."""
        return {
            "_id": self.id,
            "name": self.name,
            "price": self.price,
            "image": self.image,
            "category": self.category,
        }


class ProductStatusUpdate(BaseModel):
    """Request body for PATCH /products/{product_id}/status."""

    is_active: bool


class StockLevel(BaseModel):
    product_id: str = Field(..., min_length=1)
    stock: int = Field(..., ge=0)


class BulkStockUpdate(BaseModel):
    """Request body for PATCH /seller/stock."""

    items: list[StockLevel] = Field(..., min_length=1)

    @field_validator("items")
    @classmethod
    def _limit_items(cls, values: list[StockLevel]) -> list[StockLevel]:
        if len(values) > 500:
            raise ValueError("Batch size must be <= 500 items")
        return values


class SearchResponse(BaseModel):
    """Response body for GET /search."""

    query: str
    count: int = Field(..., ge=0)
    products: list[Product] = Field(default_factory=list)
    timestamp: str
