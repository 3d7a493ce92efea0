"""Cart models and API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CartItem(BaseModel):
    """One line of a cart; a product appears at most once."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    """A buyer's pending purchase list, keyed by the buyer id."""

    model_config = ConfigDict(populate_by_name=True)

    buyer_id: str = Field(..., alias="_id")
    items: list[CartItem] = Field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    def quantity_of(self, product_id: str) -> int:
        for item in self.items:
            if item.product_id == product_id:
                return item.quantity
        return 0

    def items_document(self) -> list[dict[str, Any]]:
        return [item.model_dump() for item in self.items]


class AddCartItemRequest(BaseModel):
    """Request body for POST /cart."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class SetQuantityRequest(BaseModel):
    """Request body for PUT /cart/{product_id}."""

    quantity: int = Field(..., ge=1)
