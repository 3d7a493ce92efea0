"""Order models and API schemas."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.product import new_id

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "confirmed",
    "shipped",
    "delivered",
    "cancelled",
)
TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "cancelled"})
# Position of each forward status; cancellation sits outside the sequence.
FORWARD_RANK: dict[str, int] = {
    "pending": 0,
    "confirmed": 1,
    "shipped": 2,
    "delivered": 3,
}

DEFAULT_SHIPPING_ADDRESS = "No address provided"


class OrderItem(BaseModel):
    """Line item frozen at purchase time."""

    product_id: str
    name: str
    seller_id: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """Order as persisted in the document store."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")
    buyer_id: str
    items: list[OrderItem] = Field(..., min_length=1)
    total_price: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: str = DEFAULT_SHIPPING_ADDRESS
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def seller_ids(self) -> set[str]:
        return {item.seller_id for item in self.items}

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PlaceOrderRequest(BaseModel):
    """Optional body for POST /orders."""

    shipping_address: str | None = Field(
        None,
        description="Overrides the address stored on the buyer profile",
    )


class StatusUpdateRequest(BaseModel):
    """Request body for PATCH /orders/{order_id}/status.

    The status is validated by the workflow so unknown values surface as
    ``invalid_status`` rather than a schema error.
    """

    status: str


class PlacedOrderResponse(BaseModel):
    """Response body for POST /orders."""

    order: Order
    warnings: list[str] = Field(default_factory=list)
