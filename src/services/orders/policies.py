"""Authorization capabilities for order operations.

Pure functions over the caller's role and the order's ownership data so they
can be tested without any I/O.
"""

from __future__ import annotations

from src.models.order import Order
from src.models.user import Principal, Role


def can_view(principal: Principal, order: Order) -> bool:
    if principal.role is Role.ADMIN:
        return True
    if principal.role is Role.SELLER:
        return principal.id in order.seller_ids
    return order.buyer_id == principal.id


def can_cancel(principal: Principal, order: Order) -> bool:
    """Buyers may cancel only their own orders."""
    return principal.role is Role.BUYER and order.buyer_id == principal.id


def can_update_status(principal: Principal, order: Order, new_status: str) -> bool:
    """Admins always; sellers owning a product in the order; buyers only to cancel."""
    if principal.role is Role.ADMIN:
        return True
    if principal.role is Role.SELLER:
        return principal.id in order.seller_ids
    return new_status == "cancelled" and can_cancel(principal, order)
