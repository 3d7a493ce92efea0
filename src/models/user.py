"""Identity models shared by the services."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Principal(BaseModel):
    """Authenticated caller resolved from a bearer credential."""

    id: str = Field(..., min_length=1)
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class UserProfile(BaseModel):
    """Buyer profile fields this service reads."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str | None = None
    email: str | None = None
    address: str | None = None
