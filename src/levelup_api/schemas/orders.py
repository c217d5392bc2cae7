"""Order request/patch models."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from levelup_api.domain.patch import UNSET, PatchField
from levelup_api.models.order import OrderCreatorEnum, OrderStatusEnum


class ShippingAddress(BaseModel):
    """Address snapshot stored on orders and redemptions."""

    model_config = ConfigDict(extra="ignore")

    recipient_name: Optional[str] = Field(None, description="Recipient or address alias")
    street: Optional[str] = None
    number: Optional[str] = None
    apartment: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None

    def snapshot(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OrderAmounts(BaseModel):
    """Monetary and points figures produced by the pricing policy."""

    subtotal: Decimal = Field(..., description="Sum of line totals at snapshot prices")
    tier_discount: Decimal = Field(Decimal("0"), description="Account tier discount")
    points_discount: Decimal = Field(Decimal("0"), description="Currency value of redeemed points")
    total: Decimal = Field(..., description="Amount charged")
    points_spent: int = Field(0, description="Points debited from the account")
    points_earned: int = Field(0, description="Points credited to the account")

    @property
    def points_delta(self) -> int:
        return self.points_earned - self.points_spent


class AdminContext(BaseModel):
    """Operator metadata for orders placed on behalf of a customer."""

    created_by: OrderCreatorEnum = OrderCreatorEnum.ADMIN
    admin_id: Optional[str] = None
    admin_name: Optional[str] = None


class ClientIdentity(BaseModel):
    """Customer identity supplied by point-of-sale callers."""

    email: str
    name: str
    tax_id: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class OrderPatch:
    """Fields an operator may change after an order is created."""

    status: PatchField[OrderStatusEnum] = UNSET
    notes: PatchField[str] = UNSET


__all__ = [
    "AdminContext",
    "ClientIdentity",
    "OrderAmounts",
    "OrderPatch",
    "ShippingAddress",
]
