from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from levelup_api.models.redemption import FulfillmentMethodEnum
from levelup_api.schemas.orders import ShippingAddress


class RedemptionRequest(BaseModel):
    """Details a member supplies when redeeming a product."""

    fulfillment_method: FulfillmentMethodEnum = FulfillmentMethodEnum.PICKUP
    shipping_address: Optional[ShippingAddress] = Field(None, description="Required for shipping")
    notes: Optional[str] = None


__all__ = ["RedemptionRequest"]
