"""Points-for-product redemption models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Enum as SqlEnum, ForeignKey, Integer, JSON, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from levelup_api.db.base import Base, enum_values


class RedemptionStatusEnum(str, Enum):
    """Status lifecycle for redemptions."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class FulfillmentMethodEnum(str, Enum):
    PICKUP = "pickup"
    SHIPPING = "shipping"


class Redemption(Base):
    """A member exchanging points for one unit of a redeemable product."""

    __tablename__ = "redemptions"
    __table_args__ = (
        CheckConstraint("points_spent > 0", name="ck_redemptions_points_spent_positive"),
        CheckConstraint("quantity = 1", name="ck_redemptions_single_unit"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    points_spent = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1, server_default="1")
    fulfillment_method = Column(
        SqlEnum(FulfillmentMethodEnum, name="redemption_fulfillment_method_enum", values_callable=enum_values),
        nullable=False,
        default=FulfillmentMethodEnum.PICKUP,
        server_default=FulfillmentMethodEnum.PICKUP.value,
    )
    status = Column(
        SqlEnum(RedemptionStatusEnum, name="redemption_status_enum", values_callable=enum_values),
        nullable=False,
        default=RedemptionStatusEnum.PENDING,
        server_default=RedemptionStatusEnum.PENDING.value,
    )
    shipping_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    stock_reserved = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="redemptions")
    product = relationship("Product")
    state_events = relationship(
        "RedemptionStateEvent",
        back_populates="redemption",
        cascade="all, delete-orphan",
    )


class RedemptionStateEvent(Base):
    """Audit entry for each redemption status transition."""

    __tablename__ = "redemption_state_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    redemption_id = Column(
        UUID(as_uuid=True),
        ForeignKey("redemptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = Column(String(64), nullable=True)
    to_status = Column(String(64), nullable=False)
    actor_label = Column(String(255), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    redemption = relationship("Redemption", back_populates="state_events")
